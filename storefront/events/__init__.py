"""Outbound event publishing."""

from .publisher import ORDER_CREATED, ORDER_STATUS_CHANGED, PRODUCT_UPDATED, EventPublisher

__all__ = ["EventPublisher", "ORDER_CREATED", "ORDER_STATUS_CHANGED", "PRODUCT_UPDATED"]
