"""Storefront API: catalog, orders and accounts behind a shared auth gate stack."""

__version__ = "0.1.0"
