"""
Tests for order pricing.
"""

from datetime import datetime, timezone

import pytest

from storefront.core.errors import NotFound, ValidationFailed
from storefront.core.models import OrderItem, OrderItemInput, Product
from storefront.core.orders import merge_lines, order_total, price_items


def make_product(product_id: int, price: float, stock: int = 10) -> Product:
    now = datetime.now(timezone.utc)
    return Product(
        id=product_id,
        name=f"Product {product_id}",
        description="",
        price=price,
        stock=stock,
        created_at=now,
        updated_at=now,
    )


def line(product_id: int, quantity: int) -> OrderItemInput:
    return OrderItemInput(product_id=product_id, quantity=quantity)


def test_merge_lines():
    merged = merge_lines([line(1, 1), line(2, 3), line(1, 2)])
    assert [(item.product_id, item.quantity) for item in merged] == [(1, 3), (2, 3)]


def test_price_items_uses_catalog_prices():
    products = {1: make_product(1, 2.5), 2: make_product(2, 10.0)}

    items = price_items([line(1, 2), line(2, 1)], products)

    assert [(item.name, item.price, item.quantity) for item in items] == [
        ("Product 1", 2.5, 2),
        ("Product 2", 10.0, 1),
    ]


def test_price_items_unknown_product():
    with pytest.raises(NotFound):
        price_items([line(3, 1)], {1: make_product(1, 2.5)})


def test_price_items_checks_merged_quantity_against_stock():
    products = {1: make_product(1, 2.5, stock=2)}

    with pytest.raises(ValidationFailed, match="Insufficient stock"):
        price_items([line(1, 2), line(1, 1)], products)


@pytest.mark.parametrize(
    "lines,total",
    [
        ([(0.1, 3)], 0.3),
        ([(19.99, 2), (5.5, 1)], 45.48),
        ([(1.005, 1)], 1.01),
        ([], 0.0),
    ],
)
def test_order_total(lines, total):
    items = [OrderItem(product_id=i, name="x", price=price, quantity=qty) for i, (price, qty) in enumerate(lines)]
    assert order_total(items) == total
