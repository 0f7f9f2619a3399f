"""Order pricing.

Lines are priced from the catalog at order time; client-supplied prices are
never trusted.
"""

from decimal import ROUND_HALF_UP, Decimal

from .errors import NotFound, ValidationFailed
from .models import OrderItem, OrderItemInput, Product

CENT = Decimal("0.01")


def merge_lines(items: list[OrderItemInput]) -> list[OrderItemInput]:
    """Combine repeated product lines by summing their quantities."""
    merged: dict[int, int] = {}
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return [OrderItemInput(product_id=pid, quantity=qty) for pid, qty in merged.items()]


def price_items(items: list[OrderItemInput], products: dict[int, Product]) -> list[OrderItem]:
    """Resolve order lines against the catalog.

    Raises:
        NotFound: If a product does not exist
        ValidationFailed: If a product has insufficient stock
    """
    priced = []
    for item in merge_lines(items):
        product = products.get(item.product_id)
        if product is None:
            raise NotFound(f"Product not found: {item.product_id}")
        if product.stock < item.quantity:
            raise ValidationFailed(f"Insufficient stock for {product.name}")
        priced.append(
            OrderItem(
                product_id=product.id,
                name=product.name,
                price=product.price,
                quantity=item.quantity,
            )
        )
    return priced


def order_total(items: list[OrderItem]) -> float:
    """Sum of price x quantity, rounded to cents."""
    total = sum((Decimal(str(item.price)) * item.quantity for item in items), Decimal("0"))
    return float(total.quantize(CENT, rounding=ROUND_HALF_UP))
