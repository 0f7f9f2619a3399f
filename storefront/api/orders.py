"""Order API routes.

Creating an order invalidates ``orders:all``, ``products:all`` and the
``product:<id>`` entry of every ordered product (stock changes). Status
changes invalidate ``orders:all``. Both publish a dashboard event.
"""

import logging

from fastapi import APIRouter

from ..auth.middleware import AdminUser, CurrentUser
from ..auth.policy import ADMIN, PROTECTED, gates
from ..cache import cached, invalidate
from ..core.errors import NotFound
from ..core.models import ListResponse, Order, OrderInput, OrderStatusInput, Role
from ..core.orders import order_total, price_items
from ..db.repository import repository
from ..events import ORDER_CREATED, ORDER_STATUS_CHANGED
from ..services import get_services
from .products import PRODUCT_LIST_KEY, product_key

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])

ORDER_LIST_KEY = "orders:all"
ORDER_LIST_TTL = 60


def _listing(orders: list[Order]) -> dict:
    return {
        "success": True,
        "count": len(orders),
        "data": [order.model_dump(mode="json") for order in orders],
    }


@router.post("", response_model=Order, status_code=201, dependencies=gates(PROTECTED.limited()))
async def create_order(user: CurrentUser, input_data: OrderInput) -> Order:
    """Place an order for the current user.

    Prices come from the catalog; the total is computed server-side.
    """
    products = await repository.get_products([item.product_id for item in input_data.items])
    items = price_items(input_data.items, products)
    order = await repository.create_order(
        user_id=user.id,
        items=items,
        total=order_total(items),
        shipping_address=input_data.shipping_address,
        phone=input_data.phone,
    )
    logger.info(f"Order {order.id} created by user {user.id} (total {order.total})")

    await invalidate(ORDER_LIST_KEY, PRODUCT_LIST_KEY, *(product_key(i.product_id) for i in items))
    await get_services().events.notify(ORDER_CREATED, order.model_dump(mode="json"))
    return order


@router.get("/mine", response_model=ListResponse, dependencies=gates(PROTECTED))
async def list_my_orders(user: CurrentUser) -> dict:
    """Order history for the current user."""
    return _listing(await repository.list_orders(user_id=user.id))


@router.get("", response_model=ListResponse, dependencies=gates(ADMIN))
@cached(ORDER_LIST_KEY, ttl=ORDER_LIST_TTL)
async def list_orders() -> dict:
    """All orders (admin only)."""
    return _listing(await repository.list_orders(limit=1000))


@router.get("/{order_id}", response_model=Order, dependencies=gates(PROTECTED))
async def get_order(order_id: int, user: CurrentUser) -> Order:
    """A single order. Customers only see their own; admins see all."""
    order = await repository.get_order(order_id)
    is_admin = user.role == Role.ADMIN and user.approved
    if not order or (order.user_id != user.id and not is_admin):
        raise NotFound(f"Order not found: {order_id}")
    return order


@router.patch("/{order_id}/status", response_model=Order, dependencies=gates(ADMIN))
async def update_order_status(order_id: int, input_data: OrderStatusInput, admin: AdminUser) -> Order:
    existing = await repository.get_order(order_id)
    if not existing:
        raise NotFound(f"Order not found: {order_id}")

    order = await repository.update_order_status(order_id, input_data.status)
    if not order:
        raise NotFound(f"Order not found: {order_id}")
    logger.info(f"Admin {admin.id} moved order {order_id} to {order.status.value}")

    await invalidate(ORDER_LIST_KEY)
    await get_services().events.notify(
        ORDER_STATUS_CHANGED,
        {
            "order_id": order.id,
            "user_id": order.user_id,
            "from_status": existing.status.value,
            "to_status": order.status.value,
        },
    )
    return order
