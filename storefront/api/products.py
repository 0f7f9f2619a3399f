"""Product catalog API routes.

Reads are public and cached; writes are admin-only and invalidate:

- create: ``products:all``
- update / delete: ``product:<id>``, ``products:all``
"""

import logging

from fastapi import APIRouter

from ..auth.policy import ADMIN, PUBLIC, gates
from ..cache import cached, invalidate
from ..core.errors import NotFound
from ..core.models import ListResponse, MessageResponse, Product, ProductInput, ProductUpdateInput
from ..db.repository import repository
from ..events import PRODUCT_UPDATED
from ..services import get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/products", tags=["products"])

PRODUCT_LIST_KEY = "products:all"
PRODUCT_KEY = "product:{product_id}"
PRODUCT_TTL = 300

CATALOG_READ = PUBLIC.limited()


def product_key(product_id: int) -> str:
    return PRODUCT_KEY.format(product_id=product_id)


@router.get("", response_model=ListResponse, dependencies=gates(CATALOG_READ))
@cached(PRODUCT_LIST_KEY, ttl=PRODUCT_TTL)
async def list_products() -> dict:
    """List the catalog."""
    products = await repository.list_products(limit=1000)
    return {
        "success": True,
        "count": len(products),
        "data": [product.model_dump(mode="json") for product in products],
    }


@router.get("/{product_id}", response_model=Product, dependencies=gates(CATALOG_READ))
@cached(PRODUCT_KEY, ttl=PRODUCT_TTL)
async def get_product(product_id: int) -> Product:
    product = await repository.get_product(product_id)
    if not product:
        raise NotFound(f"Product not found: {product_id}")
    return product


@router.post("", response_model=Product, status_code=201, dependencies=gates(ADMIN))
async def create_product(input_data: ProductInput) -> Product:
    product = await repository.create_product(input_data)
    await invalidate(PRODUCT_LIST_KEY)
    logger.info(f"Created product {product.id}")
    return product


@router.put("/{product_id}", response_model=Product, dependencies=gates(ADMIN))
async def update_product(product_id: int, input_data: ProductUpdateInput) -> Product:
    if not await repository.get_product(product_id):
        raise NotFound(f"Product not found: {product_id}")

    product = await repository.update_product(product_id, input_data)
    if not product:
        raise NotFound(f"Product not found: {product_id}")

    await invalidate(product_key(product_id), PRODUCT_LIST_KEY)
    await get_services().events.notify(PRODUCT_UPDATED, product.model_dump(mode="json"))
    return product


@router.delete("/{product_id}", response_model=MessageResponse, dependencies=gates(ADMIN))
async def delete_product(product_id: int) -> MessageResponse:
    if not await repository.delete_product(product_id):
        raise NotFound(f"Product not found: {product_id}")

    await invalidate(product_key(product_id), PRODUCT_LIST_KEY)
    logger.info(f"Deleted product {product_id}")
    return MessageResponse(message="Product deleted")
