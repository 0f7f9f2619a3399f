"""Status and health check API routes."""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .. import __version__
from ..auth.policy import PUBLIC, gates
from ..auth.rate_limit import RateGate, RateLimit, client_address
from ..db.repository import repository
from ..services import get_services

logger = logging.getLogger(__name__)
router = APIRouter(tags=["status"])


async def _check_database() -> dict:
    """Check database connectivity."""
    try:
        counts = await repository.get_counts()
        return {"status": "ok", "counts": counts}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "error", "message": str(e)}


async def _check_store() -> dict:
    """Check key-value store connectivity."""
    services = get_services()
    try:
        await asyncio.wait_for(services.store.ping(), services.settings.store_timeout_seconds)
        return {"status": "ok", "backend": services.settings.kv_backend}
    except Exception as e:
        logger.error(f"Key-value store health check failed: {e}")
        return {"status": "error", "backend": services.settings.kv_backend, "message": str(e)}


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint with component status."""
    db_status = await _check_database()
    store_status = await _check_store()

    overall_status = "ok"
    if db_status["status"] != "ok" or store_status["status"] != "ok":
        overall_status = "degraded"

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "storefront-api",
        "version": __version__,
        "components": {
            "database": db_status,
            "key_value_store": store_status,
            "auth_mode": get_services().settings.auth_mode,
        },
    }


@router.get("/api/rate-limit", dependencies=gates(PUBLIC))
async def get_my_rate_limit(request: Request) -> dict:
    """Current default-window usage for the calling address."""
    services = get_services()
    gate = RateGate.for_route(services.store, services.settings, RateLimit())
    return await gate.status(client_address(request, services.settings.trust_proxy_headers))
