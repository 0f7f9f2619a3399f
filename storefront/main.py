"""FastAPI entry point for the storefront API."""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api import admin, auth, orders, products, status, users
from .auth.middleware import get_optional_user
from .auth.tokens import TokenCodec
from .config import Settings, get_settings
from .core.errors import AppError
from .core.models import User
from .db.kv import KeyValueStore, create_store
from .db.repository import repository
from .services import build_services, set_services

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def error_response(
    request: Request,
    status_code: int,
    message: str,
    error: str | list[str] | None = None,
    retry_after: int | None = None,
    exc: BaseException | None = None,
) -> JSONResponse:
    """Render the uniform error envelope."""
    body = {
        "success": False,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "message": message,
    }
    if error:
        body["error"] = error

    headers = {}
    if retry_after is not None:
        body["retryAfter"] = retry_after
        headers["Retry-After"] = str(retry_after)
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {status_code} - {message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} - {status_code} - {message}")

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map every error to the envelope."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        return error_response(
            request,
            exc.status_code,
            exc.message,
            exc.error,
            exc.retry_after,
            exc=exc if exc.status_code >= 500 else None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "An error occurred"
        return error_response(request, exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        # Field-level details are hidden outside development
        return error_response(
            request, 400, "Validation failed", details if settings.is_development else "Bad Request"
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        message = str(exc) if settings.is_development else "Internal server error"
        return error_response(request, 500, message, "Internal Server Error", exc=exc)


def create_app(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    codec: TokenCodec | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration (defaults to the environment)
        store: Key-value store to use instead of the configured backend
        codec: Token codec to use instead of the one ``AUTH_MODE`` selects
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting storefront API...")
        await repository.connect(settings.database_path)
        logger.info(f"Database connected ({settings.database_path})")
        kv_store = store or create_store(settings)
        set_services(build_services(settings, repository, kv_store, codec=codec))
        logger.info(f"Auth mode: {settings.auth_mode}, key-value backend: {settings.kv_backend}")
        yield
        # Shutdown
        logger.info("Shutting down...")
        set_services(None)
        await kv_store.close()
        await repository.close()
        logger.info("Database disconnected")

    app = FastAPI(
        title="Storefront API",
        description="Catalog, orders and accounts behind a shared auth gate stack",
        version=__version__,
        lifespan=lifespan,
    )

    cors_origins = ["*"] if settings.is_development else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} - {elapsed_ms:.0f}ms - {client}"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    register_exception_handlers(app, settings)

    # Include routers
    app.include_router(status.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(admin.router)
    app.include_router(products.router)
    app.include_router(orders.router)

    @app.get("/")
    async def root(user: User | None = Depends(get_optional_user)) -> dict:
        """Root endpoint with API overview."""
        return {
            "service": "Storefront API",
            "version": __version__,
            "authenticated_as": user.email if user else None,
            "endpoints": {
                "health": "GET /health",
                "rate_limit": "GET /api/rate-limit",
                "auth": {
                    "register": "POST /api/auth/register",
                    "register_admin": "POST /api/auth/register-admin",
                    "login": "POST /api/auth/login",
                    "login_admin": "POST /api/auth/login-admin",
                    "me": "GET /api/auth/me",
                    "logout": "POST /api/auth/logout",
                },
                "users": {
                    "me": "GET|PUT /api/users/me",
                    "password": "PUT /api/users/me/password",
                    "list": "GET /api/users (admin)",
                },
                "admin": {
                    "pending": "GET /api/admin/pending-approvals",
                    "approve": "POST /api/admin/pending-approvals/{id}/approve",
                    "reject": "DELETE /api/admin/pending-approvals/{id}",
                },
                "products": "GET|POST /api/products, GET|PUT|DELETE /api/products/{id}",
                "orders": "POST|GET /api/orders, GET /api/orders/mine, PATCH /api/orders/{id}/status",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
