"""FastAPI application for the webhook delivery service.

This module provides:
- Application factory with lifespan (logging, database, dispatcher shutdown)
- Webhook management routes
- Health check endpoint
- Error handling mapped to the {success, message, data} envelope
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gymhooks import __version__
from gymhooks.config import settings
from gymhooks.errors import WebhookError
from gymhooks.log_setup import configure_logging
from gymhooks.webhooks.dispatcher import get_webhook_dispatcher
from gymhooks.webhooks.storage import get_webhook_database

logger = structlog.get_logger(__name__)

API_DESCRIPTION = """
Outbound webhook delivery for the fitness center back office.

Register endpoints for domain events (payments, memberships, bookings),
inspect delivery history and send test deliveries.
"""

OPENAPI_TAGS = [
    {"name": "Webhooks", "description": "Webhook subscriptions and delivery history"},
    {"name": "Health", "description": "Service health"},
]


def _error_body(message: str, errors: list[Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, "data": None}
    if errors:
        body["errors"] = errors
    return body


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan handler."""
    # Startup
    configure_logging()
    await get_webhook_database().initialize()
    if not settings.ADMIN_API_KEY:
        logger.warning("admin_api_key_missing", detail="all webhook routes will reject requests")
    logger.info("application_starting", environment=settings.ENVIRONMENT)

    yield

    # Shutdown
    logger.info("application_stopping")
    await get_webhook_dispatcher().shutdown()


def create_app(title: str = "Webhook Delivery API") -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        title: API title.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title=title,
        version=__version__,
        description=API_DESCRIPTION,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )

    # Add exception handlers
    @app.exception_handler(WebhookError)
    async def webhook_error_handler(
        request: Request, exc: WebhookError  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError  # noqa: ARG001
    ) -> JSONResponse:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body("Invalid request", errors),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail if isinstance(exc.detail, str) else str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))

    # Register routes
    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all routes on the application.

    Args:
        app: FastAPI application.
    """
    from gymhooks.api.webhooks import router as webhooks_router

    app.include_router(webhooks_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        return {
            "status": "ok",
            "pending_deliveries": get_webhook_dispatcher().pending_deliveries,
            "timestamp": datetime.now(UTC).isoformat(),
        }
