"""Application factory for the FastAPI app."""

from __future__ import annotations

from fastapi import FastAPI

from pos_vision.api.routes import ai_router, health_router
from pos_vision.core.config import settings
from pos_vision.core.exception_handlers import setup_exception_handlers
from pos_vision.core.logging import configure_logging
from pos_vision.core.middleware import request_id_middleware
from pos_vision.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="POS Vision API",
        description=(
            "AI-assisted barcode reading and product recognition for point-of-sale "
            "inventory. Requires X-API-Key; inbound requests are rate limited per key "
            "and outbound AI provider calls are queued and spaced out process-wide."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(ai_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)
    return app
