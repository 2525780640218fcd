"""FastAPI application for the Marketplace Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.arq_config import close_task_pool
from libs.common.config import get_settings
from libs.common.errors import add_exception_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.marketplace_service.routers import (
    admin_router,
    fulfillment_router,
    orders_router,
    webhooks_router,
)
from slowapi.errors import RateLimitExceeded

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_task_pool()
    logger.info("Marketplace service shut down")


def create_app() -> FastAPI:
    """Create and configure the Marketplace Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="Marketplace Service",
        version="0.1.0",
        description="Order placement, card checkout and fulfillment for the marketplace.",
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Structured logging + request tracing
    add_observability_middleware(app)

    # Every error leaves as {status, data, message}
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": settings.SERVICE_NAME}

    # Static paths first; the buyer router ends with GET /{order_id}
    app.include_router(webhooks_router, prefix="/order")
    app.include_router(fulfillment_router, prefix="/order")
    app.include_router(admin_router, prefix="/order")
    app.include_router(orders_router, prefix="/order")

    return app


app = create_app()
