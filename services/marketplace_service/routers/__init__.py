"""Marketplace service routers package."""

from services.marketplace_service.routers.admin import router as admin_router
from services.marketplace_service.routers.fulfillment import (
    router as fulfillment_router,
)
from services.marketplace_service.routers.orders import router as orders_router
from services.marketplace_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "fulfillment_router",
    "orders_router",
    "webhooks_router",
]
