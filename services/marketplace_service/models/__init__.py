"""Marketplace service models package."""

from services.marketplace_service.models.catalog import (
    Buyer,
    Product,
    ProductVariant,
    Seller,
)
from services.marketplace_service.models.enums import (
    InventoryMovementType,
    OrderDateFilter,
    OrderStatus,
    PartyKind,
    PaymentMethod,
    enum_values,
)
from services.marketplace_service.models.inventory import InventoryMovement
from services.marketplace_service.models.orders import Order, OrderItem

__all__ = [
    "Buyer",
    "InventoryMovement",
    "InventoryMovementType",
    "Order",
    "OrderDateFilter",
    "OrderItem",
    "OrderStatus",
    "PartyKind",
    "PaymentMethod",
    "Product",
    "ProductVariant",
    "Seller",
    "enum_values",
]
