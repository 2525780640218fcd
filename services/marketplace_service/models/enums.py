"""Enum definitions for marketplace models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class PartyKind(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash on delivery"
    CARD = "card"


class InventoryMovementType(str, enum.Enum):
    SALE = "sale"
    RELEASE = "release"
    REACTIVATION = "reactivation"
    ADJUSTMENT = "adjustment"


class OrderDateFilter(str, enum.Enum):
    THIS_WEEK = "thisWeek"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
