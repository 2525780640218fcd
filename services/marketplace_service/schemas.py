"""Pydantic schemas for the marketplace service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from services.marketplace_service.models import OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    """Request body base accepting both camelCase and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ============================================================================
# ORDER REQUEST SCHEMAS
# ============================================================================


class OrderItemCreate(CamelModel):
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class ShippingAddress(CamelModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=10)


class OrderCreate(CamelModel):
    """Place an order (cash path) or open a card checkout session."""

    order_items: list[OrderItemCreate] = Field(..., min_length=1)
    payment_method: PaymentMethod
    shipping_address: ShippingAddress


class OrderStatusUpdate(BaseModel):
    """Status change request (seller/admin). Validated against OrderStatus by the service."""

    status: str


# ============================================================================
# ORDER RESPONSE SCHEMAS
# ============================================================================


class ShippingAddressResponse(BaseModel):
    street: str
    city: str
    state: str
    country: str
    postal_code: Optional[str] = None


class PaymentDetailsResponse(BaseModel):
    transaction_id: str
    payment_gateway: Optional[str] = None
    payment_date: Optional[datetime] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    price_at_purchase: Decimal
    line_total: Decimal
    product_name: str
    variant_label: Optional[str]
    image_url: Optional[str]


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    status: OrderStatus
    total_amount: Decimal
    payment_method: PaymentMethod
    payment_details: Optional[PaymentDetailsResponse] = None
    shipping_address: ShippingAddressResponse
    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []


class OrderEnvelope(BaseModel):
    message: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Paginated order list."""

    message: str
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class OrderDeletedResponse(BaseModel):
    message: str
    order_id: uuid.UUID


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutSessionResponse(BaseModel):
    """Hosted checkout opened; the client redirects to ``url``."""

    session_id: str
    url: Optional[str] = None
