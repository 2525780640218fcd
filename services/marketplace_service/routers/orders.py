"""Buyer order routes: placement, card checkout, history and order lookup."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import require_any_role, require_buyer
from libs.auth.models import Principal
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.marketplace_service.dependencies import get_notifier, get_payment_provider
from services.marketplace_service.models import OrderDateFilter, OrderStatus
from services.marketplace_service.routers._helpers import order_list_response
from services.marketplace_service.schemas import (
    CheckoutSessionResponse,
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
)
from services.marketplace_service.services.placement import place_order
from services.marketplace_service.services.queries import (
    OrderScope,
    get_order,
    list_orders,
)
from services.marketplace_service.services.reconciliation import (
    confirm_checkout,
    create_checkout_session,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["orders"])


# ============================================================================
# PLACEMENT
# ============================================================================


@router.post("/new", response_model=OrderEnvelope, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(require_buyer),
    db: AsyncSession = Depends(get_async_db),
    notifier=Depends(get_notifier),
):
    """Place a cash-on-delivery order."""
    order = await place_order(
        db,
        buyer_id=principal.party_id,
        items=payload.order_items,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address,
        notifier=notifier,
    )
    return OrderEnvelope(
        message="Order placed successfully", order=OrderResponse.model_validate(order)
    )


# ============================================================================
# CARD CHECKOUT
# ============================================================================


@router.post(
    "/checkout-session",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
@payment_limit
async def start_checkout_session(
    request: Request,
    payload: OrderCreate,
    principal: Principal = Depends(require_buyer),
    db: AsyncSession = Depends(get_async_db),
    provider=Depends(get_payment_provider),
):
    """Validate the order and open a hosted Stripe checkout for it."""
    handle = await create_checkout_session(
        db,
        buyer_id=principal.party_id,
        items=payload.order_items,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address,
        provider=provider,
    )
    return CheckoutSessionResponse(session_id=handle.session_id, url=handle.url)


@router.get("/confirm", response_model=OrderEnvelope)
async def confirm_checkout_session(
    session_id: str = Query(..., min_length=1),
    principal: Principal = Depends(require_buyer),
    db: AsyncSession = Depends(get_async_db),
    provider=Depends(get_payment_provider),
    notifier=Depends(get_notifier),
):
    """Create (or return the already created) order for a paid session."""
    result = await confirm_checkout(
        db,
        session_id,
        provider,
        notifier,
        expected_buyer_id=principal.party_id,
    )
    message = "Order created successfully" if result.created else "Order already confirmed"
    return OrderEnvelope(message=message, order=OrderResponse.model_validate(result.order))


# ============================================================================
# BUYER HISTORY
# ============================================================================


@router.get("/my", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    order_id: Optional[uuid.UUID] = Query(None, alias="orderId"),
    date_filter: Optional[OrderDateFilter] = Query(None, alias="dateFilter"),
    principal: Principal = Depends(require_buyer),
    db: AsyncSession = Depends(get_async_db),
):
    """The calling buyer's orders, newest first."""
    result = await list_orders(
        db,
        OrderScope(buyer_id=principal.party_id),
        page=page,
        limit=limit,
        status=status_filter,
        order_id=order_id,
        date_filter=date_filter,
    )
    return order_list_response("Orders fetched successfully", result)


# Registered last: the path parameter would otherwise shadow the static routes
@router.get("/{order_id}", response_model=OrderEnvelope)
async def get_single_order(
    order_id: uuid.UUID,
    principal: Principal = Depends(require_any_role),
    db: AsyncSession = Depends(get_async_db),
):
    """One order, visible to its buyer, its seller and admins."""
    order = await get_order(db, order_id, principal)
    return OrderEnvelope(
        message="Order fetched successfully", order=OrderResponse.model_validate(order)
    )
