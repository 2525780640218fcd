"""Seller-facing order routes: incoming orders and status changes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_seller, require_seller_or_admin
from libs.auth.models import Principal
from libs.db.session import get_async_db
from services.marketplace_service.dependencies import get_notifier
from services.marketplace_service.models import OrderDateFilter, OrderStatus
from services.marketplace_service.routers._helpers import order_list_response
from services.marketplace_service.schemas import (
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from services.marketplace_service.services.queries import OrderScope, list_orders
from services.marketplace_service.services.transitions import update_order_status
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["fulfillment"])


@router.get("/seller", response_model=OrderListResponse)
async def list_seller_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    order_id: Optional[uuid.UUID] = Query(None, alias="orderId"),
    date_filter: Optional[OrderDateFilter] = Query(None, alias="dateFilter"),
    principal: Principal = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    """Orders placed with the calling seller, newest first."""
    result = await list_orders(
        db,
        OrderScope(seller_id=principal.party_id),
        page=page,
        limit=limit,
        status=status_filter,
        order_id=order_id,
        date_filter=date_filter,
    )
    return order_list_response("Orders fetched successfully", result)


@router.put("/{order_id}/status", response_model=OrderEnvelope)
async def change_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    principal: Principal = Depends(require_seller_or_admin),
    db: AsyncSession = Depends(get_async_db),
    notifier=Depends(get_notifier),
):
    """Move an order to a new status, adjusting stock on cancel/reactivate."""
    result = await update_order_status(
        db,
        order_id,
        payload.status,
        actor=principal,
        notifier=notifier,
    )
    message = (
        "Order status updated successfully"
        if result.changed
        else f"Order is already {result.order.status.value}"
    )
    return OrderEnvelope(message=message, order=OrderResponse.model_validate(result.order))
