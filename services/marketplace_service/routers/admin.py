"""Admin order routes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import Principal
from libs.db.session import get_async_db
from services.marketplace_service.models import OrderDateFilter, OrderStatus
from services.marketplace_service.routers._helpers import order_list_response
from services.marketplace_service.schemas import OrderDeletedResponse, OrderListResponse
from services.marketplace_service.services.queries import (
    OrderScope,
    delete_order,
    list_orders,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin"])


@router.get("/all", response_model=OrderListResponse)
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    order_id: Optional[uuid.UUID] = Query(None, alias="orderId"),
    date_filter: Optional[OrderDateFilter] = Query(None, alias="dateFilter"),
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Every order in the marketplace, newest first."""
    result = await list_orders(
        db,
        OrderScope(),
        page=page,
        limit=limit,
        status=status_filter,
        order_id=order_id,
        date_filter=date_filter,
    )
    return order_list_response("Orders fetched successfully", result)


@router.delete("/{order_id}", response_model=OrderDeletedResponse)
async def remove_order(
    order_id: uuid.UUID,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete an order outright. Stock is not reconciled."""
    await delete_order(db, order_id)
    return OrderDeletedResponse(message="Order deleted successfully", order_id=order_id)
