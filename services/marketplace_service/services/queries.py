"""Order reads and the admin delete escape hatch."""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.auth.models import Principal, Role
from libs.common.datetime_utils import previous_month_window, start_of_month, start_of_week
from libs.common.errors import ForbiddenError, NotFoundError
from libs.common.logging import get_logger
from services.marketplace_service.models import Order, OrderDateFilter, OrderStatus
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class OrderScope:
    """Which orders a listing may see: one buyer's, one seller's, or all."""

    buyer_id: Optional[uuid.UUID] = None
    seller_id: Optional[uuid.UUID] = None


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


async def load_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
    """Fetch an order with its line items, bypassing stale identity-map state."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def date_window(
    date_filter: OrderDateFilter, now: Optional[datetime] = None
) -> tuple[datetime, Optional[datetime]]:
    """UTC [start, end) for a date filter; end is None for open-ended windows."""
    if date_filter == OrderDateFilter.THIS_WEEK:
        return start_of_week(now), None
    if date_filter == OrderDateFilter.THIS_MONTH:
        return start_of_month(now), None
    return previous_month_window(now)


async def list_orders(
    db: AsyncSession,
    scope: OrderScope,
    page: int = 1,
    limit: int = 10,
    status: Optional[OrderStatus] = None,
    order_id: Optional[uuid.UUID] = None,
    date_filter: Optional[OrderDateFilter] = None,
) -> OrderPage:
    """Newest-first page of orders visible to ``scope`` after optional filters."""
    conditions = []
    if scope.buyer_id is not None:
        conditions.append(Order.buyer_id == scope.buyer_id)
    if scope.seller_id is not None:
        conditions.append(Order.seller_id == scope.seller_id)
    if status is not None:
        conditions.append(Order.status == status)
    if order_id is not None:
        conditions.append(Order.id == order_id)
    if date_filter is not None:
        start, end = date_window(date_filter)
        conditions.append(Order.created_at >= start)
        if end is not None:
            conditions.append(Order.created_at < end)

    total = (
        await db.execute(select(func.count()).select_from(Order).where(*conditions))
    ).scalar_one()

    result = await db.execute(
        select(Order)
        .where(*conditions)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.order_number)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return OrderPage(orders=list(result.scalars().all()), total=total, page=page, limit=limit)


async def get_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    principal: Principal,
) -> Order:
    """Fetch one order for its buyer, its seller, or an admin."""
    order = await load_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    if principal.is_admin:
        return order
    if principal.role == Role.BUYER and order.buyer_id == principal.party_id:
        return order
    if principal.role == Role.SELLER and order.seller_id == principal.party_id:
        return order
    raise ForbiddenError("You do not have access to this order")


async def delete_order(db: AsyncSession, order_id: uuid.UUID) -> None:
    """Physically remove an order. Stock is left exactly as it is."""
    order = await load_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    try:
        await db.delete(order)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.warning("Order %s deleted without inventory reconciliation", order.order_number)
