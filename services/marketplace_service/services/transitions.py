"""Order status transitions and their inventory side effects.

Any status may move to any other status. Moving into ``canceled`` puts every
line's quantity back into stock; moving out of ``canceled`` takes it out again
after checking that every line can still be covered. The order row is locked
for the duration, and the stock changes commit together with the status.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.auth.models import Principal, Role
from libs.common.errors import ForbiddenError, InvalidRequestError, NotFoundError
from libs.common.logging import get_logger
from services.marketplace_service.models import InventoryMovementType, Order, OrderStatus
from services.marketplace_service.notifications import notify_buyer_status_changed
from services.marketplace_service.services.ledger import (
    apply_stock_deltas,
    check_order_items_available,
    release_deltas,
    sale_deltas,
)
from services.marketplace_service.services.queries import load_order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class TransitionResult:
    order: Order
    changed: bool


def parse_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus(raw)
    except ValueError:
        allowed = ", ".join(status.value for status in OrderStatus)
        raise InvalidRequestError(f"Invalid status '{raw}'. Must be one of: {allowed}")


async def _lock_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _apply_inventory_effects(
    db: AsyncSession, order: Order, previous: OrderStatus, target: OrderStatus
) -> None:
    if target == OrderStatus.CANCELED:
        await apply_stock_deltas(
            db,
            release_deltas(order.items),
            InventoryMovementType.RELEASE,
            order_id=order.id,
            notes=f"Order {order.order_number} canceled",
        )
    elif previous == OrderStatus.CANCELED:
        await check_order_items_available(db, order.items)
        await apply_stock_deltas(
            db,
            sale_deltas(order.items),
            InventoryMovementType.REACTIVATION,
            order_id=order.id,
            notes=f"Order {order.order_number} reactivated as {target.value}",
        )


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    new_status: str,
    actor: Principal,
    notifier,
) -> TransitionResult:
    """
    Move an order to ``new_status``.

    Raises:
        InvalidRequestError: ``new_status`` is not a known status
        NotFoundError: no such order
        ForbiddenError: a seller acting on another seller's order
        UnauthorizedError: a seller whose token id is not an account id
        InsufficientStockError: reactivating a canceled order that stock can
            no longer cover (the order stays canceled)
    """
    target = parse_status(new_status)

    try:
        order = await _lock_order(db, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if actor.role == Role.SELLER and order.seller_id != actor.party_id:
            raise ForbiddenError("You can only update your own orders")

        previous = order.status
        if previous == target:
            # Release the row lock
            await db.commit()
            return TransitionResult(order=order, changed=False)

        await _apply_inventory_effects(db, order, previous, target)
        order.status = target
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    order = await load_order(db, order_id)
    logger.info(
        "Order %s moved %s -> %s by %s %s",
        order.order_number,
        previous.value,
        target.value,
        actor.role.value,
        actor.id,
    )

    await notify_buyer_status_changed(db, notifier, order, previous_status=previous.value)
    return TransitionResult(order=order, changed=True)
