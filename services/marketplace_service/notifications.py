"""Order notifications, delivered as background jobs.

Callers enqueue an ARQ job after their transaction commits; the worker does
the actual send and retries independently. Enqueue failures are logged and
swallowed so a notification problem never fails or rolls back an order.
"""

from typing import Any, Optional

from libs.common.arq_config import get_task_pool
from libs.common.logging import get_logger
from services.marketplace_service.models import Order
from services.marketplace_service.services.parties import PartyRef, resolve_party
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SEND_EMAIL_TASK = "task_send_order_email"


class TaskQueueNotifier:
    """Notification sender backed by the ARQ task queue."""

    async def send(
        self, template_type: str, to_email: str, template_data: dict[str, Any]
    ) -> None:
        try:
            pool = await get_task_pool()
            await pool.enqueue_job(SEND_EMAIL_TASK, template_type, to_email, template_data)
        except Exception as e:
            logger.error("Failed to enqueue %s email for %s: %s", template_type, to_email, e)


def _order_summary(order: Order) -> dict[str, Any]:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "total": str(order.total_amount),
        "items": [
            {
                "name": item.product_name,
                "variant": item.variant_label,
                "quantity": item.quantity,
                "price": str(item.price_at_purchase),
            }
            for item in order.items
        ],
    }


async def _notify_party(
    db: AsyncSession,
    notifier,
    ref: PartyRef,
    template_type: str,
    template_data: dict[str, Any],
) -> None:
    try:
        party = await resolve_party(db, ref)
    except Exception as e:
        logger.error("Could not resolve %s %s for notification: %s", ref.kind.value, ref.id, e)
        return
    if party is None:
        logger.warning("Skipping %s email: %s %s not found", template_type, ref.kind.value, ref.id)
        return
    try:
        await notifier.send(template_type, party.email, {"name": party.name, **template_data})
    except Exception as e:
        logger.error("Failed to send %s email to %s: %s", template_type, party.email, e)


async def notify_seller_new_order(db: AsyncSession, notifier, order: Order) -> None:
    await _notify_party(
        db, notifier, PartyRef.seller(order.seller_id), "new_order_seller", _order_summary(order)
    )


async def notify_buyer_order_confirmed(db: AsyncSession, notifier, order: Order) -> None:
    await _notify_party(
        db,
        notifier,
        PartyRef.buyer(order.buyer_id),
        "order_confirmation_buyer",
        _order_summary(order),
    )


async def notify_buyer_status_changed(
    db: AsyncSession, notifier, order: Order, previous_status: Optional[str] = None
) -> None:
    data = _order_summary(order)
    data["previous_status"] = previous_status
    await _notify_party(
        db, notifier, PartyRef.buyer(order.buyer_id), "order_status_changed", data
    )
