"""Order placement for the cash-on-delivery path.

Validation is shared with card checkout: both paths resolve line items,
price them, check single-seller consistency and stock before anything is
written. The order insert and its stock decrements commit together, so a
rejected conditional decrement leaves neither an order nor partial stock
changes behind.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.errors import InternalError, InvalidRequestError, ValidationError
from libs.common.logging import get_logger
from services.marketplace_service.models import (
    InventoryMovementType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)
from services.marketplace_service.notifications import notify_seller_new_order
from services.marketplace_service.schemas import OrderItemCreate, ShippingAddress
from services.marketplace_service.services.ledger import (
    ResolvedLine,
    apply_stock_deltas,
    check_availability,
    load_line_items,
    sale_deltas,
)
from services.marketplace_service.services.queries import load_order
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("street", "city", "state", "country")

ORDER_NUMBER_ATTEMPTS = 3


@dataclass
class ValidatedOrder:
    """An order request that passed every pre-write check."""

    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    lines: list[ResolvedLine]
    total_amount: Decimal
    payment_method: PaymentMethod
    shipping_address: ShippingAddress


def _check_request_shape(
    items: Sequence[OrderItemCreate], shipping_address: Optional[ShippingAddress]
) -> None:
    if not items:
        raise ValidationError("Order must contain at least one item")
    for item in items:
        if item.quantity < 1:
            raise ValidationError("Item quantity must be at least 1")
    if shipping_address is None:
        raise ValidationError("Shipping address is required")
    missing = [
        name
        for name in REQUIRED_ADDRESS_FIELDS
        if not (getattr(shipping_address, name, None) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Shipping address is missing: {', '.join(missing)}")


async def validate_order_request(
    db: AsyncSession,
    *,
    buyer_id: uuid.UUID,
    items: Sequence[OrderItemCreate],
    payment_method: PaymentMethod,
    shipping_address: ShippingAddress,
) -> ValidatedOrder:
    """
    Run every check that must pass before an order may be written.

    Raises:
        ValidationError: empty items, bad quantity or incomplete address
        NotFoundError: a product or variant does not exist
        InvalidStateError: a variant has no positive price
        InvalidRequestError: items belong to more than one seller
        InsufficientStockError: a variant cannot cover the requested quantity
    """
    _check_request_shape(items, shipping_address)

    lines = await load_line_items(db, items)

    seller_id = lines[0].seller_id
    for line in lines[1:]:
        if line.seller_id != seller_id:
            raise InvalidRequestError("All items in an order must belong to the same seller")

    check_availability(lines)

    total_amount = sum((line.line_total for line in lines), Decimal("0"))
    return ValidatedOrder(
        buyer_id=buyer_id,
        seller_id=seller_id,
        lines=lines,
        total_amount=total_amount,
        payment_method=payment_method,
        shipping_address=shipping_address,
    )


def build_order(
    validated: ValidatedOrder,
    *,
    payment_transaction_id: Optional[str] = None,
    payment_gateway: Optional[str] = None,
    payment_date: Optional[datetime] = None,
) -> Order:
    """Materialize a pending Order with snapshotted line items."""
    address = validated.shipping_address
    return Order(
        order_number=Order.generate_order_number(),
        buyer_id=validated.buyer_id,
        seller_id=validated.seller_id,
        total_amount=validated.total_amount,
        status=OrderStatus.PENDING,
        payment_method=validated.payment_method,
        payment_transaction_id=payment_transaction_id,
        payment_gateway=payment_gateway,
        payment_date=payment_date,
        shipping_street=address.street,
        shipping_city=address.city,
        shipping_state=address.state,
        shipping_country=address.country,
        shipping_postal_code=address.postal_code,
        items=[
            OrderItem(
                position=position,
                product_id=line.product.id,
                variant_id=line.variant.id,
                quantity=line.quantity,
                price_at_purchase=line.unit_price,
                product_name=line.product.name,
                variant_label=line.variant.label,
                image_url=line.variant.image_url,
            )
            for position, line in enumerate(validated.lines)
        ],
    )


async def _order_number_taken(db: AsyncSession, order_number: str) -> bool:
    result = await db.execute(select(Order.id).where(Order.order_number == order_number))
    return result.first() is not None


async def persist_order(db: AsyncSession, order: Order) -> uuid.UUID:
    """
    Insert the order and take its quantities out of stock, in one transaction.

    An insert that loses an ``order_number`` collision is retried with a fresh
    number. Any other integrity failure, such as a duplicate payment
    transaction, is re-raised for the caller.

    Raises:
        InsufficientStockError: a conditional decrement was rejected
        IntegrityError: a unique constraint other than the order number
        InternalError: no free order number after ORDER_NUMBER_ATTEMPTS tries
    """
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            db.add(order)
            await db.flush()
            await apply_stock_deltas(
                db,
                sale_deltas(order.items),
                InventoryMovementType.SALE,
                order_id=order.id,
                notes=f"Order {order.order_number}",
            )
            await db.commit()
            return order.id
        except IntegrityError:
            await db.rollback()
            if not await _order_number_taken(db, order.order_number):
                raise
            logger.warning(
                "Order number %s already taken (attempt %d/%d)",
                order.order_number,
                attempt,
                ORDER_NUMBER_ATTEMPTS,
            )
            order.order_number = Order.generate_order_number()
        except Exception:
            await db.rollback()
            raise

    raise InternalError("Could not allocate an order number, please retry")


async def place_order(
    db: AsyncSession,
    *,
    buyer_id: uuid.UUID,
    items: Sequence[OrderItemCreate],
    payment_method: PaymentMethod,
    shipping_address: ShippingAddress,
    notifier,
) -> Order:
    """Create a pending cash-on-delivery order and reserve its stock."""
    if payment_method != PaymentMethod.CASH_ON_DELIVERY:
        raise InvalidRequestError(
            "Card payments must be placed through a checkout session"
        )

    validated = await validate_order_request(
        db,
        buyer_id=buyer_id,
        items=items,
        payment_method=payment_method,
        shipping_address=shipping_address,
    )

    order_id = await persist_order(db, build_order(validated))
    order = await load_order(db, order_id)
    logger.info(
        "Order %s placed by buyer %s (seller=%s, total=%s)",
        order.order_number,
        buyer_id,
        order.seller_id,
        order.total_amount,
    )

    await notify_seller_new_order(db, notifier, order)
    return order
