"""Card checkout: hosted Stripe sessions reconciled into exactly one order.

Opening a session validates the request and stores the priced order intent in
the session metadata; nothing is written locally. Confirmation (from the
success redirect or a webhook) turns a paid session into an order. The
PaymentIntent id is the de-duplication key, enforced by a unique column, so
repeated confirmations return the order created by the first one.
"""

import json
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    ForbiddenError,
    InvalidRequestError,
    InvalidStateError,
    PaymentNotCompletedError,
    PaymentProviderError,
    UnauthorizedError,
    ValidationError,
)
from libs.common.logging import get_logger
from services.marketplace_service.models import Order, PaymentMethod
from services.marketplace_service.notifications import (
    notify_buyer_order_confirmed,
    notify_seller_new_order,
)
from services.marketplace_service.schemas import OrderItemCreate, ShippingAddress
from services.marketplace_service.services.parties import PartyRef, resolve_party
from services.marketplace_service.services.placement import (
    ValidatedOrder,
    build_order,
    persist_order,
    validate_order_request,
)
from services.marketplace_service.services.queries import load_order
from services.marketplace_service.stripe_client import (
    CheckoutLineItem,
    CheckoutSession,
    StripeError,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

settings = get_settings()

PAYMENT_GATEWAY = "stripe"

# Stripe metadata: at most 50 keys, values up to 500 characters
METADATA_VALUE_LIMIT = 500
METADATA_MAX_PARTS = 49
INTENT_PARTS_KEY = "order_intent_parts"
INTENT_PART_PREFIX = "order_intent_"

CONFIRMING_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}


@dataclass
class CheckoutSessionHandle:
    session_id: str
    url: Optional[str]


@dataclass
class ConfirmResult:
    order: Order
    created: bool


@dataclass
class IntentItem:
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    unit_price: Decimal


@dataclass
class OrderIntent:
    """The validated order as it was priced when the buyer paid."""

    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    total_amount: Decimal
    shipping_address: ShippingAddress
    items: list[IntentItem]


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# INTENT SERIALIZATION
# ============================================================================


def encode_intent(validated: ValidatedOrder) -> dict[str, str]:
    """Serialize a validated order into chunked metadata values."""
    payload = {
        "b": str(validated.buyer_id),
        "s": str(validated.seller_id),
        "t": str(validated.total_amount),
        "a": validated.shipping_address.model_dump(),
        "i": [
            [str(line.product.id), str(line.variant.id), line.quantity, str(line.unit_price)]
            for line in validated.lines
        ],
    }
    raw = json.dumps(payload, separators=(",", ":"))
    chunks = [
        raw[start : start + METADATA_VALUE_LIMIT]
        for start in range(0, len(raw), METADATA_VALUE_LIMIT)
    ]
    if len(chunks) > METADATA_MAX_PARTS:
        raise ValidationError("Order is too large for card checkout; split it into smaller orders")

    metadata = {f"{INTENT_PART_PREFIX}{index}": chunk for index, chunk in enumerate(chunks)}
    metadata[INTENT_PARTS_KEY] = str(len(chunks))
    return metadata


def decode_intent(metadata: dict[str, str]) -> OrderIntent:
    """Reassemble an order intent from session metadata."""
    try:
        parts = int(metadata[INTENT_PARTS_KEY])
        raw = "".join(metadata[f"{INTENT_PART_PREFIX}{index}"] for index in range(parts))
        payload = json.loads(raw)
        return OrderIntent(
            buyer_id=uuid.UUID(payload["b"]),
            seller_id=uuid.UUID(payload["s"]),
            total_amount=Decimal(payload["t"]),
            shipping_address=ShippingAddress.model_validate(payload["a"]),
            items=[
                IntentItem(
                    product_id=uuid.UUID(product_id),
                    variant_id=uuid.UUID(variant_id),
                    quantity=int(quantity),
                    unit_price=Decimal(unit_price),
                )
                for product_id, variant_id, quantity, unit_price in payload["i"]
            ],
        )
    except (KeyError, ValueError, TypeError) as e:
        raise InvalidStateError(f"Checkout session carries no readable order intent: {e}")


# ============================================================================
# CHECKOUT SESSION
# ============================================================================


async def create_checkout_session(
    db: AsyncSession,
    *,
    buyer_id: uuid.UUID,
    items: Sequence[OrderItemCreate],
    payment_method: PaymentMethod,
    shipping_address: ShippingAddress,
    provider,
) -> CheckoutSessionHandle:
    """Validate the order and open a hosted checkout for it. Writes nothing."""
    if payment_method != PaymentMethod.CARD:
        raise InvalidRequestError("Checkout sessions are only used for card payments")

    validated = await validate_order_request(
        db,
        buyer_id=buyer_id,
        items=items,
        payment_method=payment_method,
        shipping_address=shipping_address,
    )
    metadata = encode_intent(validated)

    buyer = await resolve_party(db, PartyRef.buyer(buyer_id))
    line_items = [
        CheckoutLineItem(
            name=line.product.name,
            description=line.variant.label or None,
            unit_amount=to_minor_units(line.unit_price),
            quantity=line.quantity,
        )
        for line in validated.lines
    ]

    try:
        session = await provider.create_checkout_session(
            line_items=line_items,
            currency=settings.STRIPE_CURRENCY,
            success_url=settings.CHECKOUT_SUCCESS_URL,
            cancel_url=settings.CHECKOUT_CANCEL_URL,
            client_reference_id=str(buyer_id),
            metadata=metadata,
            customer_email=buyer.email if buyer else None,
        )
    except StripeError as e:
        logger.error("Failed to open checkout session for buyer %s: %s", buyer_id, e.message)
        raise PaymentProviderError(f"Could not start checkout: {e.message}")

    logger.info(
        "Opened checkout session %s for buyer %s (total=%s)",
        session.id,
        buyer_id,
        validated.total_amount,
    )
    return CheckoutSessionHandle(session_id=session.id, url=session.url)


# ============================================================================
# CONFIRMATION
# ============================================================================


async def _find_by_transaction(db: AsyncSession, transaction_id: str) -> Optional[Order]:
    result = await db.execute(
        select(Order.id).where(Order.payment_transaction_id == transaction_id)
    )
    order_id = result.scalar_one_or_none()
    if order_id is None:
        return None
    return await load_order(db, order_id)


async def _revalidate(db: AsyncSession, intent: OrderIntent) -> ValidatedOrder:
    """Check the paid intent against the current catalog, keeping the charged prices."""
    validated = await validate_order_request(
        db,
        buyer_id=intent.buyer_id,
        items=[
            OrderItemCreate(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
            )
            for item in intent.items
        ],
        payment_method=PaymentMethod.CARD,
        shipping_address=intent.shipping_address,
    )
    if validated.seller_id != intent.seller_id:
        raise InvalidStateError("Checkout items no longer belong to the original seller")

    for line, item in zip(validated.lines, intent.items):
        line.unit_price = item.unit_price
    validated.total_amount = intent.total_amount
    return validated


async def confirm_checkout(
    db: AsyncSession,
    session_id: str,
    provider,
    notifier,
    expected_buyer_id: Optional[uuid.UUID] = None,
) -> ConfirmResult:
    """
    Turn a paid checkout session into its order, at most once.

    Args:
        session_id: Stripe Checkout Session id
        expected_buyer_id: when set, the session must belong to this buyer

    Returns:
        ConfirmResult with ``created=False`` when an earlier call already
        created the order for this payment

    Raises:
        PaymentNotCompletedError: the provider does not report the session as paid
        ForbiddenError: the session belongs to a different buyer
        InsufficientStockError: stock ran out between checkout and confirmation
    """
    try:
        session: CheckoutSession = await provider.retrieve_checkout_session(session_id)
    except StripeError as e:
        if e.status_code == 404:
            raise PaymentNotCompletedError(f"Checkout session {session_id} not found")
        raise PaymentProviderError(f"Could not verify payment: {e.message}")

    if not session.is_paid:
        raise PaymentNotCompletedError()

    intent = decode_intent(session.metadata)
    if expected_buyer_id is not None and intent.buyer_id != expected_buyer_id:
        raise ForbiddenError("This checkout session belongs to another buyer")

    transaction_id = session.payment_intent_id or session.id

    existing = await _find_by_transaction(db, transaction_id)
    if existing is not None:
        logger.info(
            "Payment %s already reconciled as order %s", transaction_id, existing.order_number
        )
        return ConfirmResult(order=existing, created=False)

    try:
        validated = await _revalidate(db, intent)
    except Exception:
        logger.error(
            "Payment %s captured but order could not be created for buyer %s",
            transaction_id,
            intent.buyer_id,
        )
        raise

    order = build_order(
        validated,
        payment_transaction_id=transaction_id,
        payment_gateway=PAYMENT_GATEWAY,
        payment_date=utc_now(),
    )
    try:
        order_id = await persist_order(db, order)
    except IntegrityError:
        # A concurrent confirmation inserted the same payment first
        existing = await _find_by_transaction(db, transaction_id)
        if existing is None:
            raise
        return ConfirmResult(order=existing, created=False)

    order = await load_order(db, order_id)
    logger.info(
        "Payment %s reconciled as order %s (total=%s)",
        transaction_id,
        order.order_number,
        order.total_amount,
    )

    await notify_seller_new_order(db, notifier, order)
    await notify_buyer_order_confirmed(db, notifier, order)
    return ConfirmResult(order=order, created=True)


async def handle_webhook_event(
    db: AsyncSession,
    payload: bytes,
    signature: Optional[str],
    provider,
    notifier,
) -> Optional[ConfirmResult]:
    """Verify and process a Stripe webhook delivery."""
    if not provider.verify_webhook_signature(payload, signature):
        raise UnauthorizedError("Invalid webhook signature")

    try:
        event = json.loads(payload)
        event_type = event["type"]
    except (ValueError, KeyError, TypeError):
        raise ValidationError("Malformed webhook payload")
    if not isinstance(event_type, str):
        raise ValidationError("Malformed webhook payload")

    if event_type not in CONFIRMING_EVENTS:
        logger.info("Ignoring Stripe event %s", event_type)
        return None

    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    session_id = session.get("id") if isinstance(session, dict) else None
    if not session_id or not isinstance(session_id, str):
        raise ValidationError("Webhook event carries no checkout session")

    try:
        return await confirm_checkout(db, session_id, provider, notifier)
    except PaymentNotCompletedError:
        # Delayed methods complete later with async_payment_succeeded
        logger.info("Checkout session %s completed without payment yet", session_id)
        return None
