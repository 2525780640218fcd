"""Unit tests for order status transitions and their inventory effects."""

import uuid

import pytest
from libs.auth.models import Principal, Role
from libs.common.errors import (
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from services.marketplace_service.models import (
    InventoryMovement,
    InventoryMovementType,
    OrderStatus,
    PaymentMethod,
    ProductVariant,
)
from services.marketplace_service.services.placement import place_order
from services.marketplace_service.services.queries import load_order
from services.marketplace_service.services.transitions import update_order_status
from sqlalchemy import select, update
from tests.fakes import ADMIN_ID, line

ADMIN = Principal(id=ADMIN_ID, role=Role.ADMIN)


def _seller(catalog) -> Principal:
    return Principal(id=str(catalog.seller.id), role=Role.SELLER)


async def _placed_order(db, catalog, notifier, address, quantity=2):
    order = await place_order(
        db,
        buyer_id=catalog.buyer.id,
        items=[line(catalog.shirt, catalog.shirt_a, quantity)],
        payment_method=PaymentMethod.CASH_ON_DELIVERY,
        shipping_address=address,
        notifier=notifier,
    )
    notifier.sent.clear()
    return order.id


async def _transition(db, order_id, status, notifier, actor=ADMIN):
    return await update_order_status(db, order_id, status, actor=actor, notifier=notifier)


async def _stock(db, variant) -> int:
    await db.refresh(variant)
    return variant.stock


# ---------------------------------------------------------------------------
# Cancel / reactivate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_then_reactivate_round_trips_stock(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)
    before_cancel = await _stock(db_session, catalog.shirt_a)
    await db_session.refresh(catalog.shirt)
    sold_before = catalog.shirt.sold

    await _transition(db_session, order_id, "canceled", notifier)
    assert await _stock(db_session, catalog.shirt_a) == before_cancel + 2

    result = await _transition(db_session, order_id, "pending", notifier)
    assert result.order.status == OrderStatus.PENDING
    assert await _stock(db_session, catalog.shirt_a) == before_cancel
    await db_session.refresh(catalog.shirt)
    assert catalog.shirt.sold == sold_before

    movement_types = (
        await db_session.execute(
            select(InventoryMovement.movement_type).where(
                InventoryMovement.reference_order_id == order_id
            )
        )
    ).scalars().all()
    assert sorted(movement_types) == sorted(
        [
            InventoryMovementType.SALE,
            InventoryMovementType.RELEASE,
            InventoryMovementType.REACTIVATION,
        ]
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reactivation_without_stock_keeps_order_canceled(
    db_session, catalog, notifier, address
):
    order_id = await _placed_order(db_session, catalog, notifier, address, quantity=5)
    await _transition(db_session, order_id, "canceled", notifier)

    # Someone else bought almost everything in the meantime
    await db_session.execute(
        update(ProductVariant).where(ProductVariant.id == catalog.shirt_a.id).values(stock=1)
    )
    await db_session.commit()
    notifier.sent.clear()

    with pytest.raises(InsufficientStockError):
        await _transition(db_session, order_id, "shipped", notifier)

    reloaded = await load_order(db_session, order_id)
    assert reloaded.status == OrderStatus.CANCELED
    assert await _stock(db_session, catalog.shirt_a) == 1
    assert notifier.sent == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transition_without_cancel_has_no_inventory_effect(
    db_session, catalog, notifier, address
):
    order_id = await _placed_order(db_session, catalog, notifier, address)
    stock = await _stock(db_session, catalog.shirt_a)

    result = await _transition(db_session, order_id, "shipped", notifier)
    assert result.changed is True
    result = await _transition(db_session, order_id, "delivered", notifier)

    assert result.order.status == OrderStatus.DELIVERED
    assert await _stock(db_session, catalog.shirt_a) == stock


@pytest.mark.asyncio
@pytest.mark.unit
async def test_any_status_can_follow_any_other(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)

    await _transition(db_session, order_id, "delivered", notifier)
    result = await _transition(db_session, order_id, "pending", notifier)

    assert result.order.status == OrderStatus.PENDING


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_status_leaves_order_unchanged(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)

    with pytest.raises(ValidationError):
        await _transition(db_session, order_id, "shipped2", notifier)

    reloaded = await load_order(db_session, order_id)
    assert reloaded.status == OrderStatus.PENDING
    assert notifier.sent == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_status_is_a_quiet_no_op(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)
    stock = await _stock(db_session, catalog.shirt_a)

    result = await _transition(db_session, order_id, "pending", notifier)

    assert result.changed is False
    assert notifier.sent == []
    assert await _stock(db_session, catalog.shirt_a) == stock


@pytest.mark.asyncio
@pytest.mark.unit
async def test_buyer_is_notified_of_change(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)

    await _transition(db_session, order_id, "shipped", notifier)

    assert notifier.templates() == ["order_status_changed"]
    message = notifier.sent[0]
    assert message["to_email"] == catalog.buyer.email
    assert message["template_data"]["status"] == "shipped"
    assert message["template_data"]["previous_status"] == "pending"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_owning_seller_may_transition(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)

    result = await _transition(
        db_session, order_id, "shipped", notifier, actor=_seller(catalog)
    )
    assert result.order.status == OrderStatus.SHIPPED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_other_seller_may_not_transition(db_session, catalog, notifier, address):
    order_id = await _placed_order(db_session, catalog, notifier, address)
    intruder = Principal(id=str(catalog.other_seller.id), role=Role.SELLER)

    with pytest.raises(ForbiddenError):
        await _transition(
            db_session, order_id, "canceled", notifier, actor=intruder
        )

    reloaded = await load_order(db_session, order_id)
    assert reloaded.status == OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_order(db_session, notifier):
    with pytest.raises(NotFoundError):
        await update_order_status(
            db_session, uuid.uuid4(), "shipped", actor=ADMIN, notifier=notifier
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_seller_without_account_id_may_not_transition(
    db_session, catalog, notifier, address
):
    order_id = await _placed_order(db_session, catalog, notifier, address)
    stranger = Principal(id="not-an-account", role=Role.SELLER)

    with pytest.raises(UnauthorizedError):
        await _transition(db_session, order_id, "shipped", notifier, actor=stranger)

    reloaded = await load_order(db_session, order_id)
    assert reloaded.status == OrderStatus.PENDING
