"""Variant stock ledger: signed-delta stock updates keyed by (product, variant).

Stock is never read-then-written. Every mutation is a single conditional
UPDATE that refuses to take a variant below zero, so concurrent placements,
confirmations and status transitions cannot lose updates or oversell.
Callers own the transaction; a failed delta leaves earlier deltas in the same
batch to be rolled back by the caller.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from libs.common.errors import InsufficientStockError, InvalidStateError, NotFoundError
from libs.common.logging import get_logger
from services.marketplace_service.models import (
    InventoryMovement,
    InventoryMovementType,
    OrderItem,
    Product,
    ProductVariant,
)
from services.marketplace_service.schemas import OrderItemCreate
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class ResolvedLine:
    """A requested line item bound to its catalog rows and effective price."""

    product: Product
    variant: ProductVariant
    quantity: int
    unit_price: Decimal

    @property
    def seller_id(self) -> uuid.UUID:
        return self.product.seller_id

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class StockDelta:
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int  # negative = take from stock, positive = return to stock


def effective_unit_price(variant: ProductVariant) -> Decimal:
    """discounted_price when set and positive, otherwise price."""
    if variant.discounted_price is not None and variant.discounted_price > 0:
        price = Decimal(variant.discounted_price)
    else:
        price = Decimal(variant.price)
    if price <= 0:
        raise InvalidStateError(f"Variant {variant.id} has no valid price")
    return price


async def load_line_items(
    db: AsyncSession, items: Sequence[OrderItemCreate]
) -> list[ResolvedLine]:
    """Fetch the product and variant for every requested line, in request order."""
    product_ids = {item.product_id for item in items}
    variant_ids = {item.variant_id for item in items}

    products_result = await db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .execution_options(populate_existing=True)
    )
    products = {product.id: product for product in products_result.scalars().all()}

    variants_result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.id.in_(variant_ids))
        .execution_options(populate_existing=True)
    )
    variants = {variant.id: variant for variant in variants_result.scalars().all()}

    lines = []
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise NotFoundError(f"Product {item.product_id} not found")
        variant = variants.get(item.variant_id)
        if variant is None or variant.product_id != product.id:
            raise NotFoundError(
                f"Variant {item.variant_id} not found for product {product.name}"
            )
        lines.append(
            ResolvedLine(
                product=product,
                variant=variant,
                quantity=item.quantity,
                unit_price=effective_unit_price(variant),
            )
        )
    return lines


def _requested_per_variant(lines: Iterable[ResolvedLine]) -> dict[uuid.UUID, int]:
    requested: dict[uuid.UUID, int] = defaultdict(int)
    for line in lines:
        requested[line.variant.id] += line.quantity
    return requested


def check_availability(lines: Sequence[ResolvedLine]) -> None:
    """Read-only stock check over already loaded variants."""
    requested = _requested_per_variant(lines)
    for line in lines:
        wanted = requested[line.variant.id]
        if line.variant.stock < wanted:
            raise InsufficientStockError(
                f"Insufficient stock for {line.product.name}: "
                f"{line.variant.stock} available, {wanted} requested"
            )


async def check_order_items_available(
    db: AsyncSession, items: Sequence[OrderItem]
) -> None:
    """Stock check for existing order lines, read fresh from the store."""
    requested: dict[uuid.UUID, int] = defaultdict(int)
    for item in items:
        requested[item.variant_id] += item.quantity

    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.id.in_(requested.keys()))
        .execution_options(populate_existing=True)
    )
    variants = {variant.id: variant for variant in result.scalars().all()}

    for item in items:
        variant = variants.get(item.variant_id)
        if variant is None:
            raise NotFoundError(f"Variant {item.variant_id} no longer exists")
        if variant.stock < requested[item.variant_id]:
            raise InsufficientStockError(
                f"Insufficient stock for {item.product_name}: "
                f"{variant.stock} available, {requested[item.variant_id]} requested"
            )


def sale_deltas(lines: Iterable) -> list[StockDelta]:
    """Deltas that take every line's quantity out of stock.

    Accepts ResolvedLine or OrderItem rows.
    """
    deltas = []
    for line in lines:
        if isinstance(line, ResolvedLine):
            deltas.append(StockDelta(line.product.id, line.variant.id, -line.quantity))
        else:
            deltas.append(StockDelta(line.product_id, line.variant_id, -line.quantity))
    return deltas


def release_deltas(items: Iterable[OrderItem]) -> list[StockDelta]:
    """Deltas that put every order line's quantity back into stock."""
    return [StockDelta(item.product_id, item.variant_id, item.quantity) for item in items]


def _merge(deltas: Iterable[StockDelta]) -> list[StockDelta]:
    merged: dict[tuple[uuid.UUID, uuid.UUID], int] = defaultdict(int)
    for delta in deltas:
        merged[(delta.product_id, delta.variant_id)] += delta.quantity
    return [
        StockDelta(product_id, variant_id, quantity)
        for (product_id, variant_id), quantity in merged.items()
        if quantity != 0
    ]


async def apply_stock_deltas(
    db: AsyncSession,
    deltas: Iterable[StockDelta],
    movement_type: InventoryMovementType,
    order_id: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
) -> None:
    """Apply signed deltas to variant stock and the product counters.

    For each variant: ``stock += delta`` only where the result stays >= 0,
    then ``sold -= delta`` and ``count_in_stock += delta`` on the product.

    Raises:
        InsufficientStockError: a delta matched no row (stock would go negative,
            or the variant no longer belongs to the product)
    """
    for delta in _merge(deltas):
        result = await db.execute(
            update(ProductVariant)
            .where(
                ProductVariant.id == delta.variant_id,
                ProductVariant.product_id == delta.product_id,
                ProductVariant.stock + delta.quantity >= 0,
            )
            .values(stock=ProductVariant.stock + delta.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Conditional stock update rejected for variant %s (delta=%d)",
                delta.variant_id,
                delta.quantity,
            )
            raise InsufficientStockError(
                f"Insufficient stock for variant {delta.variant_id}"
            )

        await db.execute(
            update(Product)
            .where(Product.id == delta.product_id)
            .values(
                sold=Product.sold - delta.quantity,
                count_in_stock=Product.count_in_stock + delta.quantity,
            )
            .execution_options(synchronize_session=False)
        )

        db.add(
            InventoryMovement(
                product_id=delta.product_id,
                variant_id=delta.variant_id,
                movement_type=movement_type,
                quantity=delta.quantity,
                reference_order_id=order_id,
                notes=notes,
            )
        )
