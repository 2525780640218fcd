"""create_marketplace_tables

Revision ID: 3f9c1a7d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


order_status_enum = sa.Enum(
    'pending', 'shipped', 'delivered', 'canceled', name='order_status_enum'
)
payment_method_enum = sa.Enum('cash on delivery', 'card', name='payment_method_enum')
inventory_movement_type_enum = sa.Enum(
    'sale', 'release', 'reactivation', 'adjustment', name='inventory_movement_type_enum'
)


def upgrade() -> None:
    """Upgrade schema - Create parties, catalog, orders and inventory audit tables."""

    op.create_table(
        'buyers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_buyers'),
        sa.UniqueConstraint('email', name='uq_buyers_email'),
    )

    op.create_table(
        'sellers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('store_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_sellers'),
        sa.UniqueConstraint('email', name='uq_sellers_email'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sold', sa.Integer(), server_default='0', nullable=False),
        sa.Column('count_in_stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['seller_id'], ['sellers.id'],
            name='fk_products_seller_id_sellers', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('name', name='uq_products_name'),
        sa.UniqueConstraint('slug', name='uq_products_slug'),
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discounted_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            'stock >= 0', name='ck_product_variants_non_negative_stock'
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_product_variants_product_id_products', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_product_variants'),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=20), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', order_status_enum, server_default='pending', nullable=False),
        sa.Column('payment_method', payment_method_enum, nullable=False),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('payment_gateway', sa.String(length=50), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipping_street', sa.String(length=255), nullable=False),
        sa.Column('shipping_city', sa.String(length=100), nullable=False),
        sa.Column('shipping_state', sa.String(length=100), nullable=False),
        sa.Column('shipping_country', sa.String(length=100), nullable=False),
        sa.Column('shipping_postal_code', sa.String(length=10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['buyer_id'], ['buyers.id'], name='fk_orders_buyer_id_buyers'
        ),
        sa.ForeignKeyConstraint(
            ['seller_id'], ['sellers.id'], name='fk_orders_seller_id_sellers'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint(
            'payment_transaction_id', name='uq_orders_payment_transaction_id'
        ),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_seller_id_status', 'orders', ['seller_id', 'status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('variant_label', sa.String(length=120), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_positive_quantity'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_order_items_order_id_orders', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'], name='fk_order_items_product_id_products'
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['product_variants.id'],
            name='fk_order_items_variant_id_product_variants',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('movement_type', inventory_movement_type_enum, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reference_order_id', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_inventory_movements_product_id_products', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['product_variants.id'],
            name='fk_inventory_movements_variant_id_product_variants', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['reference_order_id'], ['orders.id'],
            name='fk_inventory_movements_reference_order_id_orders', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_movements'),
    )
    op.create_index(
        'ix_inventory_movements_variant_id', 'inventory_movements', ['variant_id']
    )
    op.create_index(
        'ix_inventory_movements_reference_order_id',
        'inventory_movements',
        ['reference_order_id'],
    )


def downgrade() -> None:
    """Downgrade schema - Drop marketplace tables."""
    op.drop_table('inventory_movements')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('sellers')
    op.drop_table('buyers')

    bind = op.get_bind()
    inventory_movement_type_enum.drop(bind, checkfirst=True)
    payment_method_enum.drop(bind, checkfirst=True)
    order_status_enum.drop(bind, checkfirst=True)
