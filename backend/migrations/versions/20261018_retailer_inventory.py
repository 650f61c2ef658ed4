"""retailer inventory

Revision ID: 20261018_retailer_inventory
Revises: 20261001_initial_schema
Create Date: 2026-10-18 00:00:00.000000

Adds retailer_inventory: one row per unit a retailer bought, tracking its
onward sale to an end customer and the warranty registered for that sale.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_retailer_inventory'
down_revision = '20261001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'retailer_inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('retailer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_unit_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('model_number', sa.String(length=128), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='in_stock'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('sold_to_name', sa.String(length=255), nullable=True),
        sa.Column('sold_to_email', sa.String(length=255), nullable=True),
        sa.Column('sold_to_phone', sa.String(length=64), nullable=True),
        sa.Column('sold_to_address', sa.Text(), nullable=True),
        sa.Column('sold_date', sa.Date(), nullable=True),
        sa.Column('selling_price_cents', sa.Integer(), nullable=True),
        sa.Column('customer_invoice_url', sa.String(length=512), nullable=True),
        sa.Column('warranty_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['retailer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['warranty_id'], ['warranties.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_unit_id', name='uq_retailer_inventory_unit'),
    )
    op.create_index('ix_retailer_inventory_retailer_id', 'retailer_inventory', ['retailer_id'])
    op.create_index('ix_retailer_inventory_product_id', 'retailer_inventory', ['product_id'])
    op.create_index('ix_retailer_inventory_order_id', 'retailer_inventory', ['order_id'])
    op.create_index('ix_retailer_inventory_serial_number', 'retailer_inventory', ['serial_number'])
    op.create_index('ix_retailer_inventory_retailer_status', 'retailer_inventory', ['retailer_id', 'status'])


def downgrade():
    op.drop_table('retailer_inventory')
