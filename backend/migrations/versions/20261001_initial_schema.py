"""initial schema

Revision ID: 20261001_initial_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the serialdesk schema from scratch:
- users / session_tokens: accounts and opaque bearer sessions
- products / product_units: catalog and serialized physical units
- quotes / orders: B2B quote-backed ordering and B2C checkout
- warranties: registration and admin decision lifecycle
- activity_logs / email_logs: append-only audit and notification history
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_revoked', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # activity_logs / email_logs: append-only history
    # ============================================================================
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_logs_actor_user_id', 'activity_logs', ['actor_user_id'])
    op.create_index('ix_activity_logs_action', 'activity_logs', ['action'])
    op.create_index('ix_activity_logs_occurred_at', 'activity_logs', ['occurred_at'])
    op.create_index('ix_activity_logs_entity', 'activity_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_activity_logs_action_occurred', 'activity_logs', ['action', 'occurred_at'])

    op.create_table(
        'email_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient', sa.String(length=255), nullable=False),
        sa.Column('recipient_type', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('email_type', sa.String(length=32), nullable=False, server_default='general'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('related_entity_type', sa.String(length=32), nullable=True),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_logs_status', 'email_logs', ['status'])
    op.create_index('ix_email_logs_recipient_type', 'email_logs', ['recipient', 'email_type'])

    # ============================================================================
    # products: catalog with denormalized stock counters
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('retailer_price_cents', sa.Integer(), nullable=True),
        sa.Column('requires_quote', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('warranty_period_months', sa.Integer(), nullable=False, server_default='12'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('offline_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_recommended', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('recommended_product_ids', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_category_active', 'products', ['category', 'is_active'])

    # ============================================================================
    # quotes / orders
    # ============================================================================
    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('response_price_cents', sa.Integer(), nullable=True),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quotes_user_id', 'quotes', ['user_id'])
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_user_created', 'quotes', ['user_id', 'created_at'])

    op.create_table(
        'quote_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_lines_quote_id', 'quote_lines', ['quote_id'])
    op.create_index('ix_quote_lines_product_id', 'quote_lines', ['product_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=True),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_address', sa.Text(), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('order_status', sa.String(length=16), nullable=False, server_default='processing'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_quote_id', 'orders', ['quote_id'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('serial_numbers', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_id', 'order_lines', ['product_id'])

    # ============================================================================
    # product_units: one row per physical serialized item
    # ============================================================================
    op.create_table(
        'product_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('model_number', sa.String(length=128), nullable=False),
        sa.Column('warranty_period_months', sa.Integer(), nullable=True),
        sa.Column('manufacturing_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('stock_type', sa.String(length=16), nullable=False, server_default='both'),
        sa.Column('current_owner_id', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['current_owner_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_number', name='uq_product_units_serial'),
    )
    op.create_index('ix_product_units_product_id', 'product_units', ['product_id'])
    op.create_index('ix_product_units_status', 'product_units', ['status'])
    op.create_index('ix_product_units_current_owner_id', 'product_units', ['current_owner_id'])
    op.create_index('ix_product_units_order_id', 'product_units', ['order_id'])
    op.create_index('ix_product_units_product_status', 'product_units', ['product_id', 'status'])
    op.create_index('ix_product_units_product_status_type', 'product_units',
                    ['product_id', 'status', 'stock_type'])

    # ============================================================================
    # warranties
    # ============================================================================
    # product_unit_id carries no FK: warranties outlive hard-deleted units.
    op.create_table(
        'warranties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_unit_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('model_number', sa.String(length=128), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('purchase_type', sa.String(length=16), nullable=False),
        sa.Column('invoice_url', sa.String(length=512), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('warranty_period_months', sa.Integer(), nullable=False),
        sa.Column('warranty_start_date', sa.Date(), nullable=True),
        sa.Column('warranty_end_date', sa.Date(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('certificate_url', sa.String(length=512), nullable=True),
        sa.Column('decided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_retailer_sale', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('retailer_id', sa.Integer(), nullable=True),
        sa.Column('final_customer_name', sa.String(length=255), nullable=True),
        sa.Column('final_customer_email', sa.String(length=255), nullable=True),
        sa.Column('final_customer_phone', sa.String(length=64), nullable=True),
        sa.Column('final_customer_address', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['decided_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_warranties_user_id', 'warranties', ['user_id'])
    op.create_index('ix_warranties_product_id', 'warranties', ['product_id'])
    op.create_index('ix_warranties_product_unit_id', 'warranties', ['product_unit_id'])
    op.create_index('ix_warranties_serial_number', 'warranties', ['serial_number'])
    op.create_index('ix_warranties_status', 'warranties', ['status'])
    op.create_index('ix_warranties_serial_created', 'warranties', ['serial_number', 'created_at'])
    op.create_index('ix_warranties_status_created', 'warranties', ['status', 'created_at'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('warranties')
    op.drop_table('product_units')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_table('quote_lines')
    op.drop_table('quotes')
    op.drop_table('products')
    op.drop_table('email_logs')
    op.drop_table('activity_logs')
    op.drop_table('session_tokens')
    op.drop_table('users')
