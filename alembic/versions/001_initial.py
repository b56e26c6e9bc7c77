"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create organizations table
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create branches table
    op.create_table(
        'branches',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create platform_integrations table
    op.create_table(
        'platform_integrations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('platform_restaurant_id', sa.String(255)),
        sa.Column('credentials', postgresql.JSON(), default={}),
        sa.Column('settings', postgresql.JSON(), default={}),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id')),
        sa.Column('platform_integration_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('platform_integrations.id'), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('platform_order_id', sa.String(255), nullable=False),
        sa.Column('order_number', sa.String(100)),
        sa.Column('order_type', sa.String(50), default='delivery'),
        sa.Column('status', sa.String(50), default='pending'),
        sa.Column('customer_name', sa.String(255)),
        sa.Column('customer_phone', sa.String(50)),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('delivery_fee_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('tax_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('tip_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('total_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('currency', sa.String(3)),
        sa.Column('payment_status', sa.String(50)),
        sa.Column('payment_method', sa.String(50)),
        sa.Column('platform_metadata', postgresql.JSON(), default={}),
        sa.Column('raw_payload', postgresql.JSON()),
        sa.Column('special_instructions', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime()),
        sa.Column('received_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('platform_integration_id', 'platform_order_id', name='uq_orders_integration_platform_order'),
    )

    # Create order_items table
    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, default=0),
        sa.Column('external_item_id', sa.String(255)),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('line_total_cents', sa.Integer(), nullable=False, default=0),
        sa.Column('special_instructions', sa.Text()),
        sa.Column('modifiers', postgresql.JSON(), default=[]),
    )

    # Create acceptance_timers table
    op.create_table(
        'acceptance_timers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('platform_integration_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('platform_integrations.id'), nullable=False),
        sa.Column('urgency', sa.String(20), nullable=False),
        sa.Column('deadline_at', sa.DateTime(), nullable=False),
        sa.Column('fire_at', sa.DateTime(), nullable=False),
        sa.Column('fired_at', sa.DateTime()),
        sa.Column('outcome', sa.String(50)),
        sa.Column('last_error', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create webhook_queue table
    op.create_table(
        'webhook_queue',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('tenant_hint', sa.String(255)),
        sa.Column('raw_body', sa.LargeBinary(), nullable=False),
        sa.Column('headers', postgresql.JSON(), default={}),
        sa.Column('attempt_count', sa.Integer(), nullable=False, default=1),
        sa.Column('max_attempts', sa.Integer(), nullable=False, default=5),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=False),
        sa.Column('last_error', sa.Text()),
        sa.Column('processed_at', sa.DateTime()),
        sa.Column('abandoned_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id')),
        sa.Column('actor_type', sa.String(50), default='system'),
        sa.Column('actor_name', sa.String(255)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True)),
        sa.Column('data_json', postgresql.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_branches_organization_id', 'branches', ['organization_id'])
    op.create_index(
        'uq_platform_integrations_active',
        'platform_integrations',
        ['organization_id', 'platform'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )
    op.create_index('ix_orders_organization_id', 'orders', ['organization_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_acceptance_timers_fire_at', 'acceptance_timers', ['fire_at'])
    op.create_index('ix_webhook_queue_platform', 'webhook_queue', ['platform'])
    op.create_index('ix_webhook_queue_next_attempt_at', 'webhook_queue', ['next_attempt_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('webhook_queue')
    op.drop_table('acceptance_timers')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('platform_integrations')
    op.drop_table('branches')
    op.drop_table('organizations')
