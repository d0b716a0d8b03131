"""Add billing tables

Revision ID: 20260302_001_billing
Revises:
Create Date: 2026-03-02 10:00:00.000000

This migration adds the purchase reconciliation tables:
- profiles: User credit balance and unlimited plan state
- products: Credit packs and plans for sale
- purchases: One row per checkout
- credit_ledger: Balance changes made by purchase grants
- webhook_events: Provider webhook deduplication log
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20260302_001_billing'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_time', sa.DateTime(timezone=True), nullable=False, comment='Created at'),
        sa.Column('updated_time', sa.DateTime(timezone=True), nullable=True, comment='Updated at'),
    ]


def upgrade() -> None:
    """Create billing tables."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = inspector.get_table_names()

    # -------------------------------------------------------------------------
    # 1. profiles - Credit balance per user
    # -------------------------------------------------------------------------
    if 'profiles' not in existing_tables:
        op.create_table(
            'profiles',
            sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key (uuid4)'),
            sa.Column('email', sa.String(length=255), nullable=True, comment='Contact email'),
            sa.Column('token_balance', sa.Integer(), server_default='0', nullable=False, comment='Available image generation credits'),

            # Unlimited plan state
            sa.Column('subscription_plan', sa.String(length=100), nullable=True, comment='Active plan name'),
            sa.Column('subscription_status', sa.String(length=20), nullable=True, comment='Plan status'),
            sa.Column('subscription_end_date', sa.DateTime(timezone=True), nullable=True, comment='Plan end'),
            sa.Column('monthly_usage', sa.Integer(), server_default='0', nullable=False, comment='Generations in the current plan period'),

            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('token_balance >= 0', name='ck_profiles_token_balance_non_negative'),
        )

    # -------------------------------------------------------------------------
    # 2. products - Catalog
    # -------------------------------------------------------------------------
    if 'products' not in existing_tables:
        op.create_table(
            'products',
            sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key (uuid4)'),
            sa.Column('name', sa.String(length=100), nullable=False, comment='Display name'),
            sa.Column('tokens_granted', sa.Integer(), nullable=False, comment='Credits granted on payment'),
            sa.Column('price_in_cents', sa.Integer(), nullable=False, comment='Price in minor currency units'),
            sa.Column('is_unlimited', sa.Boolean(), nullable=False, comment='Unlimited monthly plan'),
            sa.Column('active', sa.Boolean(), nullable=False, comment='Offered for sale'),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )

    # -------------------------------------------------------------------------
    # 3. purchases - Checkout attempts
    # -------------------------------------------------------------------------
    if 'purchases' not in existing_tables:
        op.create_table(
            'purchases',
            sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key (uuid4)'),
            sa.Column('user_id', sa.String(length=36), nullable=False, comment='Owner'),
            sa.Column('product_id', sa.String(length=36), nullable=False, comment='Product bought'),
            sa.Column('amount_paid', sa.Integer(), nullable=False, comment='Amount in minor currency units'),
            sa.Column('tokens_granted', sa.Integer(), nullable=False, comment='Credits to grant on payment'),
            sa.Column('provider', sa.String(length=20), nullable=False, comment='abacatepay or stripe'),
            sa.Column('status', sa.String(length=20), nullable=False, comment='pending, completed, failed'),

            # Provider references
            sa.Column('abacate_billing_id', sa.String(length=255), nullable=True, comment='AbacatePay billing id'),
            sa.Column('stripe_session_id', sa.String(length=255), nullable=True, comment='Stripe Checkout session id'),
            sa.Column('checkout_url', sa.Text(), nullable=True, comment='Hosted checkout / PIX url'),

            sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True, comment='When credits were granted'),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
            sa.ForeignKeyConstraint(['product_id'], ['products.id']),
            sa.UniqueConstraint('stripe_session_id'),
        )
        op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
        op.create_index('ix_purchases_status', 'purchases', ['status'])
        op.create_index('ix_purchases_abacate_billing_id', 'purchases', ['abacate_billing_id'])
        op.create_index('ix_purchases_user_status', 'purchases', ['user_id', 'status'])

    # -------------------------------------------------------------------------
    # 4. credit_ledger - Balance changes
    # -------------------------------------------------------------------------
    if 'credit_ledger' not in existing_tables:
        op.create_table(
            'credit_ledger',
            sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key (uuid4)'),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False, comment='Signed credit delta'),
            sa.Column('balance_after', sa.Integer(), nullable=False, comment='Balance after this entry'),
            sa.Column('type', sa.String(length=30), nullable=False, comment='Entry type'),
            sa.Column('purchase_id', sa.String(length=36), nullable=True),
            sa.Column('description', sa.String(length=255), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
            sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id']),
            sa.UniqueConstraint('purchase_id'),
        )
        op.create_index('ix_credit_ledger_user_id', 'credit_ledger', ['user_id'])

    # -------------------------------------------------------------------------
    # 5. webhook_events - Delivery deduplication
    # -------------------------------------------------------------------------
    if 'webhook_events' not in existing_tables:
        op.create_table(
            'webhook_events',
            sa.Column('id', sa.String(length=255), nullable=False, comment='Event id'),
            sa.Column('provider', sa.String(length=20), nullable=False, comment='abacatepay or stripe'),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, comment='processing, completed, failed'),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )


def downgrade() -> None:
    """Drop billing tables."""
    op.drop_table('webhook_events')
    op.drop_index('ix_credit_ledger_user_id', table_name='credit_ledger')
    op.drop_table('credit_ledger')
    op.drop_index('ix_purchases_user_status', table_name='purchases')
    op.drop_index('ix_purchases_abacate_billing_id', table_name='purchases')
    op.drop_index('ix_purchases_status', table_name='purchases')
    op.drop_index('ix_purchases_user_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_table('products')
    op.drop_table('profiles')
