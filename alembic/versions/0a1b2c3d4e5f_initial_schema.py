"""initial_schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW_UTC = sa.text("(now() at time zone 'utc')")


def upgrade() -> None:
    """Upgrade schema."""
    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Login email'),
        sa.Column('name', sa.String(length=255), nullable=False, comment='Display name'),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='client', comment='Role: client, writer, admin'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', comment='Account enabled'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC, comment='Registration timestamp'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'])

    # Rate catalog
    op.create_table(
        'academic_levels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.String(length=100), nullable=False, comment='Level name'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('level'),
    )
    op.create_index(op.f('ix_academic_levels_is_active'), 'academic_levels', ['is_active'])

    op.create_table(
        'academic_rates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('academic_level_id', sa.Integer(), nullable=False, comment='Academic level ID (foreign key)'),
        sa.Column('hours', sa.Integer(), nullable=False, comment='Deadline in hours'),
        sa.Column('label', sa.String(length=100), nullable=False, comment="e.g. '24 hours'"),
        sa.Column('cost', sa.Numeric(precision=10, scale=2), nullable=False, comment='Base price per page'),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default='false', comment='Soft delete flag'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.CheckConstraint('cost >= 0', name='ck_academic_rates_cost_non_negative'),
        sa.ForeignKeyConstraint(['academic_level_id'], ['academic_levels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_academic_rates_academic_level_id'), 'academic_rates', ['academic_level_id'])
    op.create_index(op.f('ix_academic_rates_deleted'), 'academic_rates', ['deleted'])
    op.create_index('ix_academic_rates_level_hours', 'academic_rates', ['academic_level_id', 'hours'])

    for table, label_col in (
        ('subjects', sa.Column('label', sa.String(length=255), nullable=False)),
        ('languages', sa.Column('label', sa.String(length=100), nullable=False)),
    ):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            label_col,
            sa.Column('inc_type', sa.String(length=20), nullable=False, server_default='percent', comment='Increment type: percent, fixed'),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0', comment='Increment amount'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.CheckConstraint('amount >= 0', name=f'ck_{table}_amount_non_negative'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f(f'ix_{table}_is_active'), table, ['is_active'])

    op.create_table(
        'additional_features',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('inc_type', sa.String(length=20), nullable=False, server_default='percent', comment='Increment type: percent, fixed'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0', comment='Increment amount'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.CheckConstraint('amount >= 0', name='ck_additional_features_amount_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_additional_features_is_active'), 'additional_features', ['is_active'])

    op.create_table(
        'pricing_presets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('academic_level', sa.String(length=50), nullable=False),
        sa.Column('service_type', sa.String(length=50), nullable=False),
        sa.Column('deadline_type', sa.String(length=50), nullable=False),
        sa.Column('base_price_per_page', sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column('multiplier', sa.Numeric(precision=5, scale=2), nullable=False, server_default='1.00'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_pricing_presets_academic_level'), 'pricing_presets', ['academic_level'])
    op.create_index(op.f('ix_pricing_presets_is_active'), 'pricing_presets', ['is_active'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False, comment='Owning client (foreign key)'),
        sa.Column('writer_id', sa.Integer(), nullable=True, comment='Assigned writer (foreign key)'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('paper_type', sa.String(length=100), nullable=True),
        sa.Column('academic_level_id', sa.Integer(), nullable=False),
        sa.Column('service_type_id', sa.Integer(), nullable=False),
        sa.Column('language_id', sa.Integer(), nullable=False),
        sa.Column('deadline_hours', sa.Integer(), nullable=False),
        sa.Column('deadline_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pages', sa.Integer(), nullable=False),
        sa.Column('words', sa.Integer(), nullable=False),
        sa.Column('spacing', sa.String(length=10), nullable=False, server_default='double'),
        sa.Column('paper_format', sa.String(length=20), nullable=False, server_default='APA'),
        sa.Column('number_of_sources', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('additional_features', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]', comment='Feature snapshot list'),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False, comment='Quoted price, fixed at creation'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='placed', comment='Lifecycle status'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('client_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.CheckConstraint('price >= 0', name='ck_orders_price_non_negative'),
        sa.CheckConstraint('pages >= 1', name='ck_orders_pages_positive'),
        sa.ForeignKeyConstraint(['client_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['writer_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['academic_level_id'], ['academic_levels.id']),
        sa.ForeignKeyConstraint(['service_type_id'], ['subjects.id']),
        sa.ForeignKeyConstraint(['language_id'], ['languages.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_orders_client_id'), 'orders', ['client_id'])
    op.create_index(op.f('ix_orders_writer_id'), 'orders', ['writer_id'])
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'])
    op.create_index(op.f('ix_orders_created_at'), 'orders', ['created_at'])
    op.create_index('ix_orders_client_status', 'orders', ['client_id', 'status'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('previous_status', sa.String(length=30), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_status_history_order_id'), 'order_status_history', ['order_id'])

    op.create_table(
        'inquiries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('paper_type', sa.String(length=100), nullable=True),
        sa.Column('academic_level_id', sa.Integer(), nullable=True),
        sa.Column('service_type_id', sa.Integer(), nullable=True),
        sa.Column('language_id', sa.Integer(), nullable=True),
        sa.Column('deadline_hours', sa.Integer(), nullable=True),
        sa.Column('deadline_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pages', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('words', sa.Integer(), nullable=False, server_default='250'),
        sa.Column('spacing', sa.String(length=10), nullable=False, server_default='double'),
        sa.Column('paper_format', sa.String(length=20), nullable=True),
        sa.Column('number_of_sources', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('additional_features', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('client_notes', sa.Text(), nullable=True),
        sa.Column('estimated_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_to_order_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.ForeignKeyConstraint(['client_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['academic_level_id'], ['academic_levels.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['service_type_id'], ['subjects.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['language_id'], ['languages.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['converted_to_order_id'], ['orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_inquiries_client_id'), 'inquiries', ['client_id'])
    op.create_index(op.f('ix_inquiries_status'), 'inquiries', ['status'])

    # Wallet ledger
    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Owner (one wallet per user)'),
        sa.Column('balance', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0', comment='Cached balance = completed credits - completed debits'),
        sa.Column('currency', sa.String(length=10), nullable=False, server_default='USD'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.CheckConstraint('balance >= 0', name='ck_wallets_balance_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_wallets_user_id'), 'wallets', ['user_id'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False, comment='Type: credit, debit'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=20), nullable=True, comment='wallet, external, hybrid, refund'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.CheckConstraint('amount > 0', name='ck_wallet_transactions_amount_positive'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_wallet_transactions_wallet_id'), 'wallet_transactions', ['wallet_id'])
    op.create_index(op.f('ix_wallet_transactions_type'), 'wallet_transactions', ['type'])
    op.create_index(op.f('ix_wallet_transactions_order_id'), 'wallet_transactions', ['order_id'])
    op.create_index(op.f('ix_wallet_transactions_created_at'), 'wallet_transactions', ['created_at'])

    # Payments
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False, comment='wallet, external, hybrid'),
        sa.Column('external_transaction_id', sa.String(length=255), nullable=True, comment='Gateway transaction ID'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='pending, completed, failed, refunded, cancelled'),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Method-specific detail'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_payments_order_id'), 'payments', ['order_id'])
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'])
    op.create_index(op.f('ix_payments_payment_method'), 'payments', ['payment_method'])
    op.create_index(op.f('ix_payments_external_transaction_id'), 'payments', ['external_transaction_id'])
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'])
    op.create_index(op.f('ix_payments_created_at'), 'payments', ['created_at'])

    # Loyalty
    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False, server_default='percentage', comment='percentage, fixed'),
        sa.Column('discount_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('minimum_order_amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer(), nullable=True, comment='NULL = unlimited'),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_coupons_code'), 'coupons', ['code'], unique=True)
    op.create_index(op.f('ix_coupons_is_active'), 'coupons', ['is_active'])

    op.create_table(
        'coupon_usages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('discount_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('coupon_id', 'user_id', name='uq_coupon_user'),
    )
    op.create_index(op.f('ix_coupon_usages_user_id'), 'coupon_usages', ['user_id'])
    op.create_index(op.f('ix_coupon_usages_order_id'), 'coupon_usages', ['order_id'])

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points_expired', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.CheckConstraint('points >= 0', name='ck_rewards_points_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_rewards_user_id'), 'rewards', ['user_id'], unique=True)

    op.create_table(
        'reward_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, comment='earned, redeemed, expired'),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('source_type', sa.String(length=50), nullable=True, comment='order, referral, bonus, ...'),
        sa.Column('source_id', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW_UTC),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_id'], ['orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_reward_transactions_expires_at'), 'reward_transactions', ['expires_at'])
    op.create_index('ix_reward_transactions_user_created', 'reward_transactions', ['user_id', 'created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'reward_transactions',
        'rewards',
        'coupon_usages',
        'coupons',
        'payments',
        'wallet_transactions',
        'wallets',
        'inquiries',
        'order_status_history',
        'orders',
        'pricing_presets',
        'additional_features',
        'languages',
        'subjects',
        'academic_rates',
        'academic_levels',
        'users',
    ):
        op.drop_table(table)
