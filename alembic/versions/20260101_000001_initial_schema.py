"""Initial schema: users, wallets, transactions, sessions, off-ramp orders

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20260101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=False),
        sa.Column('chat_id', sa.BigInteger(), nullable=True),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_telegram_id', 'users', ['telegram_id'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=False)

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('chain', sa.String(length=16), nullable=False),
        sa.Column('address', sa.String(length=64), nullable=False),
        sa.Column('vendor_wallet_id', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'chain', name='uq_wallets_user_chain')
    )
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=False)
    op.create_index('ix_wallets_address', 'wallets', ['address'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('wallet_id', sa.Integer(), nullable=True),
        sa.Column('chain', sa.String(length=32), nullable=False),
        sa.Column('network', sa.String(length=64), nullable=True),
        sa.Column('tx_hash', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('from_address', sa.String(length=64), nullable=True),
        sa.Column('to_address', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.DECIMAL(precision=36, scale=18), nullable=True),
        sa.Column('asset', sa.String(length=16), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'], unique=False)
    op.create_index('ix_transactions_tx_hash', 'transactions', ['tx_hash'], unique=True)
    op.create_index(
        'ix_transactions_status_created', 'transactions',
        ['status', 'created_at'], unique=False
    )

    op.create_table(
        'session_contexts',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('pending_intent', sa.String(length=64), nullable=True),
        sa.Column('awaiting_param', sa.String(length=64), nullable=True),
        sa.Column('collected_params', postgresql.JSONB(), nullable=False),
        sa.Column('history', postgresql.JSONB(), nullable=False),
        sa.Column('last_active', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id')
    )

    op.create_table(
        'offramp_orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=128), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.DECIMAL(precision=36, scale=18), nullable=False),
        sa.Column('token', sa.String(length=16), nullable=False),
        sa.Column('network', sa.String(length=32), nullable=False),
        sa.Column('fiat_currency', sa.String(length=8), nullable=False),
        sa.Column('rate', sa.DECIMAL(precision=18, scale=4), nullable=False),
        sa.Column('expected_amount', sa.DECIMAL(precision=18, scale=4), nullable=True),
        sa.Column('receive_address', sa.String(length=64), nullable=False),
        sa.Column('institution', sa.String(length=64), nullable=False),
        sa.Column('account_identifier', sa.String(length=64), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('vendor_status', sa.String(length=64), nullable=True),
        sa.Column('tx_hash', sa.String(length=128), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_offramp_orders_user_id', 'offramp_orders', ['user_id'], unique=False)
    op.create_index('ix_offramp_orders_order_id', 'offramp_orders', ['order_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_offramp_orders_order_id', table_name='offramp_orders')
    op.drop_index('ix_offramp_orders_user_id', table_name='offramp_orders')
    op.drop_table('offramp_orders')
    op.drop_table('session_contexts')
    op.drop_index('ix_transactions_status_created', table_name='transactions')
    op.drop_index('ix_transactions_tx_hash', table_name='transactions')
    op.drop_index('ix_transactions_user_id', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('ix_wallets_address', table_name='wallets')
    op.drop_index('ix_wallets_user_id', table_name='wallets')
    op.drop_table('wallets')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_telegram_id', table_name='users')
    op.drop_table('users')
