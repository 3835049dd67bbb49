"""Create marketplace mirror tables

Revision ID: c1d2e3f4a5b6
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c1d2e3f4a5b6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'market_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('price', sa.Numeric(), nullable=False),
        sa.Column('username', sa.String(100), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=False),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('model_url', sa.String(500), nullable=False),
        sa.Column('token_uri', sa.String(500), nullable=False),
        sa.Column('seller', sa.String(42), nullable=False),
        sa.Column('owner', sa.String(42), nullable=True),
        sa.Column('creator', sa.String(42), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('transaction_hash', sa.String(66), nullable=True),
        sa.Column('block_number', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('sold_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_market_items_token_id', 'market_items', ['token_id'], unique=True)
    op.create_index('ix_market_items_category', 'market_items', ['category'])
    op.create_index('ix_market_items_seller', 'market_items', ['seller'])
    op.create_index('ix_market_items_owner', 'market_items', ['owner'])
    op.create_index('ix_market_items_status_created', 'market_items', ['status', 'created_at'])
    op.create_index('ix_market_items_seller_status', 'market_items', ['seller', 'status'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_hash', sa.String(66), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('token_id', sa.BigInteger(), nullable=False),
        sa.Column('contract_address', sa.String(42), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('price', sa.Numeric(), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('platform_fee', sa.Numeric(), nullable=False),
        sa.Column('buyer', sa.String(42), nullable=False),
        sa.Column('seller', sa.String(42), nullable=False),
        sa.Column('gas_used', sa.String(40), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
    )
    op.create_index(
        'ix_transactions_transaction_hash', 'transactions', ['transaction_hash'], unique=True
    )
    op.create_index('ix_transactions_token_id', 'transactions', ['token_id'])
    op.create_index('ix_transactions_buyer', 'transactions', ['buyer'])
    op.create_index('ix_transactions_seller', 'transactions', ['seller'])
    op.create_index('ix_transactions_buyer_created', 'transactions', ['buyer', 'created_at'])
    op.create_index('ix_transactions_token_type', 'transactions', ['token_id', 'type'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_address', sa.String(42), nullable=False),
        sa.Column('username', sa.String(50), nullable=True),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_creator', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_purchased', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_earned', sa.Numeric(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_active', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_wallet_address', 'users', ['wallet_address'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_users_wallet_address', table_name='users')
    op.drop_table('users')

    op.drop_index('ix_transactions_token_type', table_name='transactions')
    op.drop_index('ix_transactions_buyer_created', table_name='transactions')
    op.drop_index('ix_transactions_seller', table_name='transactions')
    op.drop_index('ix_transactions_buyer', table_name='transactions')
    op.drop_index('ix_transactions_token_id', table_name='transactions')
    op.drop_index('ix_transactions_transaction_hash', table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('ix_market_items_seller_status', table_name='market_items')
    op.drop_index('ix_market_items_status_created', table_name='market_items')
    op.drop_index('ix_market_items_owner', table_name='market_items')
    op.drop_index('ix_market_items_seller', table_name='market_items')
    op.drop_index('ix_market_items_category', table_name='market_items')
    op.drop_index('ix_market_items_token_id', table_name='market_items')
    op.drop_table('market_items')
