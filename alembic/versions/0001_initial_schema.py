"""initial_schema

Revision ID: 0001initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = '0001initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'user_profiles',
        *_base_columns(),
        sa.Column('clerk_user_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, server_default=''),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('free_credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('subscription_status', sa.String(20), nullable=False, server_default='inactive'),
    )
    op.create_index('ix_user_profiles_id', 'user_profiles', ['id'])
    op.create_index('ix_user_profiles_clerk_user_id', 'user_profiles', ['clerk_user_id'], unique=True)

    op.create_table(
        'subscriptions',
        *_base_columns(),
        sa.Column('user_id', sa.String(255),
                  sa.ForeignKey('user_profiles.clerk_user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('razorpay_order_id', sa.String(255), nullable=True),
        sa.Column('razorpay_subscription_id', sa.String(255), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_razorpay_order_id', 'subscriptions', ['razorpay_order_id'])
    op.create_index('ix_subscriptions_razorpay_subscription_id', 'subscriptions', ['razorpay_subscription_id'])

    op.create_table(
        'documents',
        *_base_columns(),
        sa.Column('user_id', sa.String(255),
                  sa.ForeignKey('user_profiles.clerk_user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_path', sa.String(500), nullable=False),
        sa.Column('file_url', sa.String(1000), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('file_type', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
        sa.Column('processed_output', postgresql.JSONB(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_documents_id', 'documents', ['id'])
    op.create_index('ix_documents_user_id', 'documents', ['user_id'])
    op.create_index('ix_documents_status', 'documents', ['status'])


def downgrade() -> None:
    op.drop_table('documents')
    op.drop_table('subscriptions')
    op.drop_table('user_profiles')
