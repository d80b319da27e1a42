"""Create campaign, payment and marketplace reference tables

Revision ID: 001_campaigns
Revises:
Create Date: 2026-10-19

Creates:
- profiles table
- properties table
- campaigns table (fee split, lifecycle, Google Ads reference)
- payments table (Paystack transactions, amounts in cents)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_campaigns'
down_revision = None
branch_labels = None
depends_on = None

USER_TYPES = ('admin', 'developer', 'buyer', 'host')
CAMPAIGN_STATUSES = ('pending', 'active', 'failed', 'completed')
CAMPAIGN_PAYMENT_STATUSES = ('pending', 'processing', 'success', 'failed', 'refunded', 'cancelled')
PAYMENT_STATUSES = ('pending', 'success', 'failed', 'refunded')
AGE_GROUPS = ('18-24', '25-34', '35-44', '45-54', '55-64', '65+')


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('user_type', sa.Enum(*USER_TYPES, name='user_type'), nullable=False, server_default='buyer'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'properties',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('developer_id', sa.String(36), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('price', sa.Numeric(14, 2), nullable=True),
        sa.Column('property_type', sa.String(100), nullable=True),
        sa.Column('bedrooms', sa.Integer(), nullable=True),
        sa.Column('bathrooms', sa.Integer(), nullable=True),
        sa.Column('square_feet', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['developer_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_properties_developer_id', 'properties', ['developer_id'])

    op.create_table(
        'campaigns',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('campaign_name', sa.String(255), nullable=False),
        sa.Column('target_location', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('target_age_group', sa.Enum(*AGE_GROUPS, name='target_age_group'), nullable=True),
        sa.Column('audience_interests', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('duration_start', sa.Date(), nullable=False),
        sa.Column('duration_end', sa.Date(), nullable=False),
        sa.Column('user_budget', sa.Numeric(12, 2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('ad_spend', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.Enum(*CAMPAIGN_STATUSES, name='campaign_status'), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.Enum(*CAMPAIGN_PAYMENT_STATUSES, name='campaign_payment_status'), nullable=False, server_default='pending'),
        sa.Column('payment_id', sa.String(36), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('google_ads_campaign_id', sa.String(100), nullable=True),
        sa.Column('property_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('platforms', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('approved_by_id', sa.String(36), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('user_budget > 0', name='ck_campaigns_positive_budget'),
        sa.CheckConstraint('duration_end >= duration_start', name='ck_campaigns_valid_dates'),
    )
    op.create_index('ix_campaigns_user_id', 'campaigns', ['user_id'])
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])
    op.create_index('ix_campaigns_google_ads_campaign_id', 'campaigns', ['google_ads_campaign_id'])
    op.create_index('ix_campaigns_created_at', 'campaigns', ['created_at'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('campaign_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('paystack_reference', sa.String(100), nullable=False),
        sa.Column('paystack_access_code', sa.String(100), nullable=True),
        sa.Column('authorization_url', sa.Text(), nullable=True),
        sa.Column('amount_requested', sa.BigInteger(), nullable=False),
        sa.Column('amount_paid', sa.BigInteger(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='KES'),
        sa.Column('status', sa.Enum(*PAYMENT_STATUSES, name='payment_status'), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('gateway_response', sa.Text(), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('paystack_reference', name='uq_payments_paystack_reference'),
    )
    op.create_index('ix_payments_campaign_id', 'payments', ['campaign_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])


def downgrade() -> None:
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_campaign_id', table_name='payments')
    op.drop_table('payments')

    op.drop_index('ix_campaigns_created_at', table_name='campaigns')
    op.drop_index('ix_campaigns_google_ads_campaign_id', table_name='campaigns')
    op.drop_index('ix_campaigns_status', table_name='campaigns')
    op.drop_index('ix_campaigns_user_id', table_name='campaigns')
    op.drop_table('campaigns')

    op.drop_index('ix_properties_developer_id', table_name='properties')
    op.drop_table('properties')
    op.drop_table('profiles')

    op.execute("DROP TYPE IF EXISTS payment_status")
    op.execute("DROP TYPE IF EXISTS campaign_payment_status")
    op.execute("DROP TYPE IF EXISTS campaign_status")
    op.execute("DROP TYPE IF EXISTS target_age_group")
    op.execute("DROP TYPE IF EXISTS user_type")
