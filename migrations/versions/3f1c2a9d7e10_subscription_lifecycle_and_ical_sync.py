"""subscription_lifecycle_and_ical_sync

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-02-03 10:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('push_token', sa.String(), nullable=True),
        sa.Column('subscription_status', sa.String(), nullable=True),
        sa.Column('property_limit', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('calendar_months_override', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('property_limit', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('calendar_months_limit', sa.Integer(), nullable=True),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('plan_id', sa.String(length=36), sa.ForeignKey('subscription_plans.id'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('current_period_start', sa.DateTime(), nullable=False),
        sa.Column('current_period_end', sa.DateTime(), nullable=False),
        sa.Column('grace_period_end', sa.DateTime(), nullable=True),
        sa.Column('last_reminder_type', sa.String(), nullable=True),
        sa.Column('reminder_sent_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_current_period_end', 'subscriptions', ['current_period_end'])

    op.create_table(
        'subscription_reminders',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('subscription_id', sa.String(length=36), sa.ForeignKey('subscriptions.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reminder_type', sa.String(), nullable=False),
        sa.Column('channel', sa.String(), nullable=False, server_default='push'),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('subscription_id', 'reminder_type', name='uq_subscription_reminders_type'),
    )
    op.create_index('ix_subscription_reminders_subscription_id', 'subscription_reminders', ['subscription_id'])

    op.create_table(
        'properties',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('province', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_properties_user_id', 'properties', ['user_id'])

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('guest_name', sa.String(), nullable=True),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='confirmed'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_reservations_property_id', 'reservations', ['property_id'])

    op.create_table(
        'ical_subscriptions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('feed_url', sa.String(), nullable=False),
        sa.Column('source_name', sa.String(), nullable=False),
        sa.Column('source_label', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('last_sync_status', sa.String(), nullable=True),
        sa.Column('last_error_message', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_ical_subscriptions_property_id', 'ical_subscriptions', ['property_id'])

    op.create_table(
        'locked_dates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='manual'),
        sa.Column('source_name', sa.String(), nullable=True),
        sa.Column('external_uid', sa.String(), nullable=True),
        sa.Column('subscription_id', sa.String(length=36),
                  sa.ForeignKey('ical_subscriptions.id', ondelete='CASCADE'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('property_id', 'date', 'subscription_id',
                            name='uq_locked_dates_property_date_subscription'),
    )
    op.create_index('ix_locked_dates_property_id', 'locked_dates', ['property_id'])
    op.create_index('ix_locked_dates_subscription_id', 'locked_dates', ['subscription_id'])

    op.create_table(
        'ical_feed_tokens',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_ical_feed_tokens_token', 'ical_feed_tokens', ['token'], unique=True)

    op.create_table(
        'calendar_share_tokens',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_viewed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_calendar_share_tokens_token', 'calendar_share_tokens', ['token'], unique=True)

    op.create_table(
        'cashflow_entries',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(), nullable=False, server_default='PHP'),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('reference_number', sa.String(), nullable=True),
        sa.Column('receipt_url', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence_frequency', sa.String(), nullable=True),
        sa.Column('next_due_date', sa.Date(), nullable=True),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        sa.Column('parent_entry_id', sa.String(length=36), sa.ForeignKey('cashflow_entries.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_cashflow_entries_user_id', 'cashflow_entries', ['user_id'])
    op.create_index('ix_cashflow_entries_next_due_date', 'cashflow_entries', ['next_due_date'])


def downgrade() -> None:
    op.drop_table('cashflow_entries')
    op.drop_table('calendar_share_tokens')
    op.drop_table('ical_feed_tokens')
    op.drop_table('locked_dates')
    op.drop_table('ical_subscriptions')
    op.drop_table('reservations')
    op.drop_table('properties')
    op.drop_table('subscription_reminders')
    op.drop_table('subscriptions')
    op.drop_table('subscription_plans')
    op.drop_table('users')
