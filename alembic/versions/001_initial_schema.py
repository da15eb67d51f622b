"""Initial schema

Revision ID: c4a5e0f1b2d3
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM

# revision identifiers, used by Alembic.
revision: str = 'c4a5e0f1b2d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum types store member names; several are shared between tables so they are
# created once up front and referenced with create_type=False.
ENUMS = {
    'userrole': ('CUSTOMER', 'PROFESSIONAL', 'ADMIN'),
    'countrycode': ('CO', 'PY', 'UY', 'AR'),
    'currencycode': ('COP', 'PYG', 'UYU', 'ARS', 'USD'),
    'paymentprocessor': ('STRIPE', 'PAYPAL'),
    'bookingstatus': (
        'PENDING_PAYMENT', 'PENDING', 'CONFIRMED', 'IN_PROGRESS',
        'COMPLETED', 'CANCELLED', 'DECLINED', 'DISPUTED',
    ),
    'transactiontype': ('AUTHORIZATION', 'CAPTURE', 'VOID', 'REFUND', 'TIP'),
    'transactionstatus': ('PENDING', 'SUCCEEDED', 'FAILED'),
    'clearancestatus': ('PENDING', 'CLEARED', 'CANCELLED'),
    'payouttype': ('INSTANT', 'BATCH'),
    'payoutstatus': ('PROCESSING', 'PENDING', 'COMPLETED', 'FAILED', 'RETURNED', 'BLOCKED', 'UNCLAIMED'),
    'webhookprovider': ('STRIPE', 'PAYPAL', 'CHECKR', 'TRUORA'),
    'webhookeventstatus': ('PROCESSING', 'PROCESSED', 'FAILED'),
    'disputestatus': ('OPEN', 'RESOLVED', 'REJECTED'),
    'suspensiontype': ('TEMPORARY', 'PERMANENT'),
    'backgroundcheckstatus': (
        'NOT_STARTED', 'PENDING', 'IN_PROGRESS', 'CLEAR', 'CONSIDER', 'SUSPENDED', 'FAILED',
    ),
    'roadmapstatus': ('UNDER_CONSIDERATION', 'PLANNED', 'IN_PROGRESS', 'SHIPPED'),
    'roadmapcategory': ('FEATURES', 'INFRASTRUCTURE', 'UI_UX', 'SECURITY', 'INTEGRATIONS'),
    'roadmappriority': ('LOW', 'MEDIUM', 'HIGH'),
    'roadmapvisibility': ('DRAFT', 'PUBLISHED', 'ARCHIVED'),
}


def enum(name: str) -> ENUM:
    return ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('role', enum('userrole'), nullable=False),
        sa.Column('country', enum('countrycode'), nullable=False),
        sa.Column('locale', sa.String(length=5), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_profiles_id'), 'profiles', ['id'], unique=False)
    op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=True)
    op.create_index(op.f('ix_profiles_role'), 'profiles', ['role'], unique=False)

    op.create_table(
        'professional_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('primary_services', sa.JSON(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('hourly_rate', sa.BigInteger(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('review_count', sa.Integer(), nullable=False),
        sa.Column('total_bookings', sa.Integer(), nullable=False),
        sa.Column('stripe_account_id', sa.String(), nullable=True),
        sa.Column('paypal_email', sa.String(), nullable=True),
        sa.Column('instant_payout_enabled', sa.Boolean(), nullable=False),
        sa.Column('available_balance', sa.BigInteger(), nullable=False),
        sa.Column('pending_balance', sa.BigInteger(), nullable=False),
        sa.Column('total_earnings', sa.BigInteger(), nullable=False),
        sa.Column('background_check_status', enum('backgroundcheckstatus'), nullable=False),
        sa.Column('is_listed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('profile_id')
    )
    op.create_index(op.f('ix_professional_profiles_id'), 'professional_profiles', ['id'], unique=False)
    op.create_index(op.f('ix_professional_profiles_city'), 'professional_profiles', ['city'], unique=False)

    op.create_table(
        'customer_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('default_address', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('profile_id')
    )
    op.create_index(op.f('ix_customer_profiles_id'), 'customer_profiles', ['id'], unique=False)

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('service_name', sa.String(), nullable=False),
        sa.Column('status', enum('bookingstatus'), nullable=False),
        sa.Column('scheduled_start', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('scheduled_end', sa.DateTime(), nullable=False),
        sa.Column('address', sa.JSON(), nullable=True),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('country', enum('countrycode'), nullable=False),
        sa.Column('currency', enum('currencycode'), nullable=False),
        sa.Column('payment_processor', enum('paymentprocessor'), nullable=False),
        sa.Column('amount_estimated', sa.BigInteger(), nullable=False),
        sa.Column('service_fee', sa.BigInteger(), nullable=False),
        sa.Column('amount_authorized', sa.BigInteger(), nullable=False),
        sa.Column('amount_captured', sa.BigInteger(), nullable=True),
        sa.Column('amount_refunded', sa.BigInteger(), nullable=False),
        sa.Column('time_extension_minutes', sa.Integer(), nullable=False),
        sa.Column('time_extension_amount', sa.BigInteger(), nullable=False),
        sa.Column('tip_amount', sa.BigInteger(), nullable=True),
        sa.Column('tip_percentage', sa.Float(), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=True),
        sa.Column('stripe_payment_status', sa.String(), nullable=True),
        sa.Column('paypal_order_id', sa.String(), nullable=True),
        sa.Column('paypal_authorization_id', sa.String(), nullable=True),
        sa.Column('paypal_capture_id', sa.String(), nullable=True),
        sa.Column('checked_in_at', sa.DateTime(), nullable=True),
        sa.Column('check_in_latitude', sa.Float(), nullable=True),
        sa.Column('check_in_longitude', sa.Float(), nullable=True),
        sa.Column('checked_out_at', sa.DateTime(), nullable=True),
        sa.Column('check_out_latitude', sa.Float(), nullable=True),
        sa.Column('check_out_longitude', sa.Float(), nullable=True),
        sa.Column('actual_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('completion_notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('decline_reason', sa.Text(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('rebook_nudge_variant', sa.String(length=8), nullable=True),
        sa.Column('rebook_nudge_sent', sa.Boolean(), nullable=False),
        sa.Column('rebook_nudge_sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['cancelled_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_id'), 'bookings', ['id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_id'), 'bookings', ['customer_id'], unique=False)
    op.create_index(op.f('ix_bookings_professional_id'), 'bookings', ['professional_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_stripe_payment_intent_id'), 'bookings', ['stripe_payment_intent_id'], unique=False)
    op.create_index(op.f('ix_bookings_paypal_order_id'), 'bookings', ['paypal_order_id'], unique=False)

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('processor', enum('paymentprocessor'), nullable=False),
        sa.Column('transaction_type', enum('transactiontype'), nullable=False),
        sa.Column('status', enum('transactionstatus'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', enum('currencycode'), nullable=False),
        sa.Column('processor_reference', sa.String(), nullable=True),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column('gateway_response', sa.JSON(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key')
    )
    op.create_index(op.f('ix_payment_transactions_id'), 'payment_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_payment_transactions_booking_id'), 'payment_transactions', ['booking_id'], unique=False)

    op.create_table(
        'balance_clearances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.Column('clearance_at', sa.DateTime(), nullable=False),
        sa.Column('status', enum('clearancestatus'), nullable=False),
        sa.Column('cleared_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_balance_clearances_id'), 'balance_clearances', ['id'], unique=False)
    op.create_index(op.f('ix_balance_clearances_professional_id'), 'balance_clearances', ['professional_id'], unique=False)
    op.create_index(op.f('ix_balance_clearances_clearance_at'), 'balance_clearances', ['clearance_at'], unique=False)

    op.create_table(
        'payout_transfers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('payout_type', enum('payouttype'), nullable=False),
        sa.Column('processor', enum('paymentprocessor'), nullable=False),
        sa.Column('gross_amount', sa.BigInteger(), nullable=False),
        sa.Column('fee_amount', sa.BigInteger(), nullable=False),
        sa.Column('fee_percentage', sa.Float(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', enum('currencycode'), nullable=False),
        sa.Column('status', enum('payoutstatus'), nullable=False),
        sa.Column('stripe_payout_id', sa.String(), nullable=True),
        sa.Column('paypal_payout_item_id', sa.String(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('requested_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_payout_id'),
        sa.UniqueConstraint('paypal_payout_item_id')
    )
    op.create_index(op.f('ix_payout_transfers_id'), 'payout_transfers', ['id'], unique=False)
    op.create_index(op.f('ix_payout_transfers_professional_id'), 'payout_transfers', ['professional_id'], unique=False)

    op.create_table(
        'payout_rate_limits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('payout_date', sa.Date(), nullable=False),
        sa.Column('instant_payout_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('professional_id', 'payout_date', name='uq_payout_rate_limit_day')
    )
    op.create_index(op.f('ix_payout_rate_limits_id'), 'payout_rate_limits', ['id'], unique=False)

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('provider', enum('webhookprovider'), nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('status', enum('webhookeventstatus'), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'event_id', name='uq_webhook_event_provider_id')
    )
    op.create_index(op.f('ix_webhook_events_id'), 'webhook_events', ['id'], unique=False)

    op.create_table(
        'disputes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('opened_by', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', enum('disputestatus'), nullable=False),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('refund_amount', sa.BigInteger(), nullable=False),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['opened_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['resolved_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_disputes_id'), 'disputes', ['id'], unique=False)
    op.create_index(op.f('ix_disputes_status'), 'disputes', ['status'], unique=False)

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.Column('is_flagged', sa.Boolean(), nullable=False),
        sa.Column('flag_reason', sa.Text(), nullable=True),
        sa.Column('moderated_by', sa.Integer(), nullable=True),
        sa.Column('moderated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['moderated_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_reviews_id'), 'reviews', ['id'], unique=False)
    op.create_index(op.f('ix_reviews_professional_id'), 'reviews', ['professional_id'], unique=False)

    op.create_table(
        'user_suspensions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('suspended_by', sa.Integer(), nullable=False),
        sa.Column('suspension_type', enum('suspensiontype'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('lifted_at', sa.DateTime(), nullable=True),
        sa.Column('lifted_by', sa.Integer(), nullable=True),
        sa.Column('lift_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['suspended_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['lifted_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_suspensions_id'), 'user_suspensions', ['id'], unique=False)
    op.create_index(op.f('ix_user_suspensions_user_id'), 'user_suspensions', ['user_id'], unique=False)

    op.create_table(
        'admin_audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('target_user_id', sa.Integer(), nullable=True),
        sa.Column('target_resource_type', sa.String(), nullable=True),
        sa.Column('target_resource_id', sa.String(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['target_user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_admin_audit_logs_id'), 'admin_audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_admin_audit_logs_admin_id'), 'admin_audit_logs', ['admin_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('notification_type', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('related_booking_id', sa.Integer(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['related_booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'], unique=False)

    op.create_table(
        'push_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('platform', sa.String(length=10), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token')
    )
    op.create_index(op.f('ix_push_tokens_id'), 'push_tokens', ['id'], unique=False)
    op.create_index(op.f('ix_push_tokens_user_id'), 'push_tokens', ['user_id'], unique=False)

    op.create_table(
        'roadmap_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', enum('roadmapstatus'), nullable=False),
        sa.Column('category', enum('roadmapcategory'), nullable=False),
        sa.Column('priority', enum('roadmappriority'), nullable=False),
        sa.Column('target_quarter', sa.String(length=7), nullable=True),
        sa.Column('visibility', enum('roadmapvisibility'), nullable=False),
        sa.Column('target_audience', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('vote_count', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_roadmap_items_id'), 'roadmap_items', ['id'], unique=False)
    op.create_index(op.f('ix_roadmap_items_slug'), 'roadmap_items', ['slug'], unique=True)

    op.create_table(
        'roadmap_votes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('roadmap_item_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['roadmap_item_id'], ['roadmap_items.id']),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('roadmap_item_id', 'user_id', name='uq_roadmap_vote_user')
    )
    op.create_index(op.f('ix_roadmap_votes_id'), 'roadmap_votes', ['id'], unique=False)

    op.create_table(
        'background_checks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.Integer(), nullable=False),
        sa.Column('provider', enum('webhookprovider'), nullable=False),
        sa.Column('provider_check_id', sa.String(), nullable=False),
        sa.Column('status', enum('backgroundcheckstatus'), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['professional_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_check_id')
    )
    op.create_index(op.f('ix_background_checks_id'), 'background_checks', ['id'], unique=False)
    op.create_index(op.f('ix_background_checks_professional_id'), 'background_checks', ['professional_id'], unique=False)


def downgrade() -> None:
    for table in (
        'background_checks', 'roadmap_votes', 'roadmap_items', 'push_tokens', 'notifications',
        'admin_audit_logs', 'user_suspensions', 'reviews', 'disputes', 'webhook_events',
        'payout_rate_limits', 'payout_transfers', 'balance_clearances', 'payment_transactions',
        'bookings', 'customer_profiles', 'professional_profiles', 'profiles',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        ENUM(*ENUMS[name], name=name).drop(bind, checkfirst=True)
