"""Initial allocation and negotiation schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create hosts table
    op.create_table('hosts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('commission_rate', sa.Float(), nullable=True),
        sa.Column('commission_path', sa.String(length=32), nullable=True),
        sa.Column('commission_tier', sa.String(length=32), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('default_deposit', sa.Integer(), nullable=True),
        sa.Column('make_deposits', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_host_name_not_empty'),
        sa.CheckConstraint(
            'commission_rate IS NULL OR (commission_rate >= 0 AND commission_rate <= 1)',
            name='ck_host_commission_rate_range'
        ),
        sa.CheckConstraint('default_deposit IS NULL OR default_deposit >= 25', name='ck_host_default_deposit_floor'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_hosts_email'), 'hosts', ['email'], unique=True)

    # Create vehicles table
    op.create_table('vehicles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('host_id', sa.Uuid(), nullable=False),
        sa.Column('make', sa.String(length=64), nullable=False),
        sa.Column('model', sa.String(length=64), nullable=False),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('daily_rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('deposit_mode', sa.String(length=16), nullable=False),
        sa.Column('deposit_amount', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('daily_rate >= 0', name='ck_vehicle_daily_rate_non_negative'),
        sa.CheckConstraint("deposit_mode IN ('GLOBAL', 'INDIVIDUAL', 'NONE')", name='ck_vehicle_deposit_mode_valid'),
        sa.ForeignKeyConstraint(['host_id'], ['hosts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_vehicles_host_id'), 'vehicles', ['host_id'], unique=False)

    # Create reservation_requests table
    op.create_table('reservation_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_code', sa.String(length=32), nullable=False),
        sa.Column('request_type', sa.String(length=32), nullable=False),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('guest_phone', sa.String(length=32), nullable=True),
        sa.Column('vehicle_type', sa.String(length=64), nullable=True),
        sa.Column('vehicle_class', sa.String(length=64), nullable=True),
        sa.Column('vehicle_make', sa.String(length=64), nullable=True),
        sa.Column('vehicle_model', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('duration_days', sa.Integer(), nullable=True),
        sa.Column('offered_rate', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('total_budget', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('is_negotiable', sa.Boolean(), nullable=False),
        sa.Column('pickup_city', sa.String(length=128), nullable=True),
        sa.Column('pickup_state', sa.String(length=64), nullable=True),
        sa.Column('dropoff_city', sa.String(length=128), nullable=True),
        sa.Column('dropoff_state', sa.String(length=64), nullable=True),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('claim_attempts', sa.Integer(), nullable=False),
        sa.Column('guest_notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_request_quantity_positive'),
        sa.CheckConstraint('length(guest_name) > 0', name='ck_request_guest_name_not_empty'),
        sa.CheckConstraint(
            'start_date IS NULL OR end_date IS NULL OR end_date >= start_date',
            name='ck_request_date_range_ordered'
        ),
        sa.CheckConstraint('claim_attempts >= 0', name='ck_request_claim_attempts_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reservation_requests_request_code'), 'reservation_requests', ['request_code'], unique=True)
    op.create_index(op.f('ix_reservation_requests_priority'), 'reservation_requests', ['priority'], unique=False)
    op.create_index(op.f('ix_reservation_requests_status'), 'reservation_requests', ['status'], unique=False)

    # Create request_claims table
    op.create_table('request_claims',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=False),
        sa.Column('host_id', sa.Uuid(), nullable=False),
        sa.Column('car_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('offered_rate', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), nullable=False),
        sa.Column('claim_expires_at', sa.DateTime(), nullable=False),
        sa.Column('car_assigned_at', sa.DateTime(), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('claim_expires_at > claimed_at', name='ck_request_claim_expiry_after_claim'),
        sa.CheckConstraint(
            "status NOT IN ('CAR_SELECTED', 'CONFIRMED') OR car_id IS NOT NULL",
            name='ck_request_claim_selected_has_car'
        ),
        sa.ForeignKeyConstraint(['request_id'], ['reservation_requests.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['host_id'], ['hosts.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['car_id'], ['vehicles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', 'host_id', name='uq_request_claim_request_host')
    )
    op.create_index(op.f('ix_request_claims_request_id'), 'request_claims', ['request_id'], unique=False)
    op.create_index(op.f('ix_request_claims_host_id'), 'request_claims', ['host_id'], unique=False)
    op.create_index(op.f('ix_request_claims_status'), 'request_claims', ['status'], unique=False)
    op.create_index(op.f('ix_request_claims_claim_expires_at'), 'request_claims', ['claim_expires_at'], unique=False)
    # At most one claim may hold a request at a time
    op.create_index(
        'uq_request_claims_one_active_per_request',
        'request_claims',
        ['request_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING_CAR', 'CAR_SELECTED')"),
        sqlite_where=sa.text("status IN ('PENDING_CAR', 'CAR_SELECTED')")
    )

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('car_id', sa.Uuid(), nullable=False),
        sa.Column('host_id', sa.Uuid(), nullable=False),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('host_review_status', sa.String(length=20), nullable=True),
        sa.Column('host_reviewed_by', sa.String(length=255), nullable=True),
        sa.Column('host_reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('host_review_notes', sa.Text(), nullable=True),
        sa.Column('original_car_id', sa.Uuid(), nullable=True),
        sa.Column('vehicle_change_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_date >= start_date', name='ck_booking_date_range_ordered'),
        sa.CheckConstraint('length(guest_name) > 0', name='ck_booking_guest_name_not_empty'),
        sa.ForeignKeyConstraint(['car_id'], ['vehicles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['host_id'], ['hosts.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_car_id'), 'bookings', ['car_id'], unique=False)
    op.create_index(op.f('ix_bookings_host_id'), 'bookings', ['host_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)

    # Create reassignment_tokens table
    op.create_table('reassignment_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('original_car_id', sa.Uuid(), nullable=False),
        sa.Column('new_car_id', sa.Uuid(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('issued_by', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(), nullable=True),
        sa.Column('superseded_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('length(token) > 0', name='ck_reassignment_token_not_empty'),
        sa.CheckConstraint('length(reason) > 0', name='ck_reassignment_token_reason_not_empty'),
        sa.CheckConstraint('new_car_id != original_car_id', name='ck_reassignment_token_car_changes'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['new_car_id'], ['vehicles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reassignment_tokens_token'), 'reassignment_tokens', ['token'], unique=True)
    op.create_index(op.f('ix_reassignment_tokens_booking_id'), 'reassignment_tokens', ['booking_id'], unique=False)
    op.create_index(op.f('ix_reassignment_tokens_expires_at'), 'reassignment_tokens', ['expires_at'], unique=False)

    # Create management_invitations table
    op.create_table('management_invitations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('invitation_type', sa.String(length=32), nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False),
        sa.Column('sender_email', sa.String(length=255), nullable=False),
        sa.Column('recipient_id', sa.String(length=64), nullable=True),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('vehicle_ids', sa.JSON(), nullable=False),
        sa.Column('proposed_owner_percent', sa.Integer(), nullable=False),
        sa.Column('proposed_manager_percent', sa.Integer(), nullable=False),
        sa.Column('counter_owner_percent', sa.Integer(), nullable=True),
        sa.Column('counter_manager_percent', sa.Integer(), nullable=True),
        sa.Column('negotiation_rounds', sa.Integer(), nullable=False),
        sa.Column('negotiation_history', sa.JSON(), nullable=False),
        sa.Column('can_edit_listing', sa.Boolean(), nullable=False),
        sa.Column('can_adjust_pricing', sa.Boolean(), nullable=False),
        sa.Column('can_message_guests', sa.Boolean(), nullable=False),
        sa.Column('can_approve_bookings', sa.Boolean(), nullable=False),
        sa.Column('can_handle_issues', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('decline_reason', sa.Text(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'proposed_owner_percent + proposed_manager_percent = 100',
            name='ck_invitation_proposed_split_sums_to_100'
        ),
        sa.CheckConstraint(
            'counter_owner_percent IS NULL OR counter_owner_percent + counter_manager_percent = 100',
            name='ck_invitation_counter_split_sums_to_100'
        ),
        sa.CheckConstraint(
            'negotiation_rounds >= 0 AND negotiation_rounds <= 5',
            name='ck_invitation_negotiation_rounds_range'
        ),
        sa.CheckConstraint('length(recipient_email) > 0', name='ck_invitation_recipient_email_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_management_invitations_token'), 'management_invitations', ['token'], unique=True)
    op.create_index(op.f('ix_management_invitations_sender_id'), 'management_invitations', ['sender_id'], unique=False)
    op.create_index(op.f('ix_management_invitations_recipient_id'), 'management_invitations', ['recipient_id'], unique=False)
    op.create_index(op.f('ix_management_invitations_recipient_email'), 'management_invitations', ['recipient_email'], unique=False)
    op.create_index(op.f('ix_management_invitations_status'), 'management_invitations', ['status'], unique=False)
    op.create_index(op.f('ix_management_invitations_expires_at'), 'management_invitations', ['expires_at'], unique=False)

    # Create commission_audit_entries table
    op.create_table('commission_audit_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('host_id', sa.Uuid(), nullable=False),
        sa.Column('old_rate', sa.Float(), nullable=True),
        sa.Column('new_rate', sa.Float(), nullable=False),
        sa.Column('path', sa.String(length=32), nullable=True),
        sa.Column('tier', sa.String(length=32), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('new_rate >= 0 AND new_rate <= 1', name='ck_commission_audit_new_rate_range'),
        sa.CheckConstraint('length(reason) > 0', name='ck_commission_audit_reason_not_empty'),
        sa.CheckConstraint('length(actor) > 0', name='ck_commission_audit_actor_not_empty'),
        sa.ForeignKeyConstraint(['host_id'], ['hosts.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_commission_audit_entries_host_id'), 'commission_audit_entries', ['host_id'], unique=False)
    op.create_index(op.f('ix_commission_audit_entries_created_at'), 'commission_audit_entries', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('commission_audit_entries')
    op.drop_table('management_invitations')
    op.drop_table('reassignment_tokens')
    op.drop_table('bookings')
    op.drop_index('uq_request_claims_one_active_per_request', table_name='request_claims')
    op.drop_table('request_claims')
    op.drop_table('reservation_requests')
    op.drop_table('vehicles')
    op.drop_table('hosts')
