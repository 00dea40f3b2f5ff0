"""Create users, document request, blotter, announcement and notification tables

Revision ID: a1c4e2b7d901
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = 'a1c4e2b7d901'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Status enums are stored as their display values in plain VARCHAR columns.
STATUS = sa.String(length=32)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())

    if 'users' not in existing:
        op.create_table(
            'users',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('address', sa.String(), nullable=True),
            sa.Column('role', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'document_requests' not in existing:
        op.create_table(
            'document_requests',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('resident_id', sa.BigInteger(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('document_types', sa.JSON(), nullable=False),
            sa.Column('purpose', sa.Text(), nullable=False),
            sa.Column('status', STATUS, nullable=False),
            sa.Column('rejection_reason', sa.Text(), nullable=True),
            sa.Column('processing_stage', STATUS, nullable=False),
            sa.Column('pickup_start_date', sa.Date(), nullable=True),
            sa.Column('pickup_end_date', sa.Date(), nullable=True),
            sa.Column('pickup_notes', sa.Text(), nullable=True),
            sa.Column('scheduled_claim_date', sa.Date(), nullable=True),
            sa.Column('scheduled_claim_time', sa.String(length=5), nullable=True),
            sa.Column('priority_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('estimated_completion_date', sa.Date(), nullable=True),
            sa.Column('auto_archive_date', sa.DateTime(), nullable=True),
            sa.Column('is_expired', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('expiration_date', sa.DateTime(), nullable=True),
            sa.Column('last_automated_update', sa.DateTime(), nullable=True),
            sa.Column('status_changed_at', sa.DateTime(), nullable=True),
            sa.Column('claimed_at', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_document_requests_resident_id', 'document_requests', ['resident_id'])
        op.create_index('ix_document_requests_status', 'document_requests', ['status'])
        op.create_index('ix_document_requests_is_expired', 'document_requests', ['is_expired'])

    if 'pickup_slots' not in existing:
        op.create_table(
            'pickup_slots',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('request_id', sa.BigInteger(), sa.ForeignKey('document_requests.id', ondelete='CASCADE'), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('time', sa.String(length=5), nullable=False),
            sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('request_id', 'date', 'time', name='uq_pickup_slots_request_date_time'),
        )
        op.create_index('ix_pickup_slots_request_id', 'pickup_slots', ['request_id'])

    if 'request_automation_notes' not in existing:
        op.create_table(
            'request_automation_notes',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('request_id', sa.BigInteger(), sa.ForeignKey('document_requests.id', ondelete='CASCADE'), nullable=False),
            sa.Column('note', sa.Text(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_request_automation_notes_request_id', 'request_automation_notes', ['request_id'])

    if 'blotter_cases' not in existing:
        op.create_table(
            'blotter_cases',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('complainant_id', sa.BigInteger(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('accused_name', sa.String(), nullable=False),
            sa.Column('accused_address', sa.String(), nullable=True),
            sa.Column('accused_contact', sa.String(), nullable=True),
            sa.Column('accused_resident_id', sa.BigInteger(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('incident_date', sa.DateTime(), nullable=False),
            sa.Column('date_reported', sa.DateTime(), server_default=sa.func.now(), nullable=False),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('complaint_type', sa.String(), nullable=False),
            sa.Column('complaint_details', sa.Text(), nullable=True),
            sa.Column('status', STATUS, nullable=False),
            sa.Column('current_meeting', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('cfa_issued', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('cfa_issue_date', sa.DateTime(), nullable=True),
            sa.Column('cfa_reason', sa.Text(), nullable=True),
            sa.Column('resolution_details', sa.Text(), nullable=True),
            sa.Column('resolved_date', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_blotter_cases_complainant_id', 'blotter_cases', ['complainant_id'])
        op.create_index('ix_blotter_cases_status', 'blotter_cases', ['status'])

    if 'blotter_meetings' not in existing:
        op.create_table(
            'blotter_meetings',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('case_id', sa.BigInteger(), sa.ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False),
            sa.Column('meeting_number', sa.Integer(), nullable=False),
            sa.Column('date', sa.DateTime(), nullable=False),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('attendees', sa.JSON(), nullable=False),
            sa.Column('discussion', sa.Text(), nullable=True),
            sa.Column('agreements', sa.Text(), nullable=True),
            sa.Column('next_steps', sa.Text(), nullable=True),
            sa.Column('status', STATUS, nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('case_id', 'meeting_number', name='uq_blotter_meetings_case_number'),
        )
        op.create_index('ix_blotter_meetings_case_id', 'blotter_meetings', ['case_id'])

    if 'contact_attempts' not in existing:
        op.create_table(
            'contact_attempts',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('case_id', sa.BigInteger(), sa.ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False),
            sa.Column('date', sa.DateTime(), nullable=False),
            sa.Column('method', sa.String(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('successful', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_contact_attempts_case_id', 'contact_attempts', ['case_id'])

    if 'case_documents' not in existing:
        op.create_table(
            'case_documents',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('case_id', sa.BigInteger(), sa.ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False),
            sa.Column('document_type', STATUS, nullable=False),
            sa.Column('generated_at', sa.DateTime(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_case_documents_case_id', 'case_documents', ['case_id'])

    if 'announcements' not in existing:
        op.create_table(
            'announcements',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('image_url', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_announcements_created_at', 'announcements', ['created_at'])

    if 'notifications' not in existing:
        op.create_table(
            'notifications',
            sa.Column('id', sa.BigInteger(), nullable=False),
            sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('event', sa.String(), nullable=False),
            sa.Column('title', sa.String(), nullable=True),
            sa.Column('body', sa.Text(), nullable=True),
            sa.Column('request_id', sa.BigInteger(), sa.ForeignKey('document_requests.id', ondelete='SET NULL'), nullable=True),
            sa.Column('blotter_case_id', sa.BigInteger(), sa.ForeignKey('blotter_cases.id', ondelete='SET NULL'), nullable=True),
            sa.Column('read', sa.Boolean(), nullable=True, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    for table in (
        'notifications',
        'announcements',
        'case_documents',
        'contact_attempts',
        'blotter_meetings',
        'blotter_cases',
        'request_automation_notes',
        'pickup_slots',
        'document_requests',
        'users',
    ):
        op.drop_table(table)
