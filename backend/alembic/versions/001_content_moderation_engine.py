"""Add content moderation engine tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Moderation projection of externally stored content
    op.create_table(
        'moderated_content',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content_type', sa.String(20), nullable=False),
        sa.Column('content_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('excerpt', sa.Text(), nullable=True),
        sa.Column('author_id', sa.String(64), nullable=True),
        sa.Column('content_created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('report_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('latest_report_reason', sa.String(50), nullable=True),
        sa.Column('spam_score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('content_type', 'content_id', name='uq_moderated_content_ref'),
        sa.CheckConstraint('report_count >= 0', name='ck_moderated_content_report_count'),
        sa.CheckConstraint(
            'spam_score IS NULL OR (spam_score >= 0 AND spam_score <= 100)',
            name='ck_moderated_content_spam_score',
        ),
    )
    op.create_index('ix_moderated_content_content_type', 'moderated_content', ['content_type'])
    op.create_index('ix_moderated_content_author_id', 'moderated_content', ['author_id'])
    op.create_index('ix_moderated_content_status', 'moderated_content', ['status'])
    op.create_index('ix_moderated_content_queue', 'moderated_content', ['status', 'report_count'])

    # User reports
    op.create_table(
        'content_reports',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content_type', sa.String(20), nullable=False),
        sa.Column('content_id', sa.String(64), nullable=False),
        sa.Column('reporter_id', sa.String(64), nullable=False),
        sa.Column('reason', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('resolution', sa.String(20), nullable=True),
        sa.Column('resolved_by', sa.String(64), nullable=True),
        sa.Column('resolution_note', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_content_reports_content_ref', 'content_reports', ['content_type', 'content_id'])
    op.create_index('ix_content_reports_reporter_id', 'content_reports', ['reporter_id'])
    op.create_index('ix_content_reports_reason', 'content_reports', ['reason'])
    op.create_index('ix_content_reports_status', 'content_reports', ['status'])
    op.create_index('ix_content_reports_created_at', 'content_reports', ['created_at'])

    # Append-only audit trail
    op.create_table(
        'moderation_audit_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sequence', sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column('content_type', sa.String(20), nullable=False),
        sa.Column('content_id', sa.String(64), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('previous_status', sa.String(20), nullable=True),
        sa.Column('new_status', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence', name='uq_moderation_audit_entries_sequence'),
    )
    op.create_index('ix_moderation_audit_entries_actor_id', 'moderation_audit_entries', ['actor_id'])
    op.create_index(
        'ix_moderation_audit_content_ref',
        'moderation_audit_entries',
        ['content_type', 'content_id', 'sequence'],
    )


def downgrade() -> None:
    op.drop_index('ix_moderation_audit_content_ref', table_name='moderation_audit_entries')
    op.drop_index('ix_moderation_audit_entries_actor_id', table_name='moderation_audit_entries')
    op.drop_table('moderation_audit_entries')

    op.drop_index('ix_content_reports_created_at', table_name='content_reports')
    op.drop_index('ix_content_reports_status', table_name='content_reports')
    op.drop_index('ix_content_reports_reason', table_name='content_reports')
    op.drop_index('ix_content_reports_reporter_id', table_name='content_reports')
    op.drop_index('ix_content_reports_content_ref', table_name='content_reports')
    op.drop_table('content_reports')

    op.drop_index('ix_moderated_content_queue', table_name='moderated_content')
    op.drop_index('ix_moderated_content_status', table_name='moderated_content')
    op.drop_index('ix_moderated_content_author_id', table_name='moderated_content')
    op.drop_index('ix_moderated_content_content_type', table_name='moderated_content')
    op.drop_table('moderated_content')
