"""Create admin access-control and content tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Partial unique indexes close the read-then-insert races on invitations
(one pending invitation per email) and pending requests (one pending
request per sub-admin, action, resource type, page and resource id).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str | None = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema changes."""
    op.create_table(
        'sub_admins',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('uid', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('invited_by', sa.String(length=128), nullable=False),
        sa.Column('invited_by_email', sa.String(length=320), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('page_permissions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disabled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disabled_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sub_admins')),
        sa.UniqueConstraint('email', name=op.f('uq_sub_admins_email'))
    )
    op.create_index('ix_sub_admins_uid', 'sub_admins', ['uid'], unique=False)

    op.create_table(
        'admin_invitations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('invited_by', sa.String(length=128), nullable=False),
        sa.Column('invited_by_email', sa.String(length=320), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('page_permissions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'expired')",
            name='ck_admin_invitations_status'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_admin_invitations')),
        sa.UniqueConstraint('token', name=op.f('uq_admin_invitations_token'))
    )
    op.create_index('ix_admin_invitations_email', 'admin_invitations', ['email'], unique=False)
    op.create_index(
        'uq_admin_invitations_pending_email',
        'admin_invitations',
        ['email'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'")
    )

    op.create_table(
        'pending_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sub_admin_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sub_admin_email', sa.String(length=320), nullable=False),
        sa.Column('sub_admin_name', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=10), nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('resource_id', sa.String(length=255), nullable=True),
        sa.Column('resource_name', sa.String(length=255), nullable=True),
        sa.Column('page', sa.String(length=50), nullable=False),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('previous_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(length=128), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('execution_status', sa.String(length=20), nullable=True),
        sa.Column('execution_message', sa.Text(), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('execution_attempts', sa.Integer(), server_default='0', nullable=False),
        sa.CheckConstraint(
            "action IN ('CREATE', 'UPDATE', 'DELETE')",
            name='ck_pending_requests_action'
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='ck_pending_requests_status'
        ),
        sa.CheckConstraint(
            "execution_status IS NULL OR execution_status IN ('succeeded', 'failed')",
            name='ck_pending_requests_execution_status'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_pending_requests'))
    )
    op.create_index('ix_pending_requests_sub_admin_id', 'pending_requests', ['sub_admin_id'], unique=False)
    op.create_index('ix_pending_requests_page', 'pending_requests', ['page'], unique=False)
    op.create_index('ix_pending_requests_status', 'pending_requests', ['status'], unique=False)
    op.create_index('ix_pending_requests_created_at', 'pending_requests', ['created_at'], unique=False)
    op.create_index(
        'uq_pending_requests_pending_target',
        'pending_requests',
        ['sub_admin_id', 'action', 'resource_type', 'page', sa.text("coalesce(resource_id, '')")],
        unique=True,
        postgresql_where=sa.text("status = 'pending'")
    )

    op.create_table(
        'documents',
        sa.Column('collection', sa.String(length=100), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('collection', 'id', name=op.f('pk_documents'))
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('actor_id', sa.String(length=128), nullable=True),
        sa.Column('actor_email', sa.String(length=320), nullable=True),
        sa.Column('actor_type', sa.String(length=20), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=255), nullable=False),
        sa.Column('before', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('after', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "actor_type IN ('core_admin', 'sub_admin', 'system')",
            name='ck_audit_logs_actor_type'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_logs'))
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'], unique=False)
    op.create_index('ix_audit_logs_actor_type', 'audit_logs', ['actor_type'], unique=False)
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'], unique=False)
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'], unique=False)
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'], unique=False)
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_table('audit_logs')
    op.drop_table('documents')
    op.drop_index('uq_pending_requests_pending_target', table_name='pending_requests')
    op.drop_table('pending_requests')
    op.drop_index('uq_admin_invitations_pending_email', table_name='admin_invitations')
    op.drop_table('admin_invitations')
    op.drop_table('sub_admins')
