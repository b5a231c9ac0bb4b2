"""create_lease_workflow_tables

Revision ID: 3f9c2a71d4b8
Revises:
Create Date: 2026-10-18 09:12:30.412876

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d4b8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # lease_requests
    op.create_table('lease_requests',
    sa.Column('id', sa.String(length=16), nullable=False),
    sa.Column('property_id', sa.String(), nullable=False),
    sa.Column('property_address', sa.Text(), nullable=False),
    sa.Column('tenant_name', sa.String(), nullable=False),
    sa.Column('tenant_abn', sa.String(length=14), nullable=True),
    sa.Column('tenant_acn', sa.String(length=11), nullable=True),
    sa.Column('requestor_email', sa.String(), nullable=True),
    sa.Column('contact_phone', sa.String(), nullable=True),
    sa.Column('special_conditions', sa.Text(), nullable=True),
    sa.Column('lease_term', sa.Integer(), nullable=False),
    sa.Column('commencement_date', sa.Date(), nullable=False),
    sa.Column('rent_amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('security_deposit', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lease_requests_tenant_name', 'lease_requests', ['tenant_name'])
    op.create_index('ix_lease_requests_status', 'lease_requests', ['status'])

    # lease_documents
    op.create_table('lease_documents',
    sa.Column('id', sa.String(length=32), nullable=False),
    sa.Column('lease_request_id', sa.String(length=16), nullable=False),
    sa.Column('position', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('document_type', sa.String(), nullable=False),
    sa.Column('url', sa.Text(), nullable=True),
    sa.Column('size', sa.Integer(), nullable=False),
    sa.Column('mime_type', sa.String(), nullable=True),
    sa.Column('extracted_data', sa.JSON(), nullable=True),
    sa.Column('confidence_score', sa.Float(), nullable=True),
    sa.Column('uploaded_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['lease_request_id'], ['lease_requests.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lease_documents_lease_request_id', 'lease_documents', ['lease_request_id'])

    # workflow_steps
    op.create_table('workflow_steps',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('lease_request_id', sa.String(length=16), nullable=False),
    sa.Column('step_number', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.Text(), nullable=False),
    sa.Column('status', sa.String(), nullable=False, server_default='pending'),
    sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('assigned_to', sa.String(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('confidence_score', sa.Float(), nullable=True),
    sa.Column('requires_review', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('corrected_data', sa.JSON(), nullable=True),
    sa.ForeignKeyConstraint(['lease_request_id'], ['lease_requests.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('lease_request_id', 'step_number', name='uq_workflow_steps_request_step')
    )
    op.create_index('ix_workflow_steps_lease_request_id', 'workflow_steps', ['lease_request_id'])

    # audit_entries
    op.create_table('audit_entries',
    sa.Column('id', sa.String(length=32), nullable=False),
    sa.Column('sequence', sa.Integer(), nullable=False),
    sa.Column('lease_request_id', sa.String(length=16), nullable=False),
    sa.Column('timestamp', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('action', sa.String(), nullable=False),
    sa.Column('performed_by', sa.String(), nullable=False),
    sa.Column('details', sa.Text(), nullable=False),
    sa.Column('step_number', sa.Integer(), nullable=True),
    sa.Column('confidence_score', sa.Float(), nullable=True),
    sa.Column('sla_breached', sa.Boolean(), nullable=True),
    sa.ForeignKeyConstraint(['lease_request_id'], ['lease_requests.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_entries_lease_request_id', 'audit_entries', ['lease_request_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_audit_entries_lease_request_id', table_name='audit_entries')
    op.drop_table('audit_entries')
    op.drop_index('ix_workflow_steps_lease_request_id', table_name='workflow_steps')
    op.drop_table('workflow_steps')
    op.drop_index('ix_lease_documents_lease_request_id', table_name='lease_documents')
    op.drop_table('lease_documents')
    op.drop_index('ix_lease_requests_status', table_name='lease_requests')
    op.drop_index('ix_lease_requests_tenant_name', table_name='lease_requests')
    op.drop_table('lease_requests')
