"""Initial schema - Baseline migration

Revision ID: 001_initial
Revises:
Create Date: 2025-01-06 00:00:00.000000

Baseline for the clearance certificate store: clearances, their criminal
cases and the audit trail. Matches database/models.py.
For databases created with DB_CREATE_TABLES, use `alembic stamp 001_initial`.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database schema."""

    audit_action = postgresql.ENUM(
        'CREATE', 'UPDATE', 'DELETE', 'DOWNLOAD',
        name='audit_action', create_type=True
    )
    audit_action.create(op.get_bind(), checkfirst=True)

    # Create clearances table
    op.create_table(
        'clearances',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('format_type', sa.String(1), nullable=False),
        sa.Column('has_criminal_record', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('middle_name', sa.String(100)),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('suffix', sa.String(20)),
        sa.Column('alias', sa.String(100)),
        sa.Column('age', sa.Integer, nullable=False),
        sa.Column('civil_status', sa.String(30)),
        sa.Column('nationality', sa.String(50), nullable=False, server_default='Filipino'),
        sa.Column('address', sa.Text, nullable=False),
        sa.Column('purpose', sa.String(100), nullable=False),
        sa.Column('custom_purpose', sa.String(255)),
        sa.Column('purpose_fee', sa.Float, nullable=False, server_default='0'),
        sa.Column('issued_upon_request_by', sa.String(200)),
        sa.Column('date_issued', sa.Date, nullable=False),
        sa.Column('prc_id_number', sa.String(50)),
        sa.Column('validity_period', sa.String(20), nullable=False, server_default='6 Months'),
        sa.Column('validity_expiry', sa.Date, nullable=False),
        sa.Column('case_numbers', sa.String(255)),
        sa.Column('crime_description', sa.Text),
        sa.Column('legal_statute', sa.String(255)),
        sa.Column('date_of_commission', sa.Date),
        sa.Column('date_information_filed', sa.Date),
        sa.Column('case_status', sa.String(50)),
        sa.Column('court_branch', sa.String(100)),
        sa.Column('notes', sa.Text),
        sa.Column('or_number', sa.String(30), nullable=False),
        sa.Column('or_year', sa.Integer, nullable=False),
        sa.Column('or_sequence', sa.Integer, nullable=False),
        sa.Column('issued_by_user_id', sa.String(100)),
        sa.Column('issued_by_name', sa.String(200)),
        sa.Column('updated_by_user_id', sa.String(100)),
        sa.Column('updated_by_name', sa.String(200)),
        sa.Column('status', sa.String(20), nullable=False, server_default='Valid'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.UniqueConstraint('or_number', name='uq_clearance_or_number'),
        sa.UniqueConstraint('or_year', 'or_sequence', name='uq_clearance_or_sequence'),
        sa.CheckConstraint("format_type IN ('A', 'B', 'C', 'D', 'E', 'F')", name='ck_clearance_format'),
        sa.CheckConstraint("status IN ('Valid', 'Expired')", name='ck_clearance_status'),
        sa.CheckConstraint('age >= 0', name='ck_clearance_age')
    )

    # Create clearance_criminal_cases table
    op.create_table(
        'clearance_criminal_cases',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('clearance_id', sa.Integer,
                  sa.ForeignKey('clearances.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('case_number', sa.String(100), nullable=False),
        sa.Column('crime', sa.String(500), nullable=False),
        sa.Column('date_info_filed', sa.Date),
        sa.Column('origin', sa.String(200)),
        sa.Column('status', sa.String(100), nullable=False)
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('action', postgresql.ENUM('CREATE', 'UPDATE', 'DELETE', 'DOWNLOAD',
                                          name='audit_action', create_type=False), nullable=False),
        sa.Column('resource_type', sa.String(100), nullable=False),
        sa.Column('resource_id', sa.String(100)),
        sa.Column('actor_id', sa.String(100)),
        sa.Column('actor_name', sa.String(200)),
        sa.Column('details', sa.JSON),
        sa.Column('old_value', sa.JSON),
        sa.Column('new_value', sa.JSON),
        sa.Column('success', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('error_message', sa.Text)
    )

    # Create indexes
    op.create_index('ix_clearances_format_type', 'clearances', ['format_type'])
    op.create_index('ix_clearances_has_criminal_record', 'clearances', ['has_criminal_record'])
    op.create_index('ix_clearances_last_name', 'clearances', ['last_name'])
    op.create_index('ix_clearances_date_issued', 'clearances', ['date_issued'])
    op.create_index('ix_clearances_issued_by_user_id', 'clearances', ['issued_by_user_id'])
    op.create_index('ix_clearances_status', 'clearances', ['status'])
    op.create_index('ix_clearance_created', 'clearances', ['created_at'])
    op.create_index('ix_clearance_name', 'clearances', ['last_name', 'first_name'])

    op.create_index('ix_clearance_criminal_cases_clearance_id', 'clearance_criminal_cases',
                    ['clearance_id'])

    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_resource_type', 'audit_logs', ['resource_type'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_timestamp_action', 'audit_logs', ['timestamp', 'action'])
    op.create_index('ix_audit_resource', 'audit_logs', ['resource_type', 'resource_id'])
    op.create_index('ix_audit_actor', 'audit_logs', ['actor_id', 'timestamp'])


def downgrade() -> None:
    """Drop all tables and types."""
    # Drop tables in reverse order
    op.drop_table('audit_logs')
    op.drop_table('clearance_criminal_cases')
    op.drop_table('clearances')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS audit_action')
