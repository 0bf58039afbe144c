"""create control plane tables

Revision ID: 1f4c2d8a6b30
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '1f4c2d8a6b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

schema_status = postgresql.ENUM('pending', 'applied', 'failed', name='schemastatus', create_type=False)


def upgrade() -> None:
    """Upgrade schema."""
    schema_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'tenants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_tenants')),
    )
    op.create_index(op.f('ix_tenants_slug'), 'tenants', ['slug'], unique=True)

    op.create_table(
        'schemas',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('definition', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('structural_model', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('status', schema_status, nullable=False),
        sa.Column('constraint_failures', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name=op.f('fk_schemas_tenant_id_tenants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_schemas')),
    )
    op.create_index(op.f('ix_schemas_tenant_id'), 'schemas', ['tenant_id'], unique=False)
    op.create_index(
        'uq_schemas_tenant_active', 'schemas', ['tenant_id'],
        unique=True, postgresql_where=sa.text('is_active')
    )

    op.create_table(
        'sql_query_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('query_text', sa.Text(), nullable=False),
        sa.Column('query_hash', sa.String(length=64), nullable=False, comment='sha256 of the trimmed query text'),
        sa.Column('execution_time_ms', sa.Integer(), nullable=False),
        sa.Column('rows_affected', sa.Integer(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('result_columns', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('result_preview', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        sa.Column('execution_timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name=op.f('fk_sql_query_history_tenant_id_tenants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sql_query_history')),
    )
    op.create_index(op.f('ix_sql_query_history_query_hash'), 'sql_query_history', ['query_hash'], unique=False)
    op.create_index('ix_sql_query_history_tenant_executed', 'sql_query_history', ['tenant_id', 'execution_timestamp'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_sql_query_history_tenant_executed', table_name='sql_query_history')
    op.drop_index(op.f('ix_sql_query_history_query_hash'), table_name='sql_query_history')
    op.drop_table('sql_query_history')
    op.drop_index('uq_schemas_tenant_active', table_name='schemas')
    op.drop_index(op.f('ix_schemas_tenant_id'), table_name='schemas')
    op.drop_table('schemas')
    op.drop_index(op.f('ix_tenants_slug'), table_name='tenants')
    op.drop_table('tenants')
    schema_status.drop(op.get_bind(), checkfirst=True)
