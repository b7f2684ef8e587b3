"""Create tenant, temp_cache, historical_record and privacy_audit_log tables

Revision ID: 001
Revises:
Create Date: 2025-01-10 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Tenant with privacy-first preference defaults
    op.create_table(
        'tenant',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('plan_tier', sa.Text(), server_default='FREE', nullable=False),
        sa.Column('storage_mode', sa.Text(), server_default='MEMORY_ONLY', nullable=False),
        sa.Column('retention_days', sa.Integer(), server_default='0', nullable=False),
        sa.Column('encrypt_data', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('auto_delete', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('consent_given', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('consent_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "storage_mode IN ('MEMORY_ONLY', 'TEMPORARY', 'HISTORICAL')",
            name='ck_tenant_storage_mode'
        ),
        sa.CheckConstraint('retention_days >= 0', name='ck_tenant_retention_days')
    )

    # Temporary cache: one row per key, dead once expires_at has passed
    op.create_table(
        'temp_cache',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('encrypted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )
    op.create_index('ix_temp_cache_expires_at', 'temp_cache', ['expires_at'])
    op.create_index('ix_temp_cache_tenant_id', 'temp_cache', ['tenant_id'])

    op.create_table(
        'historical_record',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category', 'key', name='uq_historical_record_category_key')
    )
    op.create_index(
        'ix_historical_record_tenant_id_created_at', 'historical_record', ['tenant_id', 'created_at']
    )

    # Append-only; tenant_id is NULL for system-wide events
    op.create_table(
        'privacy_audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('details_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_privacy_audit_log_tenant_id', 'privacy_audit_log', ['tenant_id'])
    op.create_index(
        'ix_privacy_audit_log_tenant_id_created_at', 'privacy_audit_log', ['tenant_id', 'created_at']
    )


def downgrade():
    op.drop_index('ix_privacy_audit_log_tenant_id_created_at', table_name='privacy_audit_log')
    op.drop_index('ix_privacy_audit_log_tenant_id', table_name='privacy_audit_log')
    op.drop_table('privacy_audit_log')

    op.drop_index('ix_historical_record_tenant_id_created_at', table_name='historical_record')
    op.drop_table('historical_record')

    op.drop_index('ix_temp_cache_tenant_id', table_name='temp_cache')
    op.drop_index('ix_temp_cache_expires_at', table_name='temp_cache')
    op.drop_table('temp_cache')

    op.drop_table('tenant')

    # Note: We don't drop the pgcrypto extension as it may be used elsewhere
