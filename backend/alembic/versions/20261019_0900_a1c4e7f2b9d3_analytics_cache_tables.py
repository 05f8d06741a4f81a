"""Analytics cache tables: analytics_cache, analytics_metadata, analytics_history

Revision ID: a1c4e7f2b9d3
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f2b9d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create analytics tables. Orders, products and expenses are owned by the storefront schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # 1. Latest computed payload per metric type / dashboard widget key
    op.create_table(
        'analytics_cache',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('metric_type', sa.String(length=50), nullable=False),
        sa.Column('calculated_data', postgresql.JSONB(), nullable=False),
        sa.Column('computation_time_ms', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('metric_type', name='uq_analytics_cache_metric_type'),
    )
    op.create_index(op.f('ix_analytics_cache_updated_at'), 'analytics_cache', ['updated_at'])

    # 2. Refresh run audit trail
    op.create_table(
        'analytics_metadata',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='processing'),
        sa.Column('triggered_by', sa.String(length=100), nullable=False, server_default='system'),
        sa.Column('metric_type', sa.String(length=50), nullable=True),
        sa.Column('last_refresh_at', sa.DateTime(), nullable=True),
        sa.Column('refresh_duration_ms', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name='ck_analytics_metadata_status',
        ),
    )
    op.create_index(op.f('ix_analytics_metadata_status'), 'analytics_metadata', ['status'])
    op.create_index(op.f('ix_analytics_metadata_last_refresh_at'), 'analytics_metadata', ['last_refresh_at'])

    # 3. Dated bundles written after each full refresh
    op.create_table(
        'analytics_history',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('metric_type', sa.String(length=50), nullable=False, server_default='daily_snapshot'),
        sa.Column('calculated_data', postgresql.JSONB(), nullable=False),
        sa.Column('snapshot_date', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analytics_history_snapshot_date'), 'analytics_history', ['snapshot_date'])


def downgrade() -> None:
    """Drop analytics tables."""
    op.drop_index(op.f('ix_analytics_history_snapshot_date'), table_name='analytics_history')
    op.drop_table('analytics_history')

    op.drop_index(op.f('ix_analytics_metadata_last_refresh_at'), table_name='analytics_metadata')
    op.drop_index(op.f('ix_analytics_metadata_status'), table_name='analytics_metadata')
    op.drop_table('analytics_metadata')

    op.drop_index(op.f('ix_analytics_cache_updated_at'), table_name='analytics_cache')
    op.drop_table('analytics_cache')
