"""Add migration_runs and migration_items tables for resumable migrations.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create migration_runs and migration_items tables."""
    op.create_table(
        'migration_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_hash', sa.String(100), nullable=False),
        sa.Column('channel_id', sa.String(20), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_migration_runs_store_hash', 'migration_runs', ['store_hash'])

    op.create_table(
        'migration_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('run_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(255), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('state', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('legacy_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('promotion_id', sa.Integer(), nullable=True),
        sa.Column('coupon_id', sa.Integer(), nullable=True),
        sa.Column('deleted_records', sa.Text(), nullable=True),
        sa.Column('error', sa.String(500), nullable=True),
        sa.Column('retryable', sa.Boolean(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['run_id'], ['migration_runs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('run_id', 'code', name='uq_migration_item_run_code')
    )
    op.create_index('ix_migration_items_run_id', 'migration_items', ['run_id'])


def downgrade():
    """Drop migration tables."""
    op.drop_index('ix_migration_items_run_id', 'migration_items')
    op.drop_table('migration_items')
    op.drop_index('ix_migration_runs_store_hash', 'migration_runs')
    op.drop_table('migration_runs')
