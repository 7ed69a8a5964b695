"""create scheduler tables

Revision ID: a1f3c9d2e4b7
Revises:
Create Date: 2026-10-01 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d2e4b7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

json_type = sa.JSON().with_variant(JSONB(), 'postgresql')
task_status = sa.Enum(
    'pending', 'in_progress', 'completed', 'failed',
    name='deferq_task_status',
    create_constraint=True,
)


def upgrade() -> None:
    op.create_table(
        'deferq_tasks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('payload', json_type, nullable=False),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', task_status, nullable=False, server_default='pending'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_retries', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', json_type, nullable=True),
        sa.Column('next_task_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_deferq_tasks_status_scheduled_at', 'deferq_tasks', ['status', 'scheduled_at'])
    op.create_index('ix_deferq_tasks_status_next_attempt_at', 'deferq_tasks', ['status', 'next_attempt_at'])

    op.create_table(
        'deferq_task_attempts',
        sa.Column('attempt_id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('task_id', sa.String(36), sa.ForeignKey('deferq_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attempted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('response', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_deferq_task_attempts_task_id', 'deferq_task_attempts', ['task_id'])

    op.create_table(
        'deferq_sync_checkpoints',
        sa.Column('checkpoint_id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('checkpoint_key', sa.String(255), nullable=False, server_default='default'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_tasks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_deferq_sync_checkpoints_checkpoint_key', 'deferq_sync_checkpoints', ['checkpoint_key'])


def downgrade() -> None:
    op.drop_table('deferq_sync_checkpoints')
    op.drop_table('deferq_task_attempts')
    op.drop_table('deferq_tasks')
    sa.Enum(name='deferq_task_status').drop(op.get_bind(), checkfirst=True)
