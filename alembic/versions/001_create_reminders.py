"""create reminders and snooze history tables

Revision ID: 001_create_reminders
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_create_reminders'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'reminders',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), nullable=False),
        sa.Column('channel_id', sa.String(), nullable=True),
        sa.Column('message_id', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('remind_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('priority', sa.String(), nullable=False, server_default='low'),
        sa.Column('recurrence', postgresql.JSONB(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('triggered_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_reminders_user_id', 'reminders', ['user_id'])
    op.create_index('ix_reminders_workspace_id', 'reminders', ['workspace_id'])
    op.create_index('ix_reminders_channel_id', 'reminders', ['channel_id'])
    op.create_index('ix_reminders_status_remind_at', 'reminders', ['status', 'remind_at'])
    op.create_index('ix_reminders_user_remind_at', 'reminders', ['user_id', 'remind_at'])

    op.create_table(
        'reminder_snooze_history',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('reminder_id', sa.String(32), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('snoozed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('duration', sa.String(), nullable=False),
        sa.Column('new_time', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_reminder_snooze_history_reminder_id', 'reminder_snooze_history', ['reminder_id'])


def downgrade() -> None:
    op.drop_index('ix_reminder_snooze_history_reminder_id', table_name='reminder_snooze_history')
    op.drop_table('reminder_snooze_history')
    op.drop_index('ix_reminders_user_remind_at', table_name='reminders')
    op.drop_index('ix_reminders_status_remind_at', table_name='reminders')
    op.drop_index('ix_reminders_channel_id', table_name='reminders')
    op.drop_index('ix_reminders_workspace_id', table_name='reminders')
    op.drop_index('ix_reminders_user_id', table_name='reminders')
    op.drop_table('reminders')
