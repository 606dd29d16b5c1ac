"""create_membership_tables

Revision ID: 4c1d9e7a2b10
Revises:
Create Date: 2026-10-19 09:12:04.118230

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c1d9e7a2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create groups, user_groups, rate_limits and notifications tables."""
    op.create_table('groups',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('privacy', sa.String(length=20), nullable=False, server_default='public'),
        sa.Column('creator_id', sa.String(length=128), nullable=False),
        sa.Column('admins', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('members', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('member_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('requests', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint("privacy IN ('public', 'private', 'restricted')", name='ck_groups_privacy'),
        sa.CheckConstraint('member_count >= 0', name='ck_groups_member_count'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_groups_creator_id', 'groups', ['creator_id'], unique=False)

    op.create_table('user_groups',
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('user_id', 'group_id'),
    )
    # No FK to groups: index rows may briefly outlive a deleted group
    op.create_index('ix_user_groups_group_id', 'user_groups', ['group_id'], unique=False)

    op.create_table('rate_limits',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('last_action_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table('notifications',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('recipient_id', sa.String(length=128), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=False),
        sa.Column('actor_id', sa.String(length=128), nullable=False),
        sa.Column('payload', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_notifications_recipient_created',
        'notifications',
        ['recipient_id', sa.text('created_at DESC')],
        unique=False,
    )


def downgrade() -> None:
    """Drop membership tables."""
    op.drop_index('ix_notifications_recipient_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('rate_limits')
    op.drop_index('ix_user_groups_group_id', table_name='user_groups')
    op.drop_table('user_groups')
    op.drop_index('ix_groups_creator_id', table_name='groups')
    op.drop_table('groups')
