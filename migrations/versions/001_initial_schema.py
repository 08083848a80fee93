"""initial social schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- profiles ---
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('full_name', sa.String(length=128), nullable=True),
        sa.Column('first_name', sa.String(length=64), nullable=True),
        sa.Column('last_name', sa.String(length=64), nullable=True),
        sa.Column('avatar_url', sa.String(length=512), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('state', sa.String(length=128), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_profiles_username')
    )

    # --- follows (canonical encoding) ---
    op.create_table(
        'follows',
        sa.Column('follower_id', sa.String(length=64), nullable=False),
        sa.Column('following_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('follower_id <> following_id', name='chk_follows_not_self'),
        sa.ForeignKeyConstraint(['follower_id'], ['profiles.id'], name='fk_follows_follower', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['following_id'], ['profiles.id'], name='fk_follows_following', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('follower_id', 'following_id')
    )
    op.create_index('idx_follows_following', 'follows', ['following_id'], unique=False)

    # --- friend_requests ---
    op.create_table(
        'friend_requests',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('requester_id', sa.String(length=64), nullable=False),
        sa.Column('receiver_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('requester_id <> receiver_id', name='chk_friend_requests_not_self'),
        sa.ForeignKeyConstraint(['requester_id'], ['profiles.id'], name='fk_friend_requests_requester'),
        sa.ForeignKeyConstraint(['receiver_id'], ['profiles.id'], name='fk_friend_requests_receiver'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('requester_id', 'receiver_id', name='uq_friend_requests_pair')
    )
    op.create_index('idx_friend_requests_receiver', 'friend_requests', ['receiver_id', 'status'], unique=False)

    # --- user_blocks ---
    op.create_table(
        'user_blocks',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('blocker_id', sa.String(length=64), nullable=False),
        sa.Column('blocked_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['blocker_id'], ['profiles.id'], name='fk_user_blocks_blocker'),
        sa.ForeignKeyConstraint(['blocked_id'], ['profiles.id'], name='fk_user_blocks_blocked'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uq_user_blocks_pair')
    )

    # --- conversations ---
    op.create_table(
        'conversations',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('is_group', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id'], name='fk_conversations_created_by'),
        sa.PrimaryKeyConstraint('id')
    )

    # --- conversation_participants ---
    op.create_table(
        'conversation_participants',
        sa.Column('conversation_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], name='fk_conversation_participants_conversation', onupdate='CASCADE', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], name='fk_conversation_participants_user'),
        sa.PrimaryKeyConstraint('conversation_id', 'user_id')
    )
    op.create_index('idx_conversation_participants_user', 'conversation_participants', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_table('conversation_participants')
    op.drop_table('conversations')
    op.drop_table('user_blocks')
    op.drop_table('friend_requests')
    op.drop_table('follows')
    op.drop_table('profiles')
