"""rename legacy follows columns to follower_id / following_id

Deployments that were bootstrapped before 001 carry one of the legacy
encodings (user_id/target_user_id or user_id/followed_user_id); stamp them
at 001 (`alembic stamp 001`) before upgrading. After this
revision every deployment can run with FOLLOW_COLUMNS=follower_id:following_id.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 11:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CANONICAL = ('follower_id', 'following_id')
LEGACY = (
    ('user_id', 'target_user_id'),
    ('user_id', 'followed_user_id'),
)


def _follow_columns() -> set:
    inspector = sa.inspect(op.get_bind())
    if 'follows' not in inspector.get_table_names():
        return set()
    return {c['name'] for c in inspector.get_columns('follows')}


def upgrade() -> None:
    columns = _follow_columns()
    if not columns or set(CANONICAL) <= columns:
        return

    for follower, followee in LEGACY:
        if {follower, followee} <= columns:
            with op.batch_alter_table('follows') as batch:
                batch.alter_column(follower, new_column_name=CANONICAL[0], existing_type=sa.String(length=64))
                batch.alter_column(followee, new_column_name=CANONICAL[1], existing_type=sa.String(length=64))
                # Legacy tables had no pair constraint; duplicates make this fail loudly
                batch.create_unique_constraint('uq_follows_pair', list(CANONICAL))
            return


def downgrade() -> None:
    # Legacy encodings are not restored
    pass
