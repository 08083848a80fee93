"""
Follow-edge operations over the probed `follows` encoding
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.core.logging import get_logger
from bazaar.models.profile import Profile
from bazaar.social.schema_probe import FollowColumns, SchemaProbe, SchemaProbeExhausted

logger = get_logger(__name__)


@dataclass
class FollowStats:
    followers: int = 0
    following: int = 0


FOLLOW_PAGE_SIZE = 8


@dataclass
class FollowPage:
    """One page of a follower or following list, in edge order"""

    profiles: List[Profile]
    offset: int
    limit: int
    has_more: bool = False


class FollowGraph:
    """
    Each public method opens its own SchemaProbe, so the live encoding is
    re-discovered on every call and shared only between the statements of
    that call.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        candidates: Optional[Sequence[FollowColumns]] = None,
    ):
        self._session_factory = session_factory
        self._candidates = candidates

    def new_probe(self) -> SchemaProbe:
        return SchemaProbe(self._candidates)

    # --- single-statement operations, parameterized by encoding ---

    async def _edge_exists(self, columns: FollowColumns, follower_id: str, followee_id: str) -> bool:
        follows = columns.table()
        stmt = (
            select(follows.c[columns.follower])
            .where(
                follows.c[columns.follower] == follower_id,
                follows.c[columns.followee] == followee_id,
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def _insert_edge(self, columns: FollowColumns, follower_id: str, followee_id: str) -> None:
        stmt = insert(columns.table()).values(
            {columns.follower: follower_id, columns.followee: followee_id}
        )
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(stmt)

    async def _delete_edge(self, columns: FollowColumns, follower_id: str, followee_id: str) -> int:
        follows = columns.table()
        stmt = delete(follows).where(
            follows.c[columns.follower] == follower_id,
            follows.c[columns.followee] == followee_id,
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.rowcount

    async def count_edges(self, columns: FollowColumns, user_id: str, as_follower: bool) -> int:
        follows = columns.table()
        if as_follower:
            key, other = columns.follower, columns.followee
        else:
            key, other = columns.followee, columns.follower
        # Both columns are named so a wrong encoding fails as a schema mismatch
        stmt = select(func.count(follows.c[other])).where(follows.c[key] == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    # --- public API ---

    async def is_following(self, follower_id: str, followee_id: str) -> bool:
        """
        The first encoding that answers without a schema mismatch is
        authoritative, even when it finds nothing.
        """
        probe = self.new_probe()
        try:
            return await probe.run(lambda cols: self._edge_exists(cols, follower_id, followee_id))
        except SchemaProbeExhausted:
            return False

    async def follow(self, follower_id: str, followee_id: str) -> bool:
        """
        Create the edge unless it already exists under the live encoding.
        Returns False only when no known encoding matches the store.

        A constraint violation on insert counts as success only if the edge
        is there afterwards (a concurrent follow); any other violation, such
        as a foreign key to a missing profile, is re-raised.
        """
        probe = self.new_probe()
        try:
            if await probe.run(lambda cols: self._edge_exists(cols, follower_id, followee_id)):
                return True
            await probe.run(lambda cols: self._insert_edge(cols, follower_id, followee_id))
        except SchemaProbeExhausted:
            return False
        except IntegrityError as exc:
            if not await probe.run(lambda cols: self._edge_exists(cols, follower_id, followee_id)):
                logger.warning(
                    "follow.insert.rejected",
                    follower_id=follower_id,
                    followee_id=followee_id,
                    columns=str(probe.live),
                    error=str(exc.orig),
                )
                raise
            logger.info(
                "follow.insert.conflict",
                follower_id=follower_id,
                followee_id=followee_id,
                columns=str(probe.live),
            )
            return True
        logger.info("follow.created", follower_id=follower_id, followee_id=followee_id, columns=str(probe.live))
        return True

    async def unfollow(self, follower_id: str, followee_id: str) -> bool:
        """Deleting an absent edge succeeds. False means no encoding matched."""
        probe = self.new_probe()
        try:
            deleted = await probe.run(lambda cols: self._delete_edge(cols, follower_id, followee_id))
        except SchemaProbeExhausted:
            return False
        logger.info(
            "follow.deleted",
            follower_id=follower_id,
            followee_id=followee_id,
            rows=deleted,
            columns=str(probe.live),
        )
        return True

    async def stats(self, user_id: str) -> FollowStats:
        """Follower / following counts; the second count reuses the pair the first one found"""
        probe = self.new_probe()
        try:
            followers = await probe.run(lambda cols: self.count_edges(cols, user_id, as_follower=False))
            following = await probe.run(lambda cols: self.count_edges(cols, user_id, as_follower=True))
        except SchemaProbeExhausted:
            return FollowStats()
        return FollowStats(followers=followers, following=following)

    # --- follower / following lists ---

    async def _page_ids(
        self,
        columns: FollowColumns,
        user_id: str,
        followers: bool,
        limit: int,
        offset: int,
    ) -> List[str]:
        follows = columns.table()
        if followers:
            key, other = columns.followee, columns.follower
        else:
            key, other = columns.follower, columns.followee
        stmt = (
            select(follows.c[other])
            .where(follows.c[key] == user_id)
            .order_by(follows.c[other])
            .limit(limit)
            .offset(offset)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [uid for uid in result.scalars() if uid]

    async def _load_profiles(self, ids: List[str], search: Optional[str]) -> List[Profile]:
        stmt = select(Profile).where(Profile.id.in_(ids))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Profile.username.ilike(pattern),
                    Profile.full_name.ilike(pattern),
                    Profile.first_name.ilike(pattern),
                    Profile.last_name.ilike(pattern),
                )
            )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            by_id = {p.id: p for p in result.scalars()}
        # Keep edge order; edges to deleted profiles drop out
        return [by_id[uid] for uid in ids if uid in by_id]

    async def _page(
        self,
        user_id: str,
        followers: bool,
        limit: int,
        offset: int,
        search: Optional[str],
    ) -> FollowPage:
        probe = self.new_probe()
        try:
            ids = await probe.run(lambda cols: self._page_ids(cols, user_id, followers, limit, offset))
        except SchemaProbeExhausted:
            return FollowPage(profiles=[], offset=offset, limit=limit)
        if not ids:
            return FollowPage(profiles=[], offset=offset, limit=limit)

        # The search narrows this page only; has_more follows the edge page
        profiles = await self._load_profiles(ids, search)
        return FollowPage(profiles=profiles, offset=offset, limit=limit, has_more=len(ids) == limit)

    async def followers(
        self,
        user_id: str,
        limit: int = FOLLOW_PAGE_SIZE,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> FollowPage:
        """Profiles following `user_id`"""
        return await self._page(user_id, True, limit, offset, search)

    async def following(
        self,
        user_id: str,
        limit: int = FOLLOW_PAGE_SIZE,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> FollowPage:
        """Profiles `user_id` follows"""
        return await self._page(user_id, False, limit, offset, search)
