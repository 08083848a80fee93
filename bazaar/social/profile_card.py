"""
Profile card assembly: public profile + relationship + follow counts,
plus the follower / following lists shown under the card
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.core.errors import FeatureUnavailableError, NotFoundError
from bazaar.core.logging import get_logger
from bazaar.infra.db import is_missing_table
from bazaar.models.friend import UserBlock
from bazaar.models.profile import Profile
from bazaar.social.follows import FOLLOW_PAGE_SIZE, FollowGraph, FollowPage, FollowStats
from bazaar.social.relationship import RelationshipResolver, RelationshipStatus

logger = get_logger(__name__)


@dataclass
class ProfileCard:
    profile: Profile
    relationship: RelationshipStatus
    stats: FollowStats
    blocked_by_owner: bool


class ProfileCardService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        follows: FollowGraph,
        resolver: RelationshipResolver,
    ):
        self._session_factory = session_factory
        self.follows = follows
        self.resolver = resolver

    async def load_profile(self, profile_ref: str) -> Profile:
        """`profile_ref` is a profile id, or a username when no id matches"""
        async with self._session_factory() as session:
            result = await session.execute(select(Profile).where(Profile.id == profile_ref))
            profile = result.scalar_one_or_none()
            if profile is None:
                result = await session.execute(select(Profile).where(Profile.username == profile_ref))
                profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profile not found", details={"profile_id": profile_ref})
        return profile

    async def is_blocked_by(self, owner_id: str, viewer_id: Optional[str]) -> bool:
        if viewer_id is None or viewer_id == owner_id:
            return False
        stmt = (
            select(UserBlock.id)
            .where(UserBlock.blocker_id == owner_id, UserBlock.blocked_id == viewer_id)
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.first() is not None
        except DBAPIError as exc:
            if not is_missing_table(exc):
                raise
            return False

    async def load_card(self, viewer_id: Optional[str], profile_ref: str) -> ProfileCard:
        try:
            profile = await self.load_profile(profile_ref)
            blocked = await self.is_blocked_by(profile.id, viewer_id)
            stats = await self.follows.stats(profile.id)
        except DBAPIError as exc:
            logger.error("profile_card.failed", profile_ref=profile_ref, viewer_id=viewer_id, error=str(exc.orig))
            raise FeatureUnavailableError("Profile is temporarily unavailable") from exc

        relationship = await self.resolver.resolve(viewer_id, profile.id)
        return ProfileCard(profile=profile, relationship=relationship, stats=stats, blocked_by_owner=blocked)

    async def connections(
        self,
        profile_ref: str,
        followers: bool,
        limit: int = FOLLOW_PAGE_SIZE,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> Tuple[Profile, FollowPage]:
        """Followers (or followed profiles) of the referenced profile, one page at a time"""
        try:
            profile = await self.load_profile(profile_ref)
            if followers:
                page = await self.follows.followers(profile.id, limit=limit, offset=offset, search=search)
            else:
                page = await self.follows.following(profile.id, limit=limit, offset=offset, search=search)
        except DBAPIError as exc:
            logger.error(
                "profile_connections.failed",
                profile_ref=profile_ref,
                followers=followers,
                error=str(exc.orig),
            )
            raise FeatureUnavailableError("Follow lists are temporarily unavailable") from exc
        return profile, page
