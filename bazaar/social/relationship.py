"""
Relationship status resolution between a viewer and a subject user
"""

from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from sqlalchemy.exc import DBAPIError

from bazaar.core.errors import FeatureUnavailableError
from bazaar.core.logging import get_logger
from bazaar.social.follows import FollowGraph
from bazaar.social.friend_requests import FriendRequestLedger

logger = get_logger(__name__)


class RelationshipStatus(str, Enum):
    SELF = "self"
    GUEST = "guest"
    NONE = "none"
    PENDING_SENT = "pending_sent"
    PENDING_RECEIVED = "pending_received"
    FOLLOWING = "following"


# Highest first. SELF and GUEST never reach the store.
STATUS_PRECEDENCE: Tuple[RelationshipStatus, ...] = (
    RelationshipStatus.SELF,
    RelationshipStatus.GUEST,
    RelationshipStatus.FOLLOWING,
    RelationshipStatus.PENDING_SENT,
    RelationshipStatus.PENDING_RECEIVED,
    RelationshipStatus.NONE,
)


class RelationshipResolver:
    def __init__(self, follows: FollowGraph, requests: FriendRequestLedger):
        self.follows = follows
        self.requests = requests

    def _store_checks(
        self, viewer_id: str, subject_id: str
    ) -> Tuple[Tuple[RelationshipStatus, Callable[[], Awaitable[bool]]], ...]:
        checks = {
            RelationshipStatus.FOLLOWING: lambda: self.follows.is_following(viewer_id, subject_id),
            RelationshipStatus.PENDING_SENT: lambda: self.requests.has_pending(viewer_id, subject_id),
            RelationshipStatus.PENDING_RECEIVED: lambda: self.requests.has_pending(subject_id, viewer_id),
        }
        return tuple((s, checks[s]) for s in STATUS_PRECEDENCE if s in checks)

    async def resolve(self, viewer_id: Optional[str], subject_id: str) -> RelationshipStatus:
        """
        Evaluate checks in precedence order and stop at the first hit;
        each store query only runs if every earlier one came back negative.
        """
        if viewer_id is None:
            return RelationshipStatus.GUEST
        if viewer_id == subject_id:
            return RelationshipStatus.SELF

        try:
            for status, check in self._store_checks(viewer_id, subject_id):
                if await check():
                    return status
        except DBAPIError as exc:
            logger.error(
                "relationship.resolve.failed",
                viewer_id=viewer_id,
                subject_id=subject_id,
                error=str(exc.orig),
            )
            raise FeatureUnavailableError("Relationship status is temporarily unavailable") from exc

        return RelationshipStatus.NONE
