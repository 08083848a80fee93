"""
Relationship transitions (follow / unfollow / request / cancel / accept)

    following        -> delete edge                        -> none
    pending_sent     -> delete my pending request          -> none
    pending_received -> accept request, add edge me->them  -> following
    none             -> upsert pending request             -> pending_sent
                        (ledger unusable: add edge)        -> following

Every transition tolerates a stale current status: deletes of absent rows
are no-ops, the request upsert converges on one row per ordered pair, and
edges are only inserted when absent under the live encoding.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError

from bazaar.core.errors import AuthenticationError, FeatureUnavailableError, ValidationError
from bazaar.core.logging import LatencyLogger, get_logger
from bazaar.social.follows import FollowGraph
from bazaar.social.friend_requests import FriendRequestLedger
from bazaar.social.relationship import RelationshipStatus

logger = get_logger(__name__)


class RelationshipMutator:
    def __init__(self, follows: FollowGraph, requests: FriendRequestLedger):
        self.follows = follows
        self.requests = requests
        self._transitions = {
            RelationshipStatus.FOLLOWING: self._unfollow,
            RelationshipStatus.PENDING_SENT: self._cancel_request,
            RelationshipStatus.PENDING_RECEIVED: self._accept_request,
            RelationshipStatus.NONE: self._send_request,
        }

    async def toggle(
        self,
        viewer_id: Optional[str],
        subject_id: str,
        current_status: RelationshipStatus,
    ) -> RelationshipStatus:
        if viewer_id is None:
            raise AuthenticationError("Sign in to follow other members")
        if viewer_id == subject_id:
            raise ValidationError("You cannot follow yourself")

        transition = self._transitions.get(current_status)
        if transition is None:
            raise ValidationError(
                f"Cannot change a relationship from status '{current_status.value}'",
                details={"current_status": current_status.value},
            )

        with LatencyLogger(
            "relationship.toggle",
            logger,
            viewer_id=viewer_id,
            subject_id=subject_id,
            from_status=current_status.value,
        ) as timer:
            try:
                timer.outcome = await transition(viewer_id, subject_id)
            except DBAPIError as exc:
                logger.error(
                    "relationship.toggle.store_error",
                    viewer_id=viewer_id,
                    subject_id=subject_id,
                    from_status=current_status.value,
                    error=str(exc.orig),
                )
                raise FeatureUnavailableError("Could not update the relationship, please try again") from exc
        return timer.outcome

    async def _unfollow(self, viewer_id: str, subject_id: str) -> RelationshipStatus:
        if await self.follows.unfollow(viewer_id, subject_id):
            return RelationshipStatus.NONE
        return RelationshipStatus.FOLLOWING

    async def _cancel_request(self, viewer_id: str, subject_id: str) -> RelationshipStatus:
        await self.requests.cancel_pending(viewer_id, subject_id)
        return RelationshipStatus.NONE

    async def _accept_request(self, viewer_id: str, subject_id: str) -> RelationshipStatus:
        # The edge points accepter -> requester only; acceptance is not symmetric
        await self.requests.accept(requester_id=subject_id, receiver_id=viewer_id)
        if not await self.follows.follow(viewer_id, subject_id):
            logger.warning("relationship.accept.edge_skipped", viewer_id=viewer_id, subject_id=subject_id)
        return RelationshipStatus.FOLLOWING

    async def _send_request(self, viewer_id: str, subject_id: str) -> RelationshipStatus:
        try:
            await self.requests.upsert_pending(viewer_id, subject_id)
            return RelationshipStatus.PENDING_SENT
        except IntegrityError as exc:
            # The upsert absorbs duplicate pairs, so this is some other constraint
            if await self.requests.has_pending(viewer_id, subject_id):
                logger.info("friend_request.exists", requester_id=viewer_id, receiver_id=subject_id)
                return RelationshipStatus.PENDING_SENT
            logger.warning(
                "friend_request.rejected",
                requester_id=viewer_id,
                receiver_id=subject_id,
                error=str(exc.orig),
            )
        except DBAPIError as exc:
            logger.warning(
                "friend_request.unavailable",
                requester_id=viewer_id,
                receiver_id=subject_id,
                error=str(exc.orig),
            )

        # Deployments without a usable ledger fall back to plain following
        if await self.follows.follow(viewer_id, subject_id):
            return RelationshipStatus.FOLLOWING
        return RelationshipStatus.NONE
