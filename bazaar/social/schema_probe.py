"""
Follow-edge column probing

The `follows` relation has been deployed under several column-pair
encodings. A probe tries a fixed, ordered list of known pairs and remembers
which one answered, for as long as the probe object lives. Callers create a
new probe per operation; nothing is cached across calls.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, Tuple, TypeVar

from fastapi import status
from sqlalchemy import column, table
from sqlalchemy.exc import DBAPIError
from sqlalchemy.sql.expression import TableClause

from bazaar.core.config import settings
from bazaar.core.errors import AppError
from bazaar.core.logging import get_logger
from bazaar.infra.db import is_schema_mismatch

logger = get_logger(__name__)

T = TypeVar("T")

FOLLOWS_TABLE = "follows"


@dataclass(frozen=True)
class FollowColumns:
    """One physical encoding of the follower -> followee edge"""

    follower: str
    followee: str

    def table(self) -> TableClause:
        return table(FOLLOWS_TABLE, column(self.follower), column(self.followee))

    def __str__(self) -> str:
        return f"{self.follower}/{self.followee}"


KNOWN_FOLLOW_COLUMNS: Tuple[FollowColumns, ...] = (
    FollowColumns("follower_id", "following_id"),
    FollowColumns("user_id", "target_user_id"),
    FollowColumns("user_id", "followed_user_id"),
)


def follow_candidates() -> Tuple[FollowColumns, ...]:
    """Pinned pair from FOLLOW_COLUMNS if configured, else every known pair"""
    if settings.follow_columns:
        follower, followee = settings.follow_columns.split(":")
        return (FollowColumns(follower, followee),)
    return KNOWN_FOLLOW_COLUMNS


class SchemaProbeExhausted(AppError):
    """No candidate encoding is present in this store"""

    def __init__(self, candidates: Sequence[FollowColumns]):
        super().__init__(
            message="No known follow column encoding matches the follows table",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="SCHEMA_PROBE_EXHAUSTED",
            details={"candidates": [str(c) for c in candidates]},
        )
        self.candidates = tuple(candidates)


class SchemaProbe(Generic[T]):
    """
    Runs an operation against the first candidate encoding that the store
    does not reject as a schema mismatch.

    Any other database error (permissions, connectivity, constraint
    violations) aborts the probe and propagates unchanged.
    """

    def __init__(self, candidates: Optional[Sequence[FollowColumns]] = None):
        self.candidates: Tuple[FollowColumns, ...] = tuple(candidates or follow_candidates())
        if not self.candidates:
            raise ValueError("SchemaProbe needs at least one candidate")
        self.live: Optional[FollowColumns] = None

    async def run(self, operation: Callable[[FollowColumns], Awaitable[T]]) -> T:
        if self.live is not None:
            return await operation(self.live)

        for candidate in self.candidates:
            try:
                result = await operation(candidate)
            except DBAPIError as exc:
                if not is_schema_mismatch(exc):
                    raise
                logger.debug("follow.probe.mismatch", columns=str(candidate), error=str(exc.orig))
                continue

            self.live = candidate
            return result

        logger.warning(
            "follow.probe.exhausted",
            candidates=[str(c) for c in self.candidates],
        )
        raise SchemaProbeExhausted(self.candidates)
