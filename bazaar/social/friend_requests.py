"""
Friend-request ledger operations
"""

from datetime import datetime

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.core.logging import get_logger
from bazaar.infra.db import is_missing_table
from bazaar.models.friend import FRIEND_REQUEST_ACCEPTED, FRIEND_REQUEST_PENDING, FriendRequest

logger = get_logger(__name__)

CONFLICT_TARGET = ("requester_id", "receiver_id")


class FriendRequestLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def has_pending(self, requester_id: str, receiver_id: str) -> bool:
        """A deployment without the ledger table simply has no requests."""
        stmt = (
            select(FriendRequest.id)
            .where(
                FriendRequest.requester_id == requester_id,
                FriendRequest.receiver_id == receiver_id,
                FriendRequest.status == FRIEND_REQUEST_PENDING,
            )
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.first() is not None
        except DBAPIError as exc:
            if not is_missing_table(exc):
                raise
            logger.debug("friend_request.ledger_missing", error=str(exc.orig))
            return False

    async def upsert_pending(self, requester_id: str, receiver_id: str) -> None:
        """
        Insert (requester, receiver, pending) or reset the existing row for
        that ordered pair back to pending.
        """
        async with self._session_factory() as session:
            async with session.begin():
                dialect = session.bind.dialect.name
                values = {
                    "requester_id": requester_id,
                    "receiver_id": receiver_id,
                    "status": FRIEND_REQUEST_PENDING,
                }
                changes = {"status": FRIEND_REQUEST_PENDING, "responded_at": None}

                if dialect == "sqlite":
                    stmt = sqlite_insert(FriendRequest.__table__).values(**values).on_conflict_do_update(
                        index_elements=list(CONFLICT_TARGET), set_=changes
                    )
                elif dialect == "postgresql":
                    stmt = pg_insert(FriendRequest.__table__).values(**values).on_conflict_do_update(
                        index_elements=list(CONFLICT_TARGET), set_=changes
                    )
                elif dialect in ("mysql", "mariadb"):
                    stmt = mysql_insert(FriendRequest.__table__).values(**values).on_duplicate_key_update(**changes)
                else:
                    await self._select_then_write(session, values, changes)
                    return

                await session.execute(stmt)

        logger.info("friend_request.upserted", requester_id=requester_id, receiver_id=receiver_id)

    async def _select_then_write(self, session: AsyncSession, values: dict, changes: dict) -> None:
        existing = await session.execute(
            select(FriendRequest.id).where(
                FriendRequest.requester_id == values["requester_id"],
                FriendRequest.receiver_id == values["receiver_id"],
            )
        )
        row_id = existing.scalar_one_or_none()
        if row_id is None:
            await session.execute(insert(FriendRequest).values(**values))
        else:
            await session.execute(update(FriendRequest).where(FriendRequest.id == row_id).values(**changes))

    async def cancel_pending(self, requester_id: str, receiver_id: str) -> int:
        stmt = delete(FriendRequest).where(
            FriendRequest.requester_id == requester_id,
            FriendRequest.receiver_id == receiver_id,
            FriendRequest.status == FRIEND_REQUEST_PENDING,
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        logger.info(
            "friend_request.cancelled",
            requester_id=requester_id,
            receiver_id=receiver_id,
            rows=result.rowcount,
        )
        return result.rowcount

    async def accept(self, requester_id: str, receiver_id: str) -> int:
        stmt = (
            update(FriendRequest)
            .where(
                FriendRequest.requester_id == requester_id,
                FriendRequest.receiver_id == receiver_id,
                FriendRequest.status == FRIEND_REQUEST_PENDING,
            )
            .values(status=FRIEND_REQUEST_ACCEPTED, responded_at=datetime.utcnow())
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        logger.info(
            "friend_request.accepted",
            requester_id=requester_id,
            receiver_id=receiver_id,
            rows=result.rowcount,
        )
        return result.rowcount
