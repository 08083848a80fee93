"""
Direct conversation find-or-create

Preferred path is the store's atomic `create_direct_conversation` procedure.
When it is missing, the client-side search/create fallback runs instead;
that fallback is not atomic and two simultaneous first contacts can still
produce two conversations for the same pair.
"""

import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import column, func, insert, select, table
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.core.config import settings
from bazaar.core.errors import AuthenticationError, ValidationError
from bazaar.core.logging import get_logger
from bazaar.models.conversation import Conversation, ConversationParticipant

logger = get_logger(__name__)

# (viewer_id, target_id) -> conversation id or None
DirectConversationRpc = Callable[[str, str], Awaitable[Optional[str]]]


def new_conversation_id() -> str:
    return str(uuid.uuid4())


class ConversationBootstrapper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        rpc: Optional[DirectConversationRpc] = None,
    ):
        self._session_factory = session_factory
        self._rpc = rpc or self.call_stored_procedure

    async def call_stored_procedure(self, viewer_id: str, target_id: str) -> Optional[str]:
        """
        The service connects under a single database role, so the caller is
        passed explicitly after the target.
        """
        procedure = getattr(func, settings.direct_conversation_rpc)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(select(procedure(target_id, viewer_id)))
                conversation_id = result.scalar()
        return str(conversation_id) if conversation_id else None

    async def get_or_create_direct_conversation(self, viewer_id: Optional[str], target_id: str) -> Optional[str]:
        """
        Returns the conversation shared by both users, creating it when needed.
        None means messaging is unavailable and the caller should fall back
        to the generic inbox.
        """
        if viewer_id is None:
            raise AuthenticationError("Sign in to send messages")
        if viewer_id == target_id:
            raise ValidationError("You cannot message yourself")

        conversation_id = await self._try_rpc(viewer_id, target_id)
        if conversation_id:
            return conversation_id

        try:
            conversation_id = await self.find_shared_conversation(viewer_id, target_id)
        except DBAPIError as exc:
            logger.error("dm.lookup.failed", viewer_id=viewer_id, target_id=target_id, error=str(exc.orig))
            return None

        if conversation_id:
            logger.info("dm.reused", conversation_id=conversation_id, viewer_id=viewer_id, target_id=target_id)
            return conversation_id

        return await self._create_direct_conversation(viewer_id, target_id)

    async def _try_rpc(self, viewer_id: str, target_id: str) -> Optional[str]:
        try:
            conversation_id = await self._rpc(viewer_id, target_id)
        except DBAPIError as exc:
            logger.info("dm.rpc.unavailable", viewer_id=viewer_id, target_id=target_id, error=str(exc.orig))
            return None
        if conversation_id:
            logger.info("dm.rpc.ok", conversation_id=conversation_id, viewer_id=viewer_id, target_id=target_id)
        return conversation_id

    async def find_shared_conversation(self, viewer_id: str, target_id: str) -> Optional[str]:
        async with self._session_factory() as session:
            mine = await session.execute(
                select(ConversationParticipant.conversation_id).where(
                    ConversationParticipant.user_id == viewer_id
                )
            )
            my_ids = list(mine.scalars())
            if not my_ids:
                return None

            shared = await session.execute(
                select(ConversationParticipant.conversation_id)
                .where(
                    ConversationParticipant.user_id == target_id,
                    ConversationParticipant.conversation_id.in_(my_ids),
                )
                .limit(1)
            )
            return shared.scalar_one_or_none()

    async def _insert_conversation(self, payload: dict) -> None:
        # Typed columns so dates bind correctly on every driver
        conversations = table(
            Conversation.__tablename__,
            *(column(name, Conversation.__table__.c[name].type) for name in payload),
        )
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(insert(conversations).values(payload))

    async def _create_direct_conversation(self, viewer_id: str, target_id: str) -> Optional[str]:
        conversation_id = new_conversation_id()
        # Richest shape first; older schemas reject created_by and friends
        payloads = (
            {"id": conversation_id, "is_group": False, "created_by": viewer_id, "created_at": datetime.utcnow()},
            {"id": conversation_id, "is_group": False},
            {"id": conversation_id},
        )

        created = False
        for payload in payloads:
            try:
                await self._insert_conversation(payload)
            except DBAPIError as exc:
                logger.warning("dm.create.rejected", columns=sorted(payload), error=str(exc.orig))
                continue
            created = True
            break

        if not created:
            logger.error("dm.create.failed", viewer_id=viewer_id, target_id=target_id)
            return None

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        insert(ConversationParticipant),
                        [
                            {"conversation_id": conversation_id, "user_id": viewer_id},
                            {"conversation_id": conversation_id, "user_id": target_id},
                        ],
                    )
        except DBAPIError as exc:
            logger.error(
                "dm.participants.failed",
                conversation_id=conversation_id,
                viewer_id=viewer_id,
                target_id=target_id,
                error=str(exc.orig),
            )
            return None

        logger.info("dm.created", conversation_id=conversation_id, viewer_id=viewer_id, target_id=target_id)
        return conversation_id
