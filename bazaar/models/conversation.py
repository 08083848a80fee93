from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from bazaar.models.base import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    is_group: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    # Older deployments lack this column; inserts degrade to simpler payloads
    created_by: Mapped[Optional[str]] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, server_default=func.now()
    )


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.id", onupdate="CASCADE", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), primary_key=True)

    __table_args__ = (
        Index("idx_conversation_participants_user", "user_id"),
    )
