from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bazaar.models.base import Base

FRIEND_REQUEST_PENDING = "pending"
FRIEND_REQUEST_ACCEPTED = "accepted"


class FriendRequest(Base):
    __tablename__ = "friend_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))

    requester_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    receiver_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)

    # status: 'pending' | 'accepted'  (a rejected/cancelled request is deleted)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FRIEND_REQUEST_PENDING)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    __table_args__ = (
        CheckConstraint("requester_id <> receiver_id", name="chk_friend_requests_not_self"),
        # Upsert conflict target
        UniqueConstraint("requester_id", "receiver_id", name="uq_friend_requests_pair"),
        Index("idx_friend_requests_receiver", "receiver_id", "status"),
    )


class UserBlock(Base):
    """Owner-managed block list. Optional: some deployments never created it."""

    __tablename__ = "user_blocks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))
    blocker_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    blocked_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_user_blocks_pair"),
    )
