"""Message model for buyer/seller chat about an ad."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.ad import Ad
    from app.models.user import User


_last_created_at: datetime | None = None


def next_created_at() -> datetime:
    """UTC now, nudged forward so messages from this process never share a timestamp."""
    global _last_created_at
    now = datetime.now(timezone.utc)
    if _last_created_at is not None and now <= _last_created_at:
        now = _last_created_at + timedelta(microseconds=1)
    _last_created_at = now
    return now


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    ad_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("ads.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Assigned here, not by clients, so one clock orders every thread
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=next_created_at,
        nullable=False,
        index=True,
    )

    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id])
    receiver: Mapped["User"] = relationship("User", foreign_keys=[receiver_id])
    ad: Mapped["Ad"] = relationship("Ad", foreign_keys=[ad_id])

    __table_args__ = (
        CheckConstraint("sender_id <> receiver_id", name="message_not_self_check"),
        Index("ix_messages_participants_ad", "sender_id", "receiver_id", "ad_id"),
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
    )
