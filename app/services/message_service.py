"""Message service for buyer/seller chat."""

import math
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from app.database import store_errors
from app.models.message import Message
from app.services import ad_service, user_service

_WITH_SUMMARIES = (
    selectinload(Message.sender),
    selectinload(Message.receiver),
    selectinload(Message.ad),
)


def normalize_content(content: str | None) -> str:
    """Trim and bounds-check message text."""
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content cannot be empty", field="content")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message cannot be more than {settings.MESSAGE_MAX_LENGTH} characters",
            field="content",
        )
    return text


def total_pages(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if total else 0


def _between(user_id: UUID, peer_id: UUID):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == peer_id),
        and_(Message.sender_id == peer_id, Message.receiver_id == user_id),
    )


async def get_message_by_id(
    db: AsyncSession,
    message_id: UUID,
) -> Message | None:
    """Get a message by ID with sender, receiver and ad loaded."""
    result = await db.execute(
        select(Message)
        .options(*_WITH_SUMMARIES)
        # Identity-map hits must still get their summaries loaded
        .execution_options(populate_existing=True)
        .where(Message.id == message_id)
    )
    return result.scalar_one_or_none()


async def create_message(
    db: AsyncSession,
    sender_id: UUID,
    receiver_id: UUID,
    ad_id: UUID,
    content: str,
) -> Message:
    """
    Store a new message about an ad.

    Returns only after the insert is committed, so callers may relay it
    knowing it is already readable through the thread endpoint.
    """
    text = normalize_content(content)

    if sender_id == receiver_id:
        raise InvalidOperationError("Cannot send message to yourself")

    async with store_errors(db, "create_message"):
        receiver = await user_service.get_user_by_id(db, receiver_id)
        if receiver is None:
            raise NotFoundError("Receiver not found", resource="user")

        ad = await ad_service.get_ad_by_id(db, ad_id)
        if ad is None:
            raise NotFoundError("Ad not found", resource="ad")
        if not ad.accepts_messages:
            raise PreconditionError("Ad is not approved for messaging", resource="ad")

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            ad_id=ad_id,
            content=text,
        )
        db.add(message)
        await db.commit()

        return await get_message_by_id(db, message.id)


async def list_messages_between(
    db: AsyncSession,
    user_id: UUID,
    peer_id: UUID,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Message], int]:
    """
    Get one page of the thread between user and peer.

    Pages count back from the newest message; each page is returned oldest
    first. Messages on the page addressed to ``user_id`` are marked read.
    """
    async with store_errors(db, "list_messages_between"):
        peer = await user_service.get_user_by_id(db, peer_id)
        if peer is None:
            raise NotFoundError("User not found", resource="user")

        thread = _between(user_id, peer_id)

        count_result = await db.execute(
            select(func.count(Message.id)).where(thread)
        )
        total = count_result.scalar() or 0

        result = await db.execute(
            select(Message)
            .options(*_WITH_SUMMARIES)
            .execution_options(populate_existing=True)
            .where(thread)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        # Reverse to get chronological order for display
        messages = list(result.scalars().all())
        messages.reverse()

        unread_ids = [
            m.id for m in messages if m.receiver_id == user_id and not m.is_read
        ]
        if unread_ids:
            await db.execute(
                update(Message)
                .where(Message.id.in_(unread_ids), Message.is_read == False)
                .values(is_read=True, read_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session="fetch")
            )
            await db.commit()

    return messages, total


async def mark_message_as_read(
    db: AsyncSession,
    message_id: UUID,
    user_id: UUID,
) -> Message:
    """Mark a message read. Only its receiver may do so; repeats are no-ops."""
    async with store_errors(db, "mark_message_as_read"):
        message = await get_message_by_id(db, message_id)
        if message is None:
            raise NotFoundError("Message not found", resource="message")

        if message.receiver_id != user_id:
            raise ForbiddenError(
                "Only the receiver can mark a message as read",
                resource="message",
            )

        if not message.is_read:
            message.is_read = True
            message.read_at = datetime.now(timezone.utc)
            await db.commit()
            message = await get_message_by_id(db, message_id)

    return message


async def get_unread_count(
    db: AsyncSession,
    user_id: UUID,
) -> int:
    """Get total unread messages addressed to a user."""
    async with store_errors(db, "get_unread_count"):
        result = await db.execute(
            select(func.count(Message.id)).where(
                and_(
                    Message.receiver_id == user_id,
                    Message.is_read == False,
                )
            )
        )
        return result.scalar() or 0


async def list_user_messages(
    db: AsyncSession,
    user_id: UUID,
) -> list[Message]:
    """Every message the user sent or received, oldest first."""
    async with store_errors(db, "list_user_messages"):
        result = await db.execute(
            select(Message)
            .options(*_WITH_SUMMARIES)
            .execution_options(populate_existing=True)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at, Message.id)
        )
        return list(result.scalars().all())
