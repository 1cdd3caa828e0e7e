"""
Inbox view derived from stored messages.

Conversations are not persisted: every request regroups the user's messages
by counterpart. ``build_conversations`` is the pure grouping step and takes
any objects exposing ``id``, ``sender_id``, ``receiver_id``, ``is_read`` and
``created_at``.
"""

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.ad import AdSummary
from app.schemas.message import ConversationResponse, MessageResponse
from app.schemas.user import UserSummary
from app.services import message_service


@dataclass
class ConversationGroup:
    counterpart_id: UUID
    last_message: Any
    unread_count: int = 0


def _recency_key(message: Any) -> tuple:
    return (message.created_at, str(message.id))


def build_conversations(user_id: UUID, messages: Iterable[Any]) -> list[ConversationGroup]:
    """Group messages by the other party, newest conversation first."""
    groups: dict[UUID, ConversationGroup] = {}

    for message in messages:
        counterpart_id = (
            message.receiver_id if message.sender_id == user_id else message.sender_id
        )

        group = groups.get(counterpart_id)
        if group is None:
            group = groups[counterpart_id] = ConversationGroup(counterpart_id, message)
        elif _recency_key(message) > _recency_key(group.last_message):
            group.last_message = message

        if message.receiver_id == user_id and not message.is_read:
            group.unread_count += 1

    # Two stable sorts: counterpart id breaks ties between equal timestamps
    ordered = sorted(groups.values(), key=lambda g: str(g.counterpart_id))
    ordered.sort(key=lambda g: g.last_message.created_at, reverse=True)
    return ordered


async def get_conversations(
    db: AsyncSession,
    user_id: UUID,
) -> list[ConversationResponse]:
    """Inbox rows with counterpart profile and the ad of the latest message."""
    messages = await message_service.list_user_messages(db, user_id)

    conversations = []
    for group in build_conversations(user_id, messages):
        last = group.last_message
        counterpart = last.receiver if last.sender_id == user_id else last.sender

        conversations.append(ConversationResponse(
            user_id=group.counterpart_id,
            user=UserSummary.model_validate(counterpart) if counterpart else None,
            ad=AdSummary.model_validate(last.ad) if last.ad else None,
            last_message=MessageResponse.model_validate(last),
            unread_count=group.unread_count,
        ))

    return conversations
