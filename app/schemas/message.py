"""Message schemas for API requests and responses."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.schemas.ad import AdSummary
from app.schemas.user import UserSummary


def format_time_ago(created_at: datetime, now: datetime | None = None) -> str:
    """Short relative age used by the chat UI ("Just now", "5m ago", ...)."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    return f"{hours // 24}d ago"


class MessageCreate(BaseModel):
    """Send a message about an ad."""
    receiver_id: UUID
    ad_id: UUID
    # Length bounds are checked after trimming by the message service
    content: str


class MessageResponse(BaseModel):
    """Message with sender, receiver and ad summaries populated."""
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    ad_id: UUID
    content: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime
    sender: UserSummary | None = None
    receiver: UserSummary | None = None
    ad: AdSummary | None = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def time_ago(self) -> str:
        return format_time_ago(self.created_at)


class MessageThreadResponse(BaseModel):
    """One page of the thread with a peer, oldest message first."""
    messages: list[MessageResponse]
    total: int
    page: int
    pages: int


class ConversationResponse(BaseModel):
    """Inbox row: latest message exchanged with one counterpart."""
    user_id: UUID
    user: UserSummary | None
    ad: AdSummary | None
    last_message: MessageResponse
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread messages count."""
    count: int


# Realtime client -> server payloads


class SendMessageEvent(BaseModel):
    receiver_id: UUID = Field(validation_alias="receiverId")
    ad_id: UUID = Field(validation_alias="adId")
    content: str

    model_config = ConfigDict(populate_by_name=True)


class TypingEvent(BaseModel):
    receiver_id: UUID = Field(validation_alias="receiverId")

    model_config = ConfigDict(populate_by_name=True)


class MarkReadEvent(BaseModel):
    message_id: UUID = Field(validation_alias="messageId")

    model_config = ConfigDict(populate_by_name=True)
