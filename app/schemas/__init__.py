from app.schemas.ad import AdSummary
from app.schemas.message import (
    ConversationResponse,
    MarkReadEvent,
    MessageCreate,
    MessageResponse,
    MessageThreadResponse,
    SendMessageEvent,
    TypingEvent,
    UnreadCountResponse,
)
from app.schemas.user import Token, TokenPayload, UserCreate, UserResponse, UserSummary

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserSummary",
    "Token",
    "TokenPayload",
    "AdSummary",
    "MessageCreate",
    "MessageResponse",
    "MessageThreadResponse",
    "ConversationResponse",
    "UnreadCountResponse",
    "SendMessageEvent",
    "TypingEvent",
    "MarkReadEvent",
]
