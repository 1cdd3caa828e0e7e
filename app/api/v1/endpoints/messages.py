from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.auth import get_current_user
from app.config import settings
from app.database import get_db
from app.schemas.message import (
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    MessageThreadResponse,
    UnreadCountResponse,
)
from app.schemas.user import UserResponse
from app.services import conversation_service, message_service, user_service

router = APIRouter(prefix="", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
@router.post(
    "/",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def send_message(
    data: MessageCreate,
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """Send a message to the other party of an ad."""
    user_service.ensure_can_message(current_user)

    message = await message_service.create_message(
        db,
        sender_id=current_user.id,
        receiver_id=data.receiver_id,
        ad_id=data.ad_id,
        content=data.content,
    )
    return MessageResponse.model_validate(message)


# NOTE: These specific routes MUST be defined before /{peer_id} to avoid route conflicts
@router.get("/conversations", response_model=list[ConversationResponse])
async def get_conversations(
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[ConversationResponse]:
    """
    Get the inbox: one row per counterpart with the latest message,
    the ad it was about and how many of their messages are unread.
    """
    return await conversation_service.get_conversations(db, current_user.id)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UnreadCountResponse:
    """Get total unread messages count."""
    count = await message_service.get_unread_count(db, current_user.id)
    return UnreadCountResponse(count=count)


# Dynamic routes MUST come after specific routes to avoid conflicts
@router.get("/{peer_id}", response_model=MessageThreadResponse)
async def get_thread(
    peer_id: UUID,
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1),
    limit: int = Query(settings.MESSAGES_PAGE_SIZE, ge=1, le=settings.MESSAGES_MAX_PAGE_SIZE),
) -> MessageThreadResponse:
    """
    Get messages exchanged with a user.

    Page 1 holds the newest messages; every page is oldest first.
    Messages on the page that were sent to you are marked as read.
    """
    messages, total = await message_service.list_messages_between(
        db, current_user.id, peer_id, page, limit
    )

    return MessageThreadResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=total,
        page=page,
        pages=message_service.total_pages(total, limit),
    )


@router.patch("/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    message_id: UUID,
    current_user: Annotated[UserResponse, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """Mark a received message as read."""
    message = await message_service.mark_message_as_read(db, message_id, current_user.id)
    return MessageResponse.model_validate(message)
