"""
Realtime messaging gateway.

Connection lifecycle:
    CONNECTING -> AUTHENTICATING -> AUTHENTICATED -> DISCONNECTED
                               \\-> REJECTED

Frames in both directions are JSON objects ``{"event": str, "data": {...}}``.

Client events: send_message, typing_start, typing_stop, mark_read, user_online.
Server events: new_message, message_sent, message_error, user_typing,
user_stop_typing, message_read, user_status.

Delivery is best effort within this process. A ``new_message`` relay is
only emitted after the message is committed; if the receiver has no open
socket the relay is dropped and the message is picked up over HTTP later.
"""

import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable
from uuid import UUID

from fastapi import WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    TokenInvalidError,
    ValidationError,
)
from app.core.security import decode_access_token
from app.database import async_session_maker
from app.models.user import User
from app.realtime.connection_manager import ConnectionRegistry, connection_registry
from app.schemas.message import MarkReadEvent, MessageResponse, SendMessageEvent, TypingEvent
from app.schemas.user import UserSummary
from app.services import message_service, user_service

logger = logging.getLogger(__name__)

SEND_FAILED = "Failed to send message"


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    DISCONNECTED = "disconnected"


class ClientConnection:
    """One live socket and the user it belongs to."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.state = ConnectionState.CONNECTING
        self.user: User | None = None

    @property
    def user_id(self) -> str:
        return str(self.user.id)

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})


def _error_payload(exc: AppException) -> dict[str, Any]:
    if exc.status_code >= 500:
        return {"error": SEND_FAILED, "code": exc.code.value}
    payload = {"error": exc.message, "code": exc.code.value}
    if exc.field:
        payload["field"] = exc.field
    return payload


async def _reject_frame(connection: ClientConnection, reason: str) -> None:
    await connection.emit("message_error", {"error": reason, "code": ErrorCode.VALIDATION_ERROR.value})


def _payload_error(exc: PayloadValidationError) -> ValidationError:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return ValidationError(first["msg"], field=field)


class RealtimeGateway:
    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self._handlers: dict[str, Callable[[ClientConnection, dict], Awaitable[None]]] = {
            "send_message": self._on_send_message,
            "typing_start": self._on_typing_start,
            "typing_stop": self._on_typing_stop,
            "mark_read": self._on_mark_read,
            "user_online": self._on_user_online,
        }

    async def authenticate(self, token: str | None) -> User:
        """Resolve the handshake token to a user or raise AuthenticationError."""
        if not token:
            raise AuthenticationError()

        payload = decode_access_token(token)
        try:
            user_id = UUID(payload.sub)
        except ValueError:
            raise TokenInvalidError()

        async with self.session_factory() as db:
            user = await user_service.get_user_by_id(db, user_id)
        if user is None:
            raise TokenInvalidError()
        return user

    async def serve(self, websocket: WebSocket, token: str | None) -> ClientConnection:
        """Run one connection from handshake to disconnect."""
        connection = ClientConnection(websocket)
        connection.state = ConnectionState.AUTHENTICATING

        try:
            connection.user = await self.authenticate(token)
        except AuthenticationError as e:
            connection.state = ConnectionState.REJECTED
            logger.warning("Rejected WebSocket connection: %s", e.message)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
            return connection
        except Exception:
            connection.state = ConnectionState.REJECTED
            logger.exception("WebSocket authentication failed")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return connection

        await websocket.accept()
        await self.registry.connect(connection.user_id, websocket)
        connection.state = ConnectionState.AUTHENTICATED

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    await _reject_frame(connection, "Binary frames are not supported")
                    continue
                await self.dispatch(connection, raw)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket error for user %s", connection.user_id)
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            connection.state = ConnectionState.DISCONNECTED
            await self.registry.disconnect(connection.user_id, websocket)
            # Other tabs of the same user keep it online
            if not self.registry.is_online(connection.user_id):
                await self.registry.broadcast(
                    {"event": "user_status", "data": {"user_id": connection.user_id, "status": "offline"}},
                    exclude_websocket=websocket,
                )

        return connection

    async def dispatch(self, connection: ClientConnection, raw: str) -> None:
        """Parse one text frame and run its handler."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await _reject_frame(connection, "Invalid JSON")
            return

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await _reject_frame(connection, "Frame must contain an event name")
            return

        data = frame.get("data") or {}
        if not isinstance(data, dict):
            await _reject_frame(connection, "Event data must be an object")
            return

        await self.handle_event(connection, frame["event"], data)

    async def handle_event(self, connection: ClientConnection, event: str, data: dict[str, Any]) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await _reject_frame(connection, f"Unknown event: {event}")
            return

        try:
            await handler(connection, data)
        except Exception:
            # Fire-and-forget events are logged, never surfaced
            logger.exception("Failed to handle %s from user %s", event, connection.user_id)

    async def _on_send_message(self, connection: ClientConnection, data: dict[str, Any]) -> None:
        try:
            payload = SendMessageEvent.model_validate(data)
            async with self.session_factory() as db:
                # Status may have changed since the handshake
                sender_row = await user_service.get_user_by_id(db, connection.user.id)
                if sender_row is None:
                    raise TokenInvalidError()
                user_service.ensure_can_message(sender_row)
                message = await message_service.create_message(
                    db,
                    sender_id=connection.user.id,
                    receiver_id=payload.receiver_id,
                    ad_id=payload.ad_id,
                    content=payload.content,
                )
            body = MessageResponse.model_validate(message).model_dump(mode="json")
        except PayloadValidationError as e:
            await connection.emit("message_error", _error_payload(_payload_error(e)))
            return
        except AppException as e:
            logger.warning("send_message from %s failed: %s", connection.user_id, e.message)
            await connection.emit("message_error", _error_payload(e))
            return
        except Exception:
            logger.exception("send_message from %s failed", connection.user_id)
            await connection.emit("message_error", {"error": SEND_FAILED, "code": ErrorCode.SERVER_ERROR.value})
            return

        # Committed above, so the receiver can already fetch it over HTTP
        sender = UserSummary.model_validate(connection.user).model_dump(mode="json")
        await self.registry.send_to_user(
            str(payload.receiver_id),
            {"event": "new_message", "data": {"message": body, "sender": sender}},
        )
        await connection.emit("message_sent", {"message": body})

    async def _on_typing_start(self, connection: ClientConnection, data: dict[str, Any]) -> None:
        payload = TypingEvent.model_validate(data)
        await self.registry.send_to_user(
            str(payload.receiver_id),
            {
                "event": "user_typing",
                "data": {"user_id": connection.user_id, "user_name": connection.user.name},
            },
        )

    async def _on_typing_stop(self, connection: ClientConnection, data: dict[str, Any]) -> None:
        payload = TypingEvent.model_validate(data)
        await self.registry.send_to_user(
            str(payload.receiver_id),
            {"event": "user_stop_typing", "data": {"user_id": connection.user_id}},
        )

    async def _on_mark_read(self, connection: ClientConnection, data: dict[str, Any]) -> None:
        try:
            payload = MarkReadEvent.model_validate(data)
            async with self.session_factory() as db:
                message = await message_service.mark_message_as_read(
                    db, payload.message_id, connection.user.id
                )
        except PayloadValidationError as e:
            await connection.emit("message_error", _error_payload(_payload_error(e)))
            return
        except (ForbiddenError, NotFoundError) as e:
            # Same outcome as PATCH /messages/{id}/read, reported to the caller
            await connection.emit("message_error", _error_payload(e))
            return

        await self.registry.send_to_user(
            str(message.sender_id),
            {
                "event": "message_read",
                "data": {
                    "message_id": str(message.id),
                    "read_by": connection.user_id,
                    "read_at": message.read_at.isoformat() if message.read_at else None,
                },
            },
        )

    async def _on_user_online(self, connection: ClientConnection, data: dict[str, Any]) -> None:
        await self.registry.broadcast(
            {"event": "user_status", "data": {"user_id": connection.user_id, "status": "online"}},
            exclude_websocket=connection.websocket,
        )


gateway = RealtimeGateway(connection_registry)
