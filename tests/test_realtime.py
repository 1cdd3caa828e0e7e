import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from sqlalchemy import update

from app.api.v1.endpoints.realtime import get_gateway
from app.core.exceptions import InfrastructureError
from app.core.security import create_access_token
from app.main import app
from app.models.user import User
from app.realtime.connection_manager import InMemoryConnectionRegistry
from app.realtime.gateway import ClientConnection, ConnectionState, RealtimeGateway
from app.services import message_service
from conftest import create_user, test_async_session_maker


def events(ws: AsyncMock) -> list[dict]:
    return [call.args[0] for call in ws.send_json.await_args_list]


def event_names(ws: AsyncMock) -> list[str]:
    return [e["event"] for e in events(ws)]


@pytest.fixture
def registry() -> InMemoryConnectionRegistry:
    return InMemoryConnectionRegistry()


@pytest.fixture
def gateway(registry) -> RealtimeGateway:
    return RealtimeGateway(registry, test_async_session_maker)


async def connect(registry, user) -> ClientConnection:
    ws = AsyncMock()
    connection = ClientConnection(ws)
    connection.user = user
    connection.state = ConnectionState.AUTHENTICATED
    await registry.connect(str(user.id), ws)
    return connection


@pytest_asyncio.fixture
async def buyer_conn(registry, buyer) -> ClientConnection:
    return await connect(registry, buyer)


@pytest_asyncio.fixture
async def seller_conn(registry, seller) -> ClientConnection:
    return await connect(registry, seller)


def send_payload(receiver, ad, content="Is this still available?") -> dict:
    return {"receiverId": str(receiver.id), "adId": str(ad.id), "content": content}


def text_frame(event: str, data: dict) -> dict:
    return {"type": "websocket.receive", "text": json.dumps({"event": event, "data": data})}


DISCONNECT = {"type": "websocket.disconnect", "code": 1000}


@pytest.mark.asyncio
async def test_send_message_relays_and_acknowledges(gateway, buyer_conn, seller_conn, buyer, seller, ad):
    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))

    [delivered] = events(seller_conn.websocket)
    assert delivered["event"] == "new_message"
    assert delivered["data"]["message"]["content"] == "Is this still available?"
    assert delivered["data"]["message"]["is_read"] is False
    assert delivered["data"]["sender"]["id"] == str(buyer.id)

    [ack] = events(buyer_conn.websocket)
    assert ack["event"] == "message_sent"
    assert ack["data"]["message"]["id"] == delivered["data"]["message"]["id"]


@pytest.mark.asyncio
async def test_message_is_stored_before_relay(gateway, buyer_conn, seller_conn, buyer, seller, ad):
    seen_at_relay = []

    async def record(frame):
        async with test_async_session_maker() as db:
            messages, _ = await message_service.list_messages_between(db, buyer.id, seller.id)
        seen_at_relay.append([str(m.id) for m in messages])

    seller_conn.websocket.send_json.side_effect = record

    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))

    [ack] = events(buyer_conn.websocket)
    assert seen_at_relay == [[ack["data"]["message"]["id"]]]


@pytest.mark.asyncio
async def test_offline_receiver_still_gets_message_over_http(gateway, registry, buyer_conn, buyer, seller, ad):
    assert registry.is_online(str(seller.id)) is False

    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))

    assert event_names(buyer_conn.websocket) == ["message_sent"]
    async with test_async_session_maker() as db:
        assert await message_service.get_unread_count(db, seller.id) == 1


@pytest.mark.asyncio
async def test_send_message_errors_go_to_sender_only(gateway, buyer_conn, seller_conn, seller, ad):
    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad, "   "))

    [error] = events(buyer_conn.websocket)
    assert error["event"] == "message_error"
    assert error["data"]["code"] == "VALIDATION_ERROR"
    assert error["data"]["field"] == "content"
    seller_conn.websocket.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_message_to_self(gateway, seller_conn, seller, ad):
    await gateway.handle_event(seller_conn, "send_message", send_payload(seller, ad))

    [error] = events(seller_conn.websocket)
    assert error["event"] == "message_error"
    assert error["data"]["code"] == "OPERATION_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_send_message_malformed_payload(gateway, buyer_conn, ad):
    await gateway.handle_event(buyer_conn, "send_message", {"adId": str(ad.id), "content": "hi"})

    [error] = events(buyer_conn.websocket)
    assert error["event"] == "message_error"
    assert error["data"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_store_failure_is_opaque(gateway, buyer_conn, seller, ad, monkeypatch):
    async def unavailable(*args, **kwargs):
        raise InfrastructureError()

    monkeypatch.setattr(message_service, "create_message", unavailable)

    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))

    [error] = events(buyer_conn.websocket)
    assert error == {
        "event": "message_error",
        "data": {"error": "Failed to send message", "code": "SERVER_UNAVAILABLE"},
    }


@pytest.mark.asyncio
async def test_typing_signals(gateway, buyer_conn, seller_conn, buyer, seller):
    await gateway.handle_event(buyer_conn, "typing_start", {"receiverId": str(seller.id)})
    await gateway.handle_event(buyer_conn, "typing_stop", {"receiverId": str(seller.id)})

    assert events(seller_conn.websocket) == [
        {"event": "user_typing", "data": {"user_id": str(buyer.id), "user_name": "Amina"}},
        {"event": "user_stop_typing", "data": {"user_id": str(buyer.id)}},
    ]
    buyer_conn.websocket.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_typing_is_logged_not_surfaced(gateway, buyer_conn, seller_conn):
    await gateway.handle_event(buyer_conn, "typing_start", {"receiverId": "not-a-uuid"})

    buyer_conn.websocket.send_json.assert_not_awaited()
    seller_conn.websocket.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_mark_read_notifies_sender(gateway, buyer_conn, seller_conn, buyer, seller, ad):
    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))
    message_id = events(buyer_conn.websocket)[0]["data"]["message"]["id"]

    await gateway.handle_event(seller_conn, "mark_read", {"messageId": message_id})

    receipt = events(buyer_conn.websocket)[-1]
    assert receipt["event"] == "message_read"
    assert receipt["data"]["message_id"] == message_id
    assert receipt["data"]["read_by"] == str(seller.id)
    assert receipt["data"]["read_at"] is not None

    async with test_async_session_maker() as db:
        assert await message_service.get_unread_count(db, seller.id) == 0


@pytest.mark.asyncio
async def test_mark_read_by_non_receiver_reports_error(
    gateway, registry, db_session, buyer_conn, seller_conn, seller, ad
):
    outsider_conn = await connect(registry, await create_user(db_session, "Chebet"))
    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))
    message_id = events(buyer_conn.websocket)[0]["data"]["message"]["id"]

    await gateway.handle_event(outsider_conn, "mark_read", {"messageId": message_id})

    [error] = events(outsider_conn.websocket)
    assert error["event"] == "message_error"
    assert error["data"]["code"] == "AUTHZ_FORBIDDEN"
    assert event_names(buyer_conn.websocket) == ["message_sent"]

    async with test_async_session_maker() as db:
        assert await message_service.get_unread_count(db, seller.id) == 1


@pytest.mark.asyncio
async def test_user_online_broadcasts_to_others(gateway, buyer_conn, seller_conn, buyer):
    await gateway.handle_event(buyer_conn, "user_online", {})

    assert events(seller_conn.websocket) == [
        {"event": "user_status", "data": {"user_id": str(buyer.id), "status": "online"}},
    ]
    buyer_conn.websocket.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_event_and_bad_frames(gateway, buyer_conn):
    await gateway.dispatch(buyer_conn, json.dumps({"event": "delete_message", "data": {}}))
    await gateway.dispatch(buyer_conn, "not json")
    await gateway.dispatch(buyer_conn, json.dumps({"data": {}}))

    assert event_names(buyer_conn.websocket) == ["message_error"] * 3


@pytest.mark.asyncio
async def test_serve_lifecycle(gateway, registry, buyer, seller, ad, seller_conn):
    ws = AsyncMock()
    ws.receive.side_effect = [text_frame("send_message", send_payload(seller, ad)), DISCONNECT]

    connection = await gateway.serve(ws, create_access_token(str(buyer.id)))

    ws.accept.assert_awaited_once()
    assert connection.state == ConnectionState.DISCONNECTED
    assert event_names(ws) == ["message_sent"]
    assert registry.is_online(str(buyer.id)) is False
    assert event_names(seller_conn.websocket) == ["new_message", "user_status"]
    assert events(seller_conn.websocket)[-1]["data"] == {"user_id": str(buyer.id), "status": "offline"}


@pytest.mark.asyncio
async def test_serve_rejects_bad_token(gateway, registry, db_session):
    ws = AsyncMock()

    connection = await gateway.serve(ws, "not-a-token")

    assert connection.state == ConnectionState.REJECTED
    ws.accept.assert_not_awaited()
    ws.close.assert_awaited_once()
    assert ws.close.await_args.kwargs["code"] == 1008
    assert registry.active_connections == {}


def test_websocket_endpoint_rejects_missing_token():
    app.dependency_overrides[get_gateway] = lambda: RealtimeGateway(
        InMemoryConnectionRegistry(), test_async_session_maker
    )
    try:
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws"):
                pass
        assert exc_info.value.code == 1008
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_user_suspended_after_connecting_cannot_send(gateway, buyer_conn, seller_conn, buyer, seller, ad):
    async with test_async_session_maker() as db:
        await db.execute(update(User).where(User.id == buyer.id).values(status="suspended"))
        await db.commit()

    await gateway.handle_event(buyer_conn, "send_message", send_payload(seller, ad))

    [error] = events(buyer_conn.websocket)
    assert error["event"] == "message_error"
    assert error["data"]["code"] == "AUTHZ_ACCOUNT_RESTRICTED"
    seller_conn.websocket.send_json.assert_not_awaited()
    async with test_async_session_maker() as db:
        assert await message_service.get_unread_count(db, seller.id) == 0


@pytest.mark.asyncio
async def test_user_online_reaches_own_other_tabs(gateway, registry, buyer_conn, buyer):
    other_tab = await connect(registry, buyer)

    await gateway.handle_event(buyer_conn, "user_online", {})

    assert events(other_tab.websocket) == [
        {"event": "user_status", "data": {"user_id": str(buyer.id), "status": "online"}},
    ]
    buyer_conn.websocket.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_binary_frame_is_rejected_and_connection_stays_open(gateway, buyer, seller_conn):
    ws = AsyncMock()
    ws.receive.side_effect = [
        {"type": "websocket.receive", "bytes": b"\x00\x01"},
        text_frame("user_online", {}),
        DISCONNECT,
    ]

    connection = await gateway.serve(ws, create_access_token(str(buyer.id)))

    assert connection.state == ConnectionState.DISCONNECTED
    [error] = events(ws)
    assert error["event"] == "message_error"
    assert error["data"]["error"] == "Binary frames are not supported"
    assert [e["data"]["status"] for e in events(seller_conn.websocket)] == ["online", "offline"]
    ws.close.assert_not_awaited()
