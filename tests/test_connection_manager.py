import asyncio
from unittest.mock import AsyncMock

import pytest

from app.realtime.connection_manager import InMemoryConnectionRegistry


@pytest.mark.asyncio
async def test_send_reaches_every_connection_of_user():
    registry = InMemoryConnectionRegistry()
    tab, phone = AsyncMock(), AsyncMock()

    await asyncio.gather(
        registry.connect("u1", tab),
        registry.connect("u1", phone),
    )

    message = {"event": "new_message", "data": {"content": "hi"}}
    assert await registry.send_to_user("u1", message) is True

    tab.send_json.assert_awaited_with(message)
    phone.send_json.assert_awaited_with(message)
    assert registry.connection_count() == 2


@pytest.mark.asyncio
async def test_send_to_offline_user_is_dropped():
    registry = InMemoryConnectionRegistry()

    assert await registry.send_to_user("nobody", {"event": "new_message"}) is False
    assert registry.is_online("nobody") is False


@pytest.mark.asyncio
async def test_disconnect_keeps_other_connections():
    registry = InMemoryConnectionRegistry()
    tab, phone = AsyncMock(), AsyncMock()
    await registry.connect("u1", tab)
    await registry.connect("u1", phone)

    await registry.disconnect("u1", tab)
    assert registry.is_online("u1") is True

    await registry.disconnect("u1", phone)
    assert registry.is_online("u1") is False
    assert "u1" not in registry.active_connections


@pytest.mark.asyncio
async def test_dead_socket_is_pruned():
    registry = InMemoryConnectionRegistry()
    alive, dead = AsyncMock(), AsyncMock()
    dead.send_json.side_effect = RuntimeError("socket closed")
    await registry.connect("u1", alive)
    await registry.connect("u1", dead)

    assert await registry.send_to_user("u1", {"event": "user_typing"}) is True
    assert registry.active_connections["u1"] == [alive]


@pytest.mark.asyncio
async def test_broadcast_skips_only_the_excluded_socket():
    registry = InMemoryConnectionRegistry()
    own, own_other_tab, other = AsyncMock(), AsyncMock(), AsyncMock()
    await registry.connect("u1", own)
    await registry.connect("u1", own_other_tab)
    await registry.connect("u2", other)

    status = {"event": "user_status", "data": {"user_id": "u1", "status": "online"}}
    await registry.broadcast(status, exclude_websocket=own)

    other.send_json.assert_awaited_once_with(status)
    own_other_tab.send_json.assert_awaited_once_with(status)
    own.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_connect_disconnect():
    registry = InMemoryConnectionRegistry()

    async def churn():
        ws = AsyncMock()
        await registry.connect("u1", ws)
        await asyncio.sleep(0.001)
        await registry.disconnect("u1", ws)

    await asyncio.gather(*(churn() for _ in range(100)))

    assert registry.is_online("u1") is False
    assert registry.active_connections == {}
