"""Pytest configuration and shared fixtures for all tests"""
import json

import pytest
from unittest.mock import AsyncMock

from database.message_store import MessageStore
from events.gateway import ChatGateway
from realtime.connection_manager import ConnectionManager
from realtime.presence import PresenceRegistry

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
async def in_memory_store():
    """Create an in-memory SQLite message store for testing"""
    store = MessageStore(":memory:")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def connection_manager():
    """Create a ConnectionManager instance for testing"""
    return ConnectionManager()


@pytest.fixture
def presence():
    """Create a PresenceRegistry instance for testing"""
    return PresenceRegistry()


@pytest.fixture
async def gateway(in_memory_store, connection_manager, presence):
    """Create a ChatGateway backed by the in-memory store"""
    return ChatGateway(in_memory_store, connection_manager, presence)


def make_websocket(user_id: str | None = None) -> AsyncMock:
    """Create a mock WebSocket whose handshake carries the given session user"""
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    ws.scope = {"session": {"user_id": user_id}} if user_id is not None else {}
    return ws


def sent_events(ws: AsyncMock) -> list[tuple[str, dict]]:
    """Decode every frame sent to a mock WebSocket as (event, data)"""
    frames = [json.loads(call.args[0]) for call in ws.send_text.call_args_list]
    return [(frame["event"], frame["data"]) for frame in frames]


def events_named(ws: AsyncMock, name: str) -> list[dict]:
    """Payloads of the frames with the given event name"""
    return [data for event, data in sent_events(ws) if event == name]
