"""Unit tests for WebSocket frame parsing and the connection loop"""
import json

import pytest
from unittest.mock import AsyncMock
from fastapi import WebSocketDisconnect

from domain.models import ClientEvent
from domain.rooms import derive_room_id
from realtime.handler import parse_client_event, handle_websocket_connection
from conftest import make_websocket, sent_events

ROOM = derive_room_id("u1", "u2")


def frames(*payloads) -> list:
    """Inbound frames followed by a client disconnect"""
    return [p if isinstance(p, str) else json.dumps(p) for p in payloads] + [WebSocketDisconnect(code=1000)]


@pytest.mark.unit
class TestParseClientEvent:
    """Test parse_client_event"""

    def test_parse_event_with_data(self):
        """Test parsing a well-formed frame"""
        event = parse_client_event(json.dumps({"event": "join_room", "data": {"roomId": ROOM}}))
        assert event == ClientEvent(event="join_room", data={"roomId": ROOM})

    def test_parse_event_without_data(self):
        """Test that a missing data object defaults to empty"""
        assert parse_client_event('{"event": "clear_chat"}') == ClientEvent(event="clear_chat", data={})

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        '"join_room"',
        '{"data": {}}',
        '{"event": ""}',
        '{"event": 5}',
        '{"event": "join_room", "data": [1, 2]}',
    ])
    def test_parse_invalid_frames(self, raw):
        """Test that malformed frames raise ValueError"""
        with pytest.raises(ValueError):
            parse_client_event(raw)


@pytest.mark.unit
@pytest.mark.asyncio
class TestHandleWebsocketConnection:
    """Test the per-connection receive loop"""

    async def test_events_dispatched_in_order(self, gateway, in_memory_store):
        """Test that frames are handled in the order they arrive"""
        ws = make_websocket("u1")
        ws.receive_text = AsyncMock(side_effect=frames(
            {"event": "join_room", "data": {"roomId": ROOM}},
            {"event": "send_message", "data": {"from": "u1", "to": "u2", "message": "one", "roomId": ROOM}},
            {"event": "send_message", "data": {"from": "u1", "to": "u2", "message": "two", "roomId": ROOM}},
        ))

        await handle_websocket_connection(ws, gateway)

        received = [data["message"] for event, data in sent_events(ws) if event == "receive_message"]
        assert received == ["one", "two"]
        assert [m.text for m in await in_memory_store.list_by_room(ROOM)] == ["one", "two"]

    async def test_invalid_json_reported_and_loop_continues(self, gateway):
        """Test that a malformed frame gets an error and later frames still work"""
        ws = make_websocket("u1")
        ws.receive_text = AsyncMock(side_effect=frames(
            "{broken",
            {"event": "join_room", "data": {"roomId": ROOM}},
            {"event": "clear_chat", "data": {"roomId": ROOM}},
        ))

        await handle_websocket_connection(ws, gateway)

        assert sent_events(ws) == [
            ("error", {"message": "Invalid JSON format"}),
            ("chat_cleared", {}),
        ]

    async def test_disconnect_cleans_up(self, gateway):
        """Test that presence and rooms are cleared when the client leaves"""
        ws = make_websocket("u1")
        ws.receive_text = AsyncMock(side_effect=frames({"event": "join_room", "data": {"roomId": ROOM}}))

        await handle_websocket_connection(ws, gateway)

        assert gateway.presence.lookup("u1") is None
        assert gateway.connection_manager.get_room_size(ROOM) == 0
        ws.close.assert_not_called()

    async def test_unexpected_error_cleans_up(self, gateway):
        """Test that a transport failure still unregisters the user"""
        ws = make_websocket("u1")
        ws.receive_text = AsyncMock(side_effect=RuntimeError("transport broke"))

        await handle_websocket_connection(ws, gateway)

        assert gateway.presence.lookup("u1") is None
        ws.close.assert_called_once_with(code=1011)

    async def test_unexpected_error_on_closed_socket(self, gateway):
        """Test that a socket which can no longer be closed is still cleaned up"""
        ws = make_websocket("u1")
        ws.receive_text = AsyncMock(side_effect=KeyError("text"))
        ws.close = AsyncMock(side_effect=RuntimeError("Cannot call \"send\" once a close message has been sent."))

        await handle_websocket_connection(ws, gateway)

        ws.close.assert_called_once()
        assert gateway.presence.lookup("u1") is None
        assert gateway.connection_manager.get_connection_count() == 0

    async def test_anonymous_frames_ignored(self, gateway, in_memory_store):
        """Test that an anonymous socket gets no replies, not even for bad frames"""
        ws = make_websocket()
        ws.receive_text = AsyncMock(side_effect=frames(
            "{broken",
            {"event": "send_message", "data": {"from": "u1", "to": "u2", "message": "hi", "roomId": ROOM}},
        ))

        await handle_websocket_connection(ws, gateway)

        ws.accept.assert_called_once()
        ws.send_text.assert_not_called()
        assert await in_memory_store.list_by_room(ROOM) == []
