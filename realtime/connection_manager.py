"""WebSocket connection management with per-room fan-out"""
import json
import logging
from typing import Any

from realtime.session import ConnectionSession

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live sessions and the rooms they have joined"""

    def __init__(self) -> None:
        """Initialize connection manager with no connections and no rooms"""
        self.active_connections: dict[str, ConnectionSession] = {}
        self.rooms: dict[str, set[str]] = {}

    async def connect(self, session: ConnectionSession) -> None:
        """Accept and track a new session's socket"""
        await session.websocket.accept()
        self.active_connections[session.connection_id] = session

    def disconnect(self, session: ConnectionSession) -> None:
        """Stop tracking a session and drop all of its room memberships"""
        self.active_connections.pop(session.connection_id, None)
        for room_id in list(session.rooms):
            members = self.rooms.get(room_id)
            if members is None:
                continue
            members.discard(session.connection_id)
            if not members:
                del self.rooms[room_id]

    def join_room(self, session: ConnectionSession, room_id: str) -> None:
        """Add a session to a room's fan-out group"""
        session.join(room_id)
        self.rooms.setdefault(room_id, set()).add(session.connection_id)

    def is_member(self, connection_id: str, room_id: str) -> bool:
        """Whether a live connection has joined the room"""
        session = self.active_connections.get(connection_id)
        return session is not None and session.is_member(room_id)

    async def send_to(self, connection_id: str, event: str, data: dict[str, Any]) -> bool:
        """Send an event to one connection

        Returns False when the connection is gone or the send failed.
        """
        session = self.active_connections.get(connection_id)
        if session is None:
            return False
        try:
            await session.send(event, data)
        except Exception as e:
            logger.warning("Error sending %s to connection %s: %s", event, connection_id, e)
            self.disconnect(session)
            return False
        return True

    async def broadcast_to_room(self, room_id: str, event: str, data: dict[str, Any]) -> int:
        """Send an event to every connection in a room

        Args:
            room_id: Room whose members receive the event
            event: Outbound event name
            data: Event payload, JSON-serialized once for all members

        Returns:
            Number of connections the event was delivered to
        """
        message_text = json.dumps({"event": event, "data": data})
        disconnected: list[ConnectionSession] = []
        delivered = 0

        for connection_id in list(self.rooms.get(room_id, set())):
            session = self.active_connections.get(connection_id)
            if session is None:
                continue
            try:
                await session.websocket.send_text(message_text)
                delivered += 1
            except Exception as e:
                logger.warning("Error sending %s to connection %s: %s", event, connection_id, e)
                disconnected.append(session)

        # Clean up disconnected clients
        for session in disconnected:
            self.disconnect(session)

        return delivered

    def get_connection_count(self) -> int:
        """Get the number of active connections"""
        return len(self.active_connections)

    def get_room_size(self, room_id: str) -> int:
        """Get the number of connections joined to a room"""
        return len(self.rooms.get(room_id, set()))
