"""Per-connection state bound to the shared HTTP session"""
import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket
from starlette.requests import HTTPConnection

from domain.constants import SESSION_USER_KEY


def resolve_identity(connection: HTTPConnection, session_key: str = SESSION_USER_KEY) -> str | None:
    """Read the authenticated user id from the handshake's session

    The session dict is put in the ASGI scope by SessionMiddleware. Returns
    None when there is no session or no user in it.
    """
    session = connection.scope.get("session") or {}
    user_id = session.get(session_key)
    if user_id is None:
        return None
    user_id = str(user_id).strip()
    return user_id or None


@dataclass
class ConnectionSession:
    """A live socket and the identity it was opened with"""
    websocket: WebSocket
    user_id: str | None = None
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: set[str] = field(default_factory=set)

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def join(self, room_id: str) -> None:
        self.rooms.add(room_id)

    def is_member(self, room_id: str) -> bool:
        return room_id in self.rooms

    async def send(self, event: str, data: dict[str, Any]) -> None:
        """Send one event frame to this connection"""
        await self.websocket.send_text(json.dumps({"event": event, "data": data}))
