"""Event routing for the real-time chat

The gateway owns presence and room fan-out for one server instance and
handles every inbound socket event to completion. Store calls are the only
suspension points; authorization, membership checks and fan-out run without
awaiting anything else, so events from different connections only interleave
around the store.
"""
import logging
from typing import Any

from fastapi import WebSocket

from database.message_store import MessageStore
from domain.constants import (
    EVENT_JOIN_ROOM,
    EVENT_SEND_MESSAGE,
    EVENT_EDIT_MESSAGE,
    EVENT_DELETE_MESSAGE,
    EVENT_CLEAR_CHAT,
    EVENT_RECEIVE_MESSAGE,
    EVENT_NEW_MESSAGE_NOTIFICATION,
    EVENT_MESSAGE_EDITED,
    EVENT_MESSAGE_DELETED,
    EVENT_CHAT_CLEARED,
    EVENT_ERROR,
    ERROR_UNAUTHORIZED,
    ERROR_EDIT_FAILED,
    ERROR_DELETE_FAILED,
    ERROR_CLEAR_FAILED,
    SESSION_USER_KEY,
)
from domain.errors import NotFoundError, StoreUnavailableError, UnauthorizedError, ValidationError
from domain.models import Message
from domain.rooms import is_room_participant
from realtime.connection_manager import ConnectionManager
from realtime.presence import PresenceRegistry
from realtime.session import ConnectionSession, resolve_identity

logger = logging.getLogger(__name__)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _required_str(value: Any) -> str:
    return "" if value is None else str(value)


def receive_message_payload(message: Message) -> dict[str, Any]:
    """Build the receive_message payload for a stored message"""
    return {
        "_id": message.id,
        "from": message.from_id,
        "to": message.to_id,
        "message": message.text,
        "createdAt": message.created_at.isoformat(),
        "replyTo": message.reply_to,
        "replyToText": message.reply_to_text,
    }


class ChatGateway:
    """Accepts chat connections and dispatches their events

    Args:
        store: Durable message store
        connection_manager: Room fan-out groups (a fresh one by default)
        presence: Online users (a fresh one by default, never shared implicitly)
        session_key: Session key holding the authenticated user id
        enforce_sender_identity: Reject send_message whose 'from' is not the
            connection's own identity
        restrict_rooms_to_participants: Only let the two participants encoded
            in a room id join or clear that room
    """

    def __init__(
        self,
        store: MessageStore,
        connection_manager: ConnectionManager | None = None,
        presence: PresenceRegistry | None = None,
        session_key: str = SESSION_USER_KEY,
        enforce_sender_identity: bool = False,
        restrict_rooms_to_participants: bool = False,
    ) -> None:
        self.store = store
        self.connection_manager = connection_manager or ConnectionManager()
        self.presence = presence or PresenceRegistry()
        self.session_key = session_key
        self.enforce_sender_identity = enforce_sender_identity
        self.restrict_rooms_to_participants = restrict_rooms_to_participants

        self.handlers = {
            EVENT_JOIN_ROOM: self.handle_join_room,
            EVENT_SEND_MESSAGE: self.handle_send_message,
            EVENT_EDIT_MESSAGE: self.handle_edit_message,
            EVENT_DELETE_MESSAGE: self.handle_delete_message,
            EVENT_CLEAR_CHAT: self.handle_clear_chat,
        }

    async def open_session(self, websocket: WebSocket) -> ConnectionSession:
        """Accept a socket and bind it to the identity in its HTTP session

        Sockets without an identity are accepted but stay inert: they are not
        tracked, not registered as online, and all their events are dropped.
        """
        session = ConnectionSession(websocket=websocket, user_id=resolve_identity(websocket, self.session_key))

        if not session.authenticated:
            await websocket.accept()
            logger.info("Anonymous connection %s accepted as inert", session.connection_id)
            return session

        await self.connection_manager.connect(session)
        self.presence.register(session.user_id, session.connection_id)
        logger.info(
            "User %s connected (connection %s). Total clients: %d",
            session.user_id, session.connection_id, self.connection_manager.get_connection_count()
        )
        return session

    async def close_session(self, session: ConnectionSession) -> None:
        """Remove a closed connection from rooms and presence"""
        self.connection_manager.disconnect(session)
        if session.authenticated:
            self.presence.unregister(session.user_id, session.connection_id)
            logger.info(
                "User %s disconnected (connection %s). Total clients: %d",
                session.user_id, session.connection_id, self.connection_manager.get_connection_count()
            )

    async def handle_event(self, session: ConnectionSession, event: str, data: dict[str, Any]) -> None:
        """Route an inbound event to its handler"""
        if not session.authenticated:
            logger.debug("Dropping %s from anonymous connection %s", event, session.connection_id)
            return

        handler = self.handlers.get(event)
        if handler is None:
            logger.warning("Unknown event '%s' from user %s", event, session.user_id)
            return
        await handler(session, data)

    async def send_error(self, session: ConnectionSession, message: str) -> None:
        """Send a private error event to the requesting connection only"""
        await self.connection_manager.send_to(session.connection_id, EVENT_ERROR, {"message": message})

    def _may_use_room(self, session: ConnectionSession, room_id: str) -> bool:
        if not self.restrict_rooms_to_participants:
            return True
        return is_room_participant(room_id, session.user_id)

    async def handle_join_room(self, session: ConnectionSession, data: dict[str, Any]) -> None:
        room_id = _required_str(data.get("roomId")).strip()
        if not room_id:
            logger.warning("join_room without roomId from user %s", session.user_id)
            return
        if not self._may_use_room(session, room_id):
            logger.warning("User %s refused entry to room %s", session.user_id, room_id)
            await self.send_error(session, ERROR_UNAUTHORIZED)
            return

        self.connection_manager.join_room(session, room_id)
        logger.debug("User %s joined room %s", session.user_id, room_id)

    async def handle_send_message(self, session: ConnectionSession, data: dict[str, Any]) -> None:
        """Persist a message, fan it out to the room and notify an absent recipient"""
        from_id = _required_str(data.get("from"))
        to_id = _required_str(data.get("to"))
        room_id = _required_str(data.get("roomId"))

        if self.enforce_sender_identity and from_id != session.user_id:
            logger.warning("User %s tried to send as %s", session.user_id, from_id)
            await self.send_error(session, ERROR_UNAUTHORIZED)
            return

        try:
            message = await self.store.create_message(
                from_id=from_id,
                to_id=to_id,
                text=data.get("message"),
                room_id=room_id,
                reply_to=_optional_str(data.get("replyTo")),
                reply_to_text=_optional_str(data.get("replyToText")),
            )
        except ValidationError as e:
            logger.warning("Dropping invalid message from user %s: %s", session.user_id, e)
            return
        except StoreUnavailableError as e:
            logger.error("Error saving message from user %s: %s", session.user_id, e)
            return

        await self.connection_manager.broadcast_to_room(
            message.room_id, EVENT_RECEIVE_MESSAGE, receive_message_payload(message)
        )

        # Recipient is online but not looking at this room
        recipient_connection = self.presence.lookup(message.to_id)
        if recipient_connection and not self.connection_manager.is_member(recipient_connection, message.room_id):
            await self.connection_manager.send_to(
                recipient_connection,
                EVENT_NEW_MESSAGE_NOTIFICATION,
                {"from": message.from_id, "message": message.text},
            )

    async def _load_owned_message(self, session: ConnectionSession, message_id: str) -> Message:
        """Fetch a message authored by the session's user

        Raises:
            NotFoundError: No message with that id
            UnauthorizedError: Someone else wrote it
        """
        message = await self.store.find_by_id(message_id) if message_id else None
        if message is None:
            raise NotFoundError(message_id)
        if message.from_id != session.user_id:
            logger.warning("User %s is not the author of message %s", session.user_id, message_id)
            raise UnauthorizedError(session.user_id)
        return message

    def _target_room(self, message: Message, data: dict[str, Any]) -> str:
        room_id = _required_str(data.get("roomId"))
        if room_id and room_id != message.room_id:
            logger.warning("Event roomId %s does not match message room %s", room_id, message.room_id)
        return message.room_id

    async def handle_edit_message(self, session: ConnectionSession, data: dict[str, Any]) -> None:
        message_id = _required_str(data.get("messageId"))
        new_text = data.get("newText")

        try:
            message = await self._load_owned_message(session, message_id)
            updated = await self.store.update_text(message_id, new_text)
        except (NotFoundError, UnauthorizedError) as e:
            await self.send_error(session, str(e))
            return
        except ValidationError as e:
            logger.warning("Dropping invalid edit from user %s: %s", session.user_id, e)
            return
        except StoreUnavailableError as e:
            logger.error("Error editing message %s: %s", message_id, e)
            await self.send_error(session, ERROR_EDIT_FAILED)
            return

        await self.connection_manager.broadcast_to_room(
            self._target_room(message, data),
            EVENT_MESSAGE_EDITED,
            {"messageId": updated.id, "newText": updated.text},
        )

    async def handle_delete_message(self, session: ConnectionSession, data: dict[str, Any]) -> None:
        message_id = _required_str(data.get("messageId"))

        try:
            message = await self._load_owned_message(session, message_id)
            await self.store.delete_one(message_id)
        except (NotFoundError, UnauthorizedError) as e:
            await self.send_error(session, str(e))
            return
        except StoreUnavailableError as e:
            logger.error("Error deleting message %s: %s", message_id, e)
            await self.send_error(session, ERROR_DELETE_FAILED)
            return

        await self.connection_manager.broadcast_to_room(
            self._target_room(message, data), EVENT_MESSAGE_DELETED, {"messageId": message_id}
        )

    async def handle_clear_chat(self, session: ConnectionSession, data: dict[str, Any]) -> None:
        room_id = _required_str(data.get("roomId")).strip()
        if not room_id:
            logger.warning("clear_chat without roomId from user %s", session.user_id)
            return
        if not self._may_use_room(session, room_id):
            logger.warning("User %s refused clearing room %s", session.user_id, room_id)
            await self.send_error(session, ERROR_UNAUTHORIZED)
            return

        try:
            removed = await self.store.delete_all_in_room(room_id)
        except StoreUnavailableError as e:
            logger.error("Error clearing room %s: %s", room_id, e)
            await self.send_error(session, ERROR_CLEAR_FAILED)
            return

        logger.info("User %s cleared room %s (%d messages)", session.user_id, room_id, removed)
        await self.connection_manager.broadcast_to_room(room_id, EVENT_CHAT_CLEARED, {})
