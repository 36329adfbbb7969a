"""Domain constants and type aliases"""
from typing import Literal

# Type aliases for inbound and outbound socket events
ClientEventType = Literal["join_room", "send_message", "edit_message", "delete_message", "clear_chat"]
ServerEventType = Literal[
    "receive_message",
    "new_message_notification",
    "message_edited",
    "message_deleted",
    "chat_cleared",
    "error",
]

# Inbound event constants
EVENT_JOIN_ROOM: ClientEventType = "join_room"
EVENT_SEND_MESSAGE: ClientEventType = "send_message"
EVENT_EDIT_MESSAGE: ClientEventType = "edit_message"
EVENT_DELETE_MESSAGE: ClientEventType = "delete_message"
EVENT_CLEAR_CHAT: ClientEventType = "clear_chat"

# Outbound event constants
EVENT_RECEIVE_MESSAGE: ServerEventType = "receive_message"
EVENT_NEW_MESSAGE_NOTIFICATION: ServerEventType = "new_message_notification"
EVENT_MESSAGE_EDITED: ServerEventType = "message_edited"
EVENT_MESSAGE_DELETED: ServerEventType = "message_deleted"
EVENT_CHAT_CLEARED: ServerEventType = "chat_cleared"
EVENT_ERROR: ServerEventType = "error"

# Room id separator (user ids never contain it)
ROOM_ID_SEPARATOR = "_"

# Session key holding the authenticated user id
SESSION_USER_KEY = "user_id"

# Error messages sent to the requesting connection
ERROR_MESSAGE_NOT_FOUND = "Message not found"
ERROR_UNAUTHORIZED = "Unauthorized"
ERROR_INVALID_JSON = "Invalid JSON format"
ERROR_EDIT_FAILED = "Failed to edit message"
ERROR_DELETE_FAILED = "Failed to delete message"
ERROR_CLEAR_FAILED = "Failed to clear chat"
