"""Error taxonomy for the chat core"""
from .constants import ERROR_MESSAGE_NOT_FOUND, ERROR_UNAUTHORIZED


class ChatError(Exception):
    """Base class for chat failures handled inside the gateway"""


class ValidationError(ChatError):
    """A required message field is missing or empty"""


class NotFoundError(ChatError):
    """The referenced message does not exist"""

    def __init__(self, message_id: str) -> None:
        super().__init__(ERROR_MESSAGE_NOT_FOUND)
        self.message_id = message_id


class UnauthorizedError(ChatError):
    """The connection's identity may not perform the requested change"""

    def __init__(self, user_id: str | None = None) -> None:
        super().__init__(ERROR_UNAUTHORIZED)
        self.user_id = user_id


class StoreUnavailableError(ChatError):
    """The persistence layer could not be reached"""
