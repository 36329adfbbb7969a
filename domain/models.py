"""Domain models for the chat system"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Message:
    """Represents a persisted chat message between two participants

    Fields:
    - id: Opaque identifier assigned by the store
    - from_id / to_id: Sender and intended recipient user ids
    - text: Message body
    - room_id: Room derived from the two participants at creation time
    - created_at: UTC creation time, never changes
    - reply_to: Id of the message this one replies to (may dangle after a delete)
    - reply_to_text: Snapshot of the replied-to text, not refreshed on edit
    - edited: Set once the author edits the text, never reset
    """
    id: str
    from_id: str
    to_id: str
    text: str
    room_id: str
    created_at: datetime
    reply_to: str | None = None
    reply_to_text: str | None = None
    edited: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Render the persisted record layout (used by the history endpoint)"""
        return {
            "_id": self.id,
            "from": self.from_id,
            "to": self.to_id,
            "text": self.text,
            "roomId": self.room_id,
            "replyTo": self.reply_to,
            "replyToText": self.reply_to_text,
            "edited": self.edited,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class ClientEvent:
    """Inbound socket frame: an event name plus its payload"""
    event: str
    data: dict[str, Any] = field(default_factory=dict)
