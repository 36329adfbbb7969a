"""Database access layer for chat messages"""
import logging
import uuid
from datetime import datetime, timezone

import aiosqlite

from domain.errors import NotFoundError, StoreUnavailableError, ValidationError
from domain.models import Message
from domain.rooms import derive_room_id

logger = logging.getLogger(__name__)

_MESSAGE_COLUMNS = "id, from_id, to_id, text, room_id, reply_to, reply_to_text, edited, created_at"


def _utc_timestamp(value: datetime | None = None) -> str:
    """Normalise a datetime to a sortable UTC ISO string"""
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(
        id=row["id"],
        from_id=row["from_id"],
        to_id=row["to_id"],
        text=row["text"],
        room_id=row["room_id"],
        reply_to=row["reply_to"],
        reply_to_text=row["reply_to_text"],
        edited=bool(row["edited"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _is_blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()


class MessageStore:
    """Durable SQLite storage for chat messages

    Every operation is a single statement committed on its own. Any failure
    talking to SQLite is raised as StoreUnavailableError.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self.conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the database and create the messages table"""
        try:
            self.conn = await aiosqlite.connect(self.db_path)
            self.conn.row_factory = aiosqlite.Row

            # seq keeps insertion order for messages sharing a timestamp
            await self.conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    from_id TEXT NOT NULL,
                    to_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    room_id TEXT NOT NULL,
                    reply_to TEXT,
                    reply_to_text TEXT,
                    edited INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)

            await self.conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_room
                ON messages(room_id)
            """)

            await self.conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_room_created
                ON messages(room_id, created_at)
            """)

            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Could not open message store at {self.db_path}: {e}") from e
        logger.info("Message store initialized at %s", self.db_path)

    async def close(self) -> None:
        """Close database connection"""
        if self.conn:
            await self.conn.close()
            self.conn = None

    def _connection(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StoreUnavailableError("Message store is not open")
        return self.conn

    async def create_message(
        self,
        from_id: str,
        to_id: str,
        text: str,
        room_id: str,
        reply_to: str | None = None,
        reply_to_text: str | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        """Persist a new message, assigning its id and creation time"""
        if _is_blank(text):
            raise ValidationError("Message text is required")
        for name, value in (("from", from_id), ("to", to_id), ("roomId", room_id)):
            if _is_blank(value):
                raise ValidationError(f"Message field '{name}' is required")
        if room_id != derive_room_id(from_id, to_id):
            raise ValidationError(f"Room '{room_id}' does not belong to {from_id} and {to_id}")

        conn = self._connection()
        message_id = uuid.uuid4().hex
        timestamp = _utc_timestamp(created_at)
        try:
            await conn.execute(
                f"INSERT INTO messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)",
                (message_id, from_id, to_id, text, room_id, reply_to or None, reply_to_text or None, timestamp)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to save message: {e}") from e

        return Message(
            id=message_id,
            from_id=from_id,
            to_id=to_id,
            text=text,
            room_id=room_id,
            reply_to=reply_to or None,
            reply_to_text=reply_to_text or None,
            edited=False,
            created_at=datetime.fromisoformat(timestamp),
        )

    async def find_by_id(self, message_id: str) -> Message | None:
        """Get a message by id, or None when it does not exist"""
        conn = self._connection()
        try:
            cursor = await conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                (message_id,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to load message: {e}") from e
        return _row_to_message(row) if row else None

    async def list_by_room(self, room_id: str) -> list[Message]:
        """Get the room history, oldest first"""
        conn = self._connection()
        try:
            cursor = await conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE room_id = ? ORDER BY created_at ASC, seq ASC",
                (room_id,)
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to load room history: {e}") from e
        return [_row_to_message(row) for row in rows]

    async def update_text(self, message_id: str, new_text: str) -> Message:
        """Replace a message's text and flag it as edited"""
        if _is_blank(new_text):
            raise ValidationError("Message text is required")

        conn = self._connection()
        try:
            cursor = await conn.execute(
                "UPDATE messages SET text = ?, edited = 1 WHERE id = ?",
                (new_text, message_id)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to edit message: {e}") from e

        if cursor.rowcount == 0:
            raise NotFoundError(message_id)

        message = await self.find_by_id(message_id)
        if message is None:
            raise NotFoundError(message_id)
        return message

    async def delete_one(self, message_id: str) -> None:
        """Delete one message; a missing id raises NotFoundError"""
        conn = self._connection()
        try:
            cursor = await conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to delete message: {e}") from e

        if cursor.rowcount == 0:
            raise NotFoundError(message_id)

    async def delete_all_in_room(self, room_id: str) -> int:
        """Delete every message in a room, returns how many were removed"""
        conn = self._connection()
        try:
            cursor = await conn.execute("DELETE FROM messages WHERE room_id = ?", (room_id,))
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"Failed to clear room: {e}") from e
        return cursor.rowcount
