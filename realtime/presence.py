"""Online presence tracking for chat users"""


class PresenceRegistry:
    """Maps each online user id to its most recent connection id

    One entry per user: a later connection overwrites the earlier one.
    Process-local and not persisted.
    """

    def __init__(self) -> None:
        self.entries: dict[str, str] = {}

    def register(self, user_id: str, connection_id: str) -> None:
        """Record the user's connection, replacing any previous one"""
        self.entries[user_id] = connection_id

    def unregister(self, user_id: str, connection_id: str | None = None) -> None:
        """Forget the user's connection (no-op when not online)

        With a connection_id, the entry is only removed while it still points
        at that connection, so an overwritten connection closing late leaves
        the newer one registered.
        """
        if connection_id is not None and self.entries.get(user_id) != connection_id:
            return
        self.entries.pop(user_id, None)

    def lookup(self, user_id: str) -> str | None:
        """Get the connection id of an online user"""
        return self.entries.get(user_id)

    def get_online_count(self) -> int:
        """Get the number of online users"""
        return len(self.entries)
