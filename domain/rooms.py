"""Room id derivation for two-party conversations"""
from typing import Any

from .constants import ROOM_ID_SEPARATOR


def derive_room_id(id_a: Any, id_b: Any) -> str:
    """Return the room id shared by two participants, whichever one asks"""
    return ROOM_ID_SEPARATOR.join(sorted([str(id_a), str(id_b)]))


def room_participants(room_id: str) -> tuple[str, str] | None:
    """Split a derived room id back into its two participants

    Returns None when the id was not produced by derive_room_id.
    """
    parts = room_id.split(ROOM_ID_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        return None
    if parts[0] > parts[1]:
        return None
    return parts[0], parts[1]


def is_room_participant(room_id: str, user_id: str) -> bool:
    participants = room_participants(room_id)
    return participants is not None and user_id in participants
