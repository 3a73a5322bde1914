"""
Room Directory for the Chat Server

Tracks which connections are in which room. Rooms exist only while they
have members: the first join to an unseen slug creates the room and the
last member leaving removes it again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class Room:
    """
    An in-memory room.

    Attributes:
        slug: Room identifier as typed by users (e.g. "general")
        members: Connection IDs currently in the room
        created_at: ISO 8601 timestamp when the room was created
    """

    slug: str
    members: Set[str] = field(default_factory=set)
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()


class RoomDirectory:
    """
    Maps room slugs to their member connection IDs.

    The directory never decides who belongs where; ConnectionRegistry
    drives it so the two views of membership stay in agreement.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def add_member(self, slug: str, conn_id: str) -> Room:
        """
        Add a connection to a room, creating the room if needed.

        Args:
            slug: Room slug
            conn_id: Connection ID to add

        Returns:
            Room: the room the connection is now in
        """
        room = self._rooms.get(slug)
        if room is None:
            room = Room(slug=slug)
            self._rooms[slug] = room
            logger.info(f"Room #{slug} created")
        room.members.add(conn_id)
        return room

    def remove_member(self, slug: str, conn_id: str) -> bool:
        """
        Remove a connection from a room.

        Args:
            slug: Room slug
            conn_id: Connection ID to remove

        Returns:
            bool: True if the room became empty and was removed
        """
        room = self._rooms.get(slug)
        if room is None:
            return False

        room.members.discard(conn_id)
        if not room.members:
            del self._rooms[slug]
            logger.info(f"Room #{slug} is empty and was removed")
            return True
        return False

    def members_of(self, slug: str) -> Set[str]:
        """Return a copy of the member set (empty if the room is unknown)."""
        room = self.get_room(slug)
        return set(room.members) if room else set()

    def get_room(self, slug: str) -> Optional[Room]:
        return self._rooms.get(slug)

    def rooms_containing(self, conn_id: str) -> List[str]:
        """Slugs of every room whose member set contains the connection."""
        return [
            slug for slug, room in self._rooms.items() if conn_id in room.members
        ]

    def __contains__(self, slug: str) -> bool:
        return slug in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
