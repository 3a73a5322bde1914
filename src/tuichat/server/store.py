"""
Message Store

The server hands rooms and chat messages to a store on a best-effort
basis. Durable storage is not part of the chat server; this module defines
the interface the server talks to and an in-memory implementation that is
used by default.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SEED_ROOMS = {"general": "General"}


@dataclass
class RoomRecord:
    """
    A stored room.

    Attributes:
        room_id: Store-assigned identifier
        slug: Room slug
        name: Display name
    """

    room_id: int
    slug: str
    name: str


@dataclass
class MessageRecord:
    """
    A stored chat message.

    Attributes:
        message_id: Store-assigned identifier
        room_id: ID of the room the message was sent to
        username: Sender username
        content: Message text
        sent_at: When the server processed the message
    """

    message_id: int
    room_id: int
    username: str
    content: str
    sent_at: datetime


def display_name(slug: str) -> str:
    """Derive a room's display name from its slug ("general" -> "General")."""
    return slug[:1].upper() + slug[1:]


class MessageStore(ABC):
    """Interface of the persistence collaborator."""

    @abstractmethod
    def ensure_room(self, slug: str) -> RoomRecord:
        """Return the room with this slug, creating it if it does not exist."""

    @abstractmethod
    def append_message(
        self, room_id: int, username: str, content: str, sent_at: datetime
    ) -> MessageRecord:
        """Store one chat message."""


class InMemoryMessageStore(MessageStore):
    """
    Process-local store.

    Starts with the seed rooms so a fresh server always has a "general"
    room on record.
    """

    def __init__(self, seed_rooms: Optional[Dict[str, str]] = None):
        self._room_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._rooms: Dict[str, RoomRecord] = {}
        self._messages: List[MessageRecord] = []

        for slug, name in (SEED_ROOMS if seed_rooms is None else seed_rooms).items():
            self._rooms[slug] = RoomRecord(next(self._room_ids), slug, name)

    def ensure_room(self, slug: str) -> RoomRecord:
        room = self._rooms.get(slug)
        if room is None:
            room = RoomRecord(next(self._room_ids), slug, display_name(slug))
            self._rooms[slug] = room
            logger.debug(f"Stored new room {slug} with id {room.room_id}")
        return room

    def append_message(
        self, room_id: int, username: str, content: str, sent_at: datetime
    ) -> MessageRecord:
        record = MessageRecord(
            message_id=next(self._message_ids),
            room_id=room_id,
            username=username,
            content=content,
            sent_at=sent_at,
        )
        self._messages.append(record)
        return record

    def get_room(self, slug: str) -> Optional[RoomRecord]:
        return self._rooms.get(slug)

    def messages_for(self, room_id: int) -> List[MessageRecord]:
        return [m for m in self._messages if m.room_id == room_id]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
