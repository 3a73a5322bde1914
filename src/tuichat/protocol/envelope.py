"""
Envelope Definitions

The envelope is the only unit exchanged between client and server. Every
envelope is a flat JSON object:

    {
        "type": "join" | "chat" | "leave" | "system",
        "room": "general",
        "username": "alice",
        "message": "hi",
        "timestamp": "14:03:27"
    }

There is no message identifier and no sequence number; ordering is the
order in which frames travel over the connection. Timestamps are local
wall-clock times formatted by whoever built the envelope and are purely
informational.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

SYSTEM_USERNAME = "System"
TIMESTAMP_FORMAT = "%H:%M:%S"


class MessageType(str, Enum):
    """Envelope types understood by the server and client."""

    JOIN = "join"
    CHAT = "chat"
    LEAVE = "leave"
    SYSTEM = "system"


def format_timestamp(now: Optional[datetime] = None) -> str:
    """Format a local time the way envelopes carry it (HH:MM:SS)."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


@dataclass
class Envelope:
    """
    One protocol message.

    Attributes:
        type: Envelope type. Kept as a plain string so that frames with an
              unrecognized type still decode and can be rejected by the
              receiver instead of by the codec.
        username: Sender username ("System" for server notices)
        room: Room slug, when the envelope is room-scoped
        message: Text content, when the envelope carries any
        timestamp: Informational HH:MM:SS time
    """

    type: str
    username: str = ""
    room: Optional[str] = None
    message: Optional[str] = None
    timestamp: Optional[str] = None

    def __post_init__(self):
        # Store the bare string even when a MessageType member is passed
        if isinstance(self.type, MessageType):
            self.type = self.type.value

    @property
    def is_system(self) -> bool:
        return self.type == MessageType.SYSTEM

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary, omitting unset optional fields."""
        data: Dict[str, Any] = {"type": self.type, "username": self.username}
        for key in ("room", "message", "timestamp"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def create_join_envelope(username: str, room: str) -> Envelope:
    """
    Create the envelope a client sends to enter a room.

    Args:
        username: Username to register under
        room: Slug of the room to join

    Returns:
        Envelope: join envelope
    """
    return Envelope(type=MessageType.JOIN, username=username, room=room)


def create_leave_envelope(username: str, room: str) -> Envelope:
    """
    Create the envelope a client sends when leaving a room or quitting.

    Args:
        username: Username of the departing user
        room: Slug of the room being left

    Returns:
        Envelope: leave envelope
    """
    return Envelope(type=MessageType.LEAVE, username=username, room=room)


def create_chat_envelope(
    username: str,
    room: Optional[str],
    message: str,
    timestamp: Optional[str] = None,
) -> Envelope:
    """
    Create a chat envelope.

    Clients leave the timestamp unset; the server stamps the copy it
    broadcasts.

    Args:
        username: Sender username
        room: Room slug
        message: Chat text
        timestamp: Optional HH:MM:SS timestamp

    Returns:
        Envelope: chat envelope
    """
    return Envelope(
        type=MessageType.CHAT,
        username=username,
        room=room,
        message=message,
        timestamp=timestamp,
    )


def create_system_envelope(
    message: str,
    room: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> Envelope:
    """
    Create a system notice.

    Args:
        message: Notice text
        room: Optional room slug the notice concerns
        timestamp: Optional timestamp, defaults to now

    Returns:
        Envelope: system envelope sent by "System"
    """
    return Envelope(
        type=MessageType.SYSTEM,
        username=SYSTEM_USERNAME,
        room=room,
        message=message,
        timestamp=timestamp or format_timestamp(),
    )
