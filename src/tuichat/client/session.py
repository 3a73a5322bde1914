"""
Client Session State

Everything the terminal client knows about itself: who it is, which room
it is in, whether it is connected, the recent messages on screen and the
line being typed.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque

from ..config import DEFAULT_MAX_MESSAGES
from ..protocol import Envelope


class ClientState(Enum):
    """Lifecycle of the client connection."""

    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"  # transport up, join not sent yet
    IN_ROOM = "IN_ROOM"
    DISCONNECTED = "DISCONNECTED"


@dataclass
class DisplayedMessage:
    """
    A message in the display buffer.

    Attributes:
        envelope: The envelope as received (or as sent, for own messages)
        is_own: True for messages typed by this user
    """

    envelope: Envelope
    is_own: bool = False


@dataclass
class Session:
    """
    Client session.

    Attributes:
        username: This user's name
        room: Current room slug
        state: Connection lifecycle state
        messages: Most recent displayed messages, oldest evicted first
        input_buffer: Line being typed, not yet submitted
    """

    username: str
    room: str
    max_messages: int = DEFAULT_MAX_MESSAGES
    state: ClientState = ClientState.CONNECTING
    messages: Deque[DisplayedMessage] = field(init=False)
    input_buffer: str = ""

    def __post_init__(self):
        self.messages = deque(maxlen=self.max_messages)

    @property
    def is_connected(self) -> bool:
        return self.state in (ClientState.CONNECTED, ClientState.IN_ROOM)

    def add_message(self, envelope: Envelope, is_own: bool = False) -> DisplayedMessage:
        displayed = DisplayedMessage(envelope, is_own)
        self.messages.append(displayed)
        return displayed

    def clear_messages(self) -> None:
        self.messages.clear()
