"""
Connection Registry for the Chat Server

Holds the session state of every accepted connection and keeps the room
directory in step with it. All methods are called from the event loop
thread only, so no locking is needed.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterator, Optional, Set

from ..protocol import FrameBuffer
from .rooms import RoomDirectory

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of a server-side connection."""

    UNIDENTIFIED = "UNIDENTIFIED"  # accepted, no username/room yet
    ACTIVE = "ACTIVE"  # joined a room
    CLOSED = "CLOSED"  # disconnected, record erased


@dataclass
class Connection:
    """
    Session state for one accepted stream.

    Attributes:
        conn_id: Opaque identifier, stable for the connection's lifetime
        transport: StreamWriter for the connection (write, is_closing,
                   close and the underlying transport)
        peer: Remote address, for logging only
        username: Set by join
        room: Room slug, set by join
        state: Current lifecycle state
        send_times: Monotonic times of recent chat attempts (rate limiting)
        frames: Reassembly buffer for partially received frames
    """

    conn_id: str
    transport: Any
    peer: str = "unknown"
    username: Optional[str] = None
    room: Optional[str] = None
    state: ConnectionState = ConnectionState.UNIDENTIFIED
    send_times: Deque[float] = field(default_factory=deque)
    frames: FrameBuffer = field(default_factory=FrameBuffer)

    @property
    def is_active(self) -> bool:
        return self.state is ConnectionState.ACTIVE


class ConnectionRegistry:
    """
    Maps connection IDs to their session state.

    Membership changes go through ``set_identity``, ``clear_identity`` and
    ``unregister``, which update the connection record and the room
    directory together.
    """

    def __init__(self, directory: Optional[RoomDirectory] = None):
        """
        Initialize the registry.

        Args:
            directory: Room directory to keep in sync (a new one by default)
        """
        self.directory = directory if directory is not None else RoomDirectory()
        self._connections: Dict[str, Connection] = {}

    def register(self, conn_id: str, transport: Any, peer: str = "unknown") -> Connection:
        """
        Record a newly accepted connection.

        Raises:
            ValueError: If the ID is already registered
        """
        if conn_id in self._connections:
            raise ValueError(f"Connection {conn_id} is already registered")
        connection = Connection(conn_id=conn_id, transport=transport, peer=peer)
        self._connections[conn_id] = connection
        return connection

    def set_identity(self, conn_id: str, username: str, room: str) -> Optional[str]:
        """
        Attach a username and room to a connection.

        A connection is only ever in one room: if it already sits in a
        different room it is removed from that room first.

        Args:
            conn_id: Connection ID
            username: Username to store
            room: Room slug to join

        Returns:
            The previous room slug if the connection moved out of one,
            None otherwise

        Raises:
            KeyError: If the connection is unknown
        """
        connection = self._connections[conn_id]
        previous = connection.room
        if previous is not None and previous != room:
            self.directory.remove_member(previous, conn_id)

        connection.username = username
        connection.room = room
        connection.state = ConnectionState.ACTIVE
        self.directory.add_member(room, conn_id)

        return previous if previous != room else None

    def clear_identity(self, conn_id: str) -> Optional[Connection]:
        """
        Take a connection out of its room without forgetting it.

        Returns:
            The connection, or None if it is unknown
        """
        connection = self._connections.get(conn_id)
        if connection is None:
            return None
        if connection.room is not None:
            self.directory.remove_member(connection.room, conn_id)
        connection.username = None
        connection.room = None
        connection.state = ConnectionState.UNIDENTIFIED
        return connection

    def unregister(self, conn_id: str) -> Optional[Connection]:
        """
        Forget a connection, removing it from its room first.

        Returns:
            The removed connection (now CLOSED), or None if it was unknown
        """
        connection = self._connections.pop(conn_id, None)
        if connection is None:
            return None
        if connection.room is not None:
            self.directory.remove_member(connection.room, conn_id)
        connection.state = ConnectionState.CLOSED
        return connection

    def get(self, conn_id: str) -> Optional[Connection]:
        return self._connections.get(conn_id)

    def members_of(self, room: str) -> Set[str]:
        return self.directory.members_of(room)

    def room_of(self, conn_id: str) -> Optional[str]:
        connection = self._connections.get(conn_id)
        return connection.room if connection else None

    def __contains__(self, conn_id: str) -> bool:
        return conn_id in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def __len__(self) -> int:
        return len(self._connections)
