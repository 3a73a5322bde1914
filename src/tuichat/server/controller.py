"""
Server Session Controller

Turns transport events (accept, data, close, error) into registry,
directory and broadcast operations. Every handler runs to completion on
the event loop before the next event is processed, which is what keeps
the registry and the room directory consistent without locks.

Connection lifecycle:

    UNIDENTIFIED --join--> ACTIVE --leave--> UNIDENTIFIED
         |                   |
         +---close/error-----+----> CLOSED (record erased)
"""

import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional

from .. import DEFAULT_ROOM
from ..config import DEFAULT_RATE_LIMIT_MAX, DEFAULT_RATE_LIMIT_WINDOW
from ..protocol import (
    DecodeError,
    Envelope,
    MessageType,
    create_chat_envelope,
    create_system_envelope,
    decode,
    format_timestamp,
)
from .broadcast import Broadcaster
from .rate_limiter import RateLimiter
from .registry import ConnectionRegistry, ConnectionState
from .rooms import RoomDirectory
from .store import MessageStore, utc_now

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "Anonymous"

JOIN_NOTICE = "{username} joined the chat."
LEAVE_NOTICE = "{username} left the chat."
WELCOME_NOTICE = "Welcome to room #{room}!"
SLOW_DOWN_NOTICE = "You are sending messages too quickly. Please slow down."


class ServerSessionController:
    """
    State machine driver for all server-side connections.

    The controller owns the registry, room directory, rate limiter and
    broadcaster; they receive references to each other rather than
    sharing module-level state.
    """

    def __init__(
        self,
        store: Optional[MessageStore] = None,
        rate_limit_window: float = DEFAULT_RATE_LIMIT_WINDOW,
        rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the controller.

        Args:
            store: Optional persistence collaborator for rooms and messages
            rate_limit_window: Rate limit window in seconds
            rate_limit_max: Chat messages allowed per window
            clock: Monotonic clock used by the rate limiter
        """
        self.directory = RoomDirectory()
        self.registry = ConnectionRegistry(self.directory)
        self.rate_limiter = RateLimiter(
            self.registry, rate_limit_window, rate_limit_max, clock
        )
        self.broadcaster = Broadcaster(self.registry, on_failure=self.disconnect)
        self.store = store
        self._ids = itertools.count(1)

    # Transport events

    def accept(self, transport: Any, peer: str = "unknown") -> str:
        """
        Register a newly accepted connection.

        Args:
            transport: Writable stream for the connection
            peer: Remote address for logging

        Returns:
            str: The connection ID allocated for this stream
        """
        conn_id = f"conn-{next(self._ids)}"
        self.registry.register(conn_id, transport, peer)
        logger.info(
            f"📱 New connection: {conn_id} from {peer}",
            extra={"category": "connect"},
        )
        return conn_id

    def handle_data(self, conn_id: str, data: bytes) -> None:
        """
        Process bytes read from a connection.

        The bytes may hold any number of frames, including a partial one
        that is completed by a later read.
        """
        connection = self.registry.get(conn_id)
        if connection is None:
            logger.debug(f"Data for unknown connection {conn_id} ignored")
            return

        for line in connection.frames.feed(data):
            if conn_id not in self.registry:
                # Closed by an earlier frame in the same read
                break
            self.handle_frame(conn_id, line)

    def handle_frame(self, conn_id: str, line: str) -> None:
        """Decode and dispatch a single frame."""
        try:
            envelope = decode(line)
        except DecodeError as e:
            logger.warning(
                f"Invalid JSON received from {conn_id}: {e}",
                extra={"category": "warning"},
            )
            return

        self.dispatch(conn_id, envelope)

    def dispatch(self, conn_id: str, envelope: Envelope) -> None:
        """
        Route a decoded envelope to its handler.

        Args:
            conn_id: Sending connection
            envelope: Decoded envelope
        """
        try:
            if envelope.type == MessageType.JOIN:
                self.handle_join(conn_id, envelope)
            elif envelope.type == MessageType.CHAT:
                self.handle_chat(conn_id, envelope)
            elif envelope.type == MessageType.LEAVE:
                self.handle_leave(conn_id)
            else:
                logger.warning(
                    f"Unknown message type from {conn_id}: {envelope.type}",
                    extra={"category": "warning"},
                )
        except Exception as e:
            logger.error(
                f"Error handling message from {conn_id}: {e}",
                extra={"category": "error"},
            )

    def handle_close(self, conn_id: str) -> None:
        """The peer closed the stream."""
        self.disconnect(conn_id)

    def handle_error(self, conn_id: str, error: BaseException) -> None:
        """The stream failed."""
        logger.error(
            f"Connection error for {conn_id}: {error}",
            extra={"category": "error"},
        )
        self.disconnect(conn_id)

    # Envelope handlers

    def handle_join(self, conn_id: str, envelope: Envelope) -> None:
        """
        Put a connection into a room.

        Missing or blank values fall back to "Anonymous" and "general".
        Joining a different room while already in one moves the
        connection, announcing the departure in the old room.
        """
        if conn_id not in self.registry:
            return

        username = (envelope.username or "").strip() or DEFAULT_USERNAME
        room = (envelope.room or "").strip() or DEFAULT_ROOM

        previous_username = self.registry.get(conn_id).username
        previous_room = self.registry.set_identity(conn_id, username, room)
        if previous_room is not None:
            self._announce_departure(previous_room, previous_username or username)

        self._ensure_room(room)

        logger.info(
            f"👤 {username} joined room #{room}", extra={"category": "join"}
        )

        self.broadcaster.send(
            room,
            create_system_envelope(JOIN_NOTICE.format(username=username), room=room),
            exclude=conn_id,
        )
        self.broadcaster.send_to(
            conn_id, create_system_envelope(WELCOME_NOTICE.format(room=room))
        )

    def handle_chat(self, conn_id: str, envelope: Envelope) -> None:
        """
        Relay a chat message to the sender's room.

        Messages from connections that have not joined are dropped. The
        broadcast copy carries the username and room stored at join time,
        not whatever the client put in the envelope.
        """
        connection = self.registry.get(conn_id)
        if connection is None or not connection.is_active:
            logger.warning(
                f"Message from unregistered connection: {conn_id}",
                extra={"category": "warning"},
            )
            return

        if not self.rate_limiter.allow(conn_id):
            logger.warning(
                f"Rate limit exceeded by {connection.username} ({conn_id})",
                extra={"category": "ratelimit"},
            )
            self.broadcaster.send_to(conn_id, create_system_envelope(SLOW_DOWN_NOTICE))
            return

        content = envelope.message or ""
        chat = create_chat_envelope(
            username=connection.username,
            room=connection.room,
            message=content,
            timestamp=format_timestamp(),
        )
        self._record_message(connection.room, connection.username, content)

        logger.info(
            f"💬 [{connection.room}] {connection.username}: {content}",
            extra={"category": "chat"},
        )
        self.broadcaster.send(connection.room, chat, exclude=conn_id)

    def handle_leave(self, conn_id: str) -> None:
        """
        Take a connection out of its room.

        The stream stays open and the connection goes back to
        UNIDENTIFIED, so a client switching rooms can send ``join`` next
        on the same stream. Closing the stream erases the record.
        """
        connection = self.registry.get(conn_id)
        if connection is None or not connection.is_active:
            logger.debug(f"Leave from {conn_id} outside of a room ignored")
            return

        username, room = connection.username, connection.room
        self.registry.clear_identity(conn_id)
        self._announce_departure(room, username)

    def disconnect(self, conn_id: str) -> None:
        """
        Run the disconnection path for a connection.

        Safe to call more than once; later calls are no-ops.
        """
        connection = self.registry.get(conn_id)
        if connection is None:
            return

        was_active = connection.is_active
        username, room = connection.username, connection.room
        self.registry.unregister(conn_id)

        if was_active:
            self._announce_departure(room, username)

        try:
            if not connection.transport.is_closing():
                connection.transport.close()
        except Exception as e:
            logger.debug(f"Error closing transport for {conn_id}: {e}")

        logger.info(
            f"Connection {conn_id} closed", extra={"category": "disconnect"}
        )

    # Queries

    def connection_state(self, conn_id: str) -> ConnectionState:
        connection = self.registry.get(conn_id)
        return connection.state if connection else ConnectionState.CLOSED

    def get_stats(self) -> Dict[str, int]:
        return {
            "connections": len(self.registry),
            "rooms": len(self.directory),
        }

    # Helpers

    def _announce_departure(self, room: str, username: str) -> None:
        logger.info(
            f"👋 {username} left room #{room}", extra={"category": "leave"}
        )
        self.broadcaster.send(
            room,
            create_system_envelope(LEAVE_NOTICE.format(username=username), room=room),
        )

    def _ensure_room(self, room: str) -> None:
        if self.store is None:
            return
        try:
            self.store.ensure_room(room)
        except Exception as e:
            logger.warning(
                f"Could not save room to database: {e}",
                extra={"category": "warning"},
            )

    def _record_message(self, room: str, username: str, content: str) -> None:
        if self.store is None:
            return
        try:
            record = self.store.ensure_room(room)
            self.store.append_message(record.room_id, username, content, utc_now())
        except Exception as e:
            logger.warning(
                f"Could not save message to database: {e}",
                extra={"category": "warning"},
            )
