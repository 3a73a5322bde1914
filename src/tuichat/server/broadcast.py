"""
Room Broadcaster

Delivers encoded envelopes to room members. Writes go straight into each
connection's transport buffer without waiting for it to drain, so one slow
reader cannot hold up delivery to everyone else. A reader that falls too
far behind is dropped instead of having its backlog kept in memory.
"""

import logging
from typing import Callable, List, Optional

from ..protocol import Envelope, encode
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

# Bytes a peer may leave unread before it is dropped
WRITE_BUFFER_LIMIT = 1024 * 1024


class Broadcaster:
    """
    Fan-out of envelopes to the members of a room.

    A failed write never interrupts delivery to the other members; the
    failed connections are handed to ``on_failure`` once the fan-out is
    complete.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        on_failure: Optional[Callable[[str], None]] = None,
        write_buffer_limit: int = WRITE_BUFFER_LIMIT,
    ):
        """
        Initialize the broadcaster.

        Args:
            registry: Registry used to look up members and their transports
            on_failure: Called with the ID of every connection whose write
                        failed (normally the disconnection path)
            write_buffer_limit: Unsent bytes allowed per connection before
                                its writes count as failures
        """
        self.registry = registry
        self._on_failure = on_failure
        self.write_buffer_limit = write_buffer_limit

    def send(
        self,
        room: str,
        envelope: Envelope,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Broadcast an envelope to every member of a room.

        Args:
            room: Room slug
            envelope: Envelope to deliver
            exclude: Optional connection ID that should not receive it

        Returns:
            int: Number of members the envelope was written to
        """
        members = self.registry.members_of(room)
        if not members:
            return 0

        payload = encode(envelope)
        delivered = 0
        failed: List[str] = []

        for conn_id in sorted(members):
            if conn_id == exclude:
                continue
            connection = self.registry.get(conn_id)
            if connection is None:
                continue
            if self._write(connection, payload):
                delivered += 1
            else:
                failed.append(conn_id)

        self._report_failures(failed)
        return delivered

    def send_to(self, conn_id: str, envelope: Envelope) -> bool:
        """
        Deliver an envelope to a single connection.

        Returns:
            bool: True if the write succeeded
        """
        connection = self.registry.get(conn_id)
        if connection is None:
            return False
        if self._write(connection, encode(envelope)):
            return True
        self._report_failures([conn_id])
        return False

    def _write(self, connection: Connection, payload: bytes) -> bool:
        try:
            writer = connection.transport
            if writer.is_closing():
                raise ConnectionResetError("transport is closing")
            buffered = writer.transport.get_write_buffer_size()
            if buffered > self.write_buffer_limit:
                raise ConnectionError(
                    f"peer is not reading ({buffered} bytes unsent)"
                )
            writer.write(payload)
            return True
        except Exception as e:
            logger.error(
                f"Failed to send message to {connection.conn_id}: {e}",
                extra={"category": "error"},
            )
            return False

    def _report_failures(self, failed: List[str]) -> None:
        if not self._on_failure:
            return
        for conn_id in failed:
            self._on_failure(conn_id)
