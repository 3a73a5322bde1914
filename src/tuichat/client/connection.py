"""
Client Connection

Thin wrapper around an asyncio stream pair that speaks the envelope
protocol. The connection factory can be replaced for testing.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..protocol import Envelope, encode

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class ChatConnection:
    """
    Persistent connection to the chat server.

    Attributes:
        host: Server host
        port: Server port
    """

    def __init__(
        self,
        host: str,
        port: int,
        connection_factory: Optional[Callable] = None,
    ):
        """
        Initialize the connection.

        Args:
            host: Server host
            port: Server port
            connection_factory: Optional coroutine function returning a
                                (reader, writer) pair; defaults to
                                asyncio.open_connection
        """
        self.host = host
        self.port = port
        self._connection_factory = connection_factory or asyncio.open_connection
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            ConnectionError: If the server cannot be reached
        """
        try:
            logger.info(f"Connecting to {self.address}...")
            self.reader, self.writer = await self._connection_factory(
                self.host, self.port
            )
            logger.info("Successfully connected to chat server")
        except OSError as e:
            logger.error(f"Failed to connect to server: {e}")
            raise ConnectionError(f"Could not connect to {self.address}: {e}") from e

    def send(self, envelope: Envelope) -> None:
        """
        Write one envelope.

        Raises:
            ConnectionError: If the connection is not open
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to server")
        self.writer.write(encode(envelope))

    async def read(self) -> bytes:
        """
        Read whatever the server has sent next.

        Returns:
            bytes: The data read; empty when the server closed the stream
        """
        if self.reader is None:
            raise ConnectionError("Not connected to server")
        return await self.reader.read(READ_CHUNK_SIZE)

    def close(self) -> None:
        if self.writer is not None and not self.writer.is_closing():
            self.writer.close()
            logger.info("Disconnected from chat server")
