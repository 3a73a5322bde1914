"""
TCP Server

Accepts stream connections and feeds their events into the session
controller. Each connection gets a reader task that only waits for data;
all state changes happen inside synchronous controller calls on the same
event loop.
"""

import asyncio
import logging
from typing import Optional

from ..config import ServerConfig
from .controller import ServerSessionController

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class ChatServer:
    """
    Asyncio stream server for chat clients.

    Attributes:
        controller: Session controller that owns all connection state
        host: Host address to bind to
        port: Port to listen on (0 picks a free port)
    """

    def __init__(
        self,
        controller: ServerSessionController,
        host: str,
        port: int,
    ):
        """
        Initialize the chat server.

        Args:
            controller: The session controller instance
            host: Host address to bind to
            port: Port to listen on
        """
        self.controller = controller
        self.host = host
        self.port = port
        self.server: Optional[asyncio.AbstractServer] = None

    @classmethod
    def from_config(
        cls, config: ServerConfig, controller: Optional[ServerSessionController] = None
    ) -> "ChatServer":
        controller = controller or ServerSessionController(
            rate_limit_window=config.rate_limit_window,
            rate_limit_max=config.rate_limit_max,
        )
        return cls(controller, config.host, config.port)

    async def start(self):
        """Start listening for connections."""
        self.server = await asyncio.start_server(
            self.handle_connection, self.host, self.port
        )
        # Report the real port when an ephemeral one was requested
        self.port = self.server.sockets[0].getsockname()[1]
        logger.info(
            f"🚀 Server listening on {self.host}:{self.port}",
            extra={"category": "server"},
        )

    async def stop(self):
        """Stop accepting connections and close the open ones."""
        if self.server:
            self.server.close()
            for connection in self.controller.registry:
                self.controller.disconnect(connection.conn_id)
            await self.server.wait_closed()
            self.server = None
            logger.info("Server stopped", extra={"category": "server"})

    async def serve_forever(self):
        if self.server is None:
            await self.start()
        await self.server.serve_forever()

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        """
        Handle one client stream until it closes.

        Args:
            reader: Stream reader for the connection
            writer: Stream writer for the connection
        """
        peername = writer.get_extra_info("peername")
        peer = f"{peername[0]}:{peername[1]}" if peername else "unknown"
        conn_id = self.controller.accept(writer, peer)

        try:
            while conn_id in self.controller.registry:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    self.controller.handle_close(conn_id)
                    break
                self.controller.handle_data(conn_id, data)
        except Exception as e:
            self.controller.handle_error(conn_id, e)
        finally:
            # No-op when the record is already gone
            self.controller.disconnect(conn_id)
            if not writer.is_closing():
                writer.close()
