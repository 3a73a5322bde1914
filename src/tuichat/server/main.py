#!/usr/bin/env python3
"""
Chat Server

Room-scoped chat server. Configuration comes from the environment:

    CHAT_HOST               address to bind to (default 127.0.0.1)
    CHAT_PORT               port to listen on (default 2785)
    CHAT_RATE_LIMIT_WINDOW  rate limit window in seconds (default 10)
    CHAT_RATE_LIMIT_MAX     messages per window (default 5)
    CHAT_DASHBOARD          "1" to run the full-screen operator view
    CHAT_LOG_LEVEL          logging level (default INFO)
"""

import asyncio
import logging
import sys

from ..config import ServerConfig
from .controller import ServerSessionController
from .dashboard import OperatorLog, OperatorLogHandler, ServerDashboard
from .store import InMemoryMessageStore
from .tcp import ChatServer

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def build_server(config: ServerConfig) -> ChatServer:
    """Wire the controller, store and transport together."""
    controller = ServerSessionController(
        store=InMemoryMessageStore(),
        rate_limit_window=config.rate_limit_window,
        rate_limit_max=config.rate_limit_max,
    )
    return ChatServer.from_config(config, controller)


async def run_server(server: ChatServer):
    """
    Run the server until cancelled.

    Args:
        server: The chat server to run
    """
    await server.start()
    try:
        await server.serve_forever()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await server.stop()


def run_dashboard(server: ChatServer, level: str) -> int:
    """Run the server inside the operator view; logs go to the view only."""
    operator_log = OperatorLog()
    logging.basicConfig(
        level=level,
        handlers=[OperatorLogHandler(operator_log)],
        force=True,
    )
    app = ServerDashboard(server, operator_log)
    app.run()
    return app.return_code or 0


def main():
    """Main entry point for the chat server."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    server = build_server(config)

    if config.dashboard:
        sys.exit(run_dashboard(server, config.log_level))

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    logger.info("Starting chat server...")

    try:
        asyncio.run(run_server(server))
    except KeyboardInterrupt:
        logger.info("Shutting down chat server...")
        sys.exit(0)
    except OSError as e:
        logger.error(f"Could not start server on {config.address}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
