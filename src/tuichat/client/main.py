#!/usr/bin/env python3
"""
Chat Client

Terminal chat client. Usage:

    chat-client <username> [room] [host:port]

Arguments not given on the command line fall back to the environment:

    CHAT_USERNAME      name shown to other room members
    CHAT_ROOM          room to join (default general)
    CHAT_SERVER        server address (default 127.0.0.1:2785)
    CHAT_MAX_MESSAGES  messages kept on screen (default 50)
    CHAT_LOG_FILE      log file (default chat_client.log)
"""

import logging
import sys
from typing import List, Optional

from ..config import ClientConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def parse_args(argv: List[str]) -> ClientConfig:
    """
    Build the client configuration from positional arguments and the
    environment.

    Raises:
        ValueError: If the username is missing or a value is malformed
    """
    username: Optional[str] = argv[0] if len(argv) > 0 else None
    room: Optional[str] = argv[1] if len(argv) > 1 else None
    server: Optional[str] = argv[2] if len(argv) > 2 else None
    return ClientConfig.from_env(username=username, room=room, server=server)


def main(argv: Optional[List[str]] = None):
    """Main entry point for the chat client."""
    argv = sys.argv[1:] if argv is None else argv

    try:
        config = parse_args(argv)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Usage: chat-client <username> [room] [host:port]", file=sys.stderr)
        sys.exit(2)

    # Log to a file to avoid interfering with the UI
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(config.log_file, mode="a")],
    )
    logger.info(
        "Starting chat client as %s in #%s on %s",
        config.username,
        config.room,
        config.server_address,
    )

    from .ui import ChatApp

    app = ChatApp(config)
    try:
        app.run()
    except KeyboardInterrupt:
        sys.exit(0)
    sys.exit(app.return_code or 0)


if __name__ == "__main__":
    main()
