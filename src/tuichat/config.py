"""
Configuration

Server and client settings are read from the environment, the same way
the process entry points have always been configured. Values arrive as
strings and are converted here so the session engine only ever sees
validated settings.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from . import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_ROOM

DEFAULT_RATE_LIMIT_WINDOW = 10.0  # seconds
DEFAULT_RATE_LIMIT_MAX = 5  # messages allowed per window
DEFAULT_MAX_MESSAGES = 50  # messages kept in the client display buffer
DEFAULT_CLIENT_LOG_FILE = "chat_client.log"

TRUE_VALUES = ("1", "true", "yes", "on")


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}")


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> Tuple[str, int]:
    """
    Split a ``host:port`` string.

    Args:
        address: Address such as "127.0.0.1:2785" or "chat.local"
        default_port: Port used when the address has none

    Returns:
        tuple: (host, port)

    Raises:
        ValueError: If the port is not a valid TCP port number
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep:
        return address.strip() or DEFAULT_HOST, default_port
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in server address: {address!r}")
    if not 0 < port_number < 65536:
        raise ValueError(f"Port out of range in server address: {address!r}")
    return host or DEFAULT_HOST, port_number


@dataclass
class ServerConfig:
    """
    Settings for the chat server.

    Attributes:
        host: Address to bind to
        port: Port to listen on
        rate_limit_window: Sliding window length in seconds
        rate_limit_max: Messages allowed per connection per window
        dashboard: Run the full-screen operator view instead of plain logs
        log_level: Logging level name
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    rate_limit_window: float = DEFAULT_RATE_LIMIT_WINDOW
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    dashboard: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        if not 0 <= self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")
        if self.rate_limit_window <= 0:
            raise ValueError("Rate limit window must be positive")
        if self.rate_limit_max < 1:
            raise ValueError("Rate limit threshold must be at least 1")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build the server configuration from environment variables."""
        env = os.environ if env is None else env
        return cls(
            host=env.get("CHAT_HOST", DEFAULT_HOST),
            port=_get_int(env, "CHAT_PORT", DEFAULT_PORT),
            rate_limit_window=_get_float(
                env, "CHAT_RATE_LIMIT_WINDOW", DEFAULT_RATE_LIMIT_WINDOW
            ),
            rate_limit_max=_get_int(
                env, "CHAT_RATE_LIMIT_MAX", DEFAULT_RATE_LIMIT_MAX
            ),
            dashboard=env.get("CHAT_DASHBOARD", "").lower() in TRUE_VALUES,
            log_level=env.get("CHAT_LOG_LEVEL", "INFO").upper(),
        )


@dataclass
class ClientConfig:
    """
    Settings for the chat client.

    Attributes:
        username: Name shown to other room members
        room: Room slug to join on connect
        host: Server host
        port: Server port
        max_messages: Number of displayed messages kept in memory
        log_file: File the client logs to (the terminal belongs to the UI)
    """

    username: str
    room: str = DEFAULT_ROOM
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_messages: int = DEFAULT_MAX_MESSAGES
    log_file: str = DEFAULT_CLIENT_LOG_FILE

    def __post_init__(self):
        self.username = self.username.strip()
        self.room = self.room.strip()
        if not self.username:
            raise ValueError("Username is required!")
        if not self.room:
            raise ValueError("Room is required!")
        if self.max_messages < 1:
            raise ValueError("CHAT_MAX_MESSAGES must be at least 1")

    @property
    def server_address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        username: Optional[str] = None,
        room: Optional[str] = None,
        server: Optional[str] = None,
    ) -> "ClientConfig":
        """
        Build the client configuration.

        Explicit values take precedence over the environment.

        Args:
            env: Environment mapping, defaults to os.environ
            username: Username override
            room: Room override
            server: "host:port" override

        Returns:
            ClientConfig: the validated configuration

        Raises:
            ValueError: If a required value is missing or malformed
        """
        env = os.environ if env is None else env
        host, port = parse_address(
            server or env.get("CHAT_SERVER", f"{DEFAULT_HOST}:{DEFAULT_PORT}")
        )
        return cls(
            username=username or env.get("CHAT_USERNAME", ""),
            room=room or env.get("CHAT_ROOM", DEFAULT_ROOM),
            host=host,
            port=port,
            max_messages=_get_int(env, "CHAT_MAX_MESSAGES", DEFAULT_MAX_MESSAGES),
            log_file=env.get("CHAT_LOG_FILE", DEFAULT_CLIENT_LOG_FILE),
        )
