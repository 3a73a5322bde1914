"""
Chat Server Package

This package provides the server side of the chat system: the connection
registry, room directory, rate limiter, broadcaster, the session
controller that drives them, and the asyncio TCP server.
"""

from .broadcast import Broadcaster
from .controller import ServerSessionController
from .rate_limiter import RateLimiter
from .registry import Connection, ConnectionRegistry, ConnectionState
from .rooms import Room, RoomDirectory
from .store import InMemoryMessageStore, MessageStore, MessageRecord, RoomRecord
from .tcp import ChatServer

__all__ = [
    "Broadcaster",
    "ServerSessionController",
    "RateLimiter",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "Room",
    "RoomDirectory",
    "InMemoryMessageStore",
    "MessageStore",
    "MessageRecord",
    "RoomRecord",
    "ChatServer",
]
