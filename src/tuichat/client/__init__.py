"""
Chat Client

Terminal client for the room-scoped chat server.
"""

from .connection import ChatConnection
from .controller import ClientSessionController
from .multiplexer import InputMultiplexer
from .session import ClientState, DisplayedMessage, Session
from .view import render_screen

__all__ = [
    "ChatConnection",
    "ClientSessionController",
    "ClientState",
    "DisplayedMessage",
    "InputMultiplexer",
    "Session",
    "render_screen",
]
