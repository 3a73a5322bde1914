"""
TUI Chat

A room-scoped terminal chat system. The ``server`` package hosts the
connection/room session engine, the ``client`` package provides the
terminal client, and ``protocol`` holds the newline-delimited JSON wire
format shared by both sides.
"""

__version__ = "0.1.0"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 2785
DEFAULT_ROOM = "general"
