"""
Protocol Package

Envelope definitions and the line-delimited codec shared by the chat
server and client.
"""

from .envelope import (
    Envelope,
    MessageType,
    SYSTEM_USERNAME,
    format_timestamp,
    create_join_envelope,
    create_chat_envelope,
    create_leave_envelope,
    create_system_envelope,
)
from .codec import DecodeError, FrameBuffer, encode, decode

__all__ = [
    "Envelope",
    "MessageType",
    "SYSTEM_USERNAME",
    "format_timestamp",
    "create_join_envelope",
    "create_chat_envelope",
    "create_leave_envelope",
    "create_system_envelope",
    "DecodeError",
    "FrameBuffer",
    "encode",
    "decode",
]
