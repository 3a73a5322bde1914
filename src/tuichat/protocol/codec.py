"""
Line-Delimited Envelope Codec

Each frame on the wire is one JSON object followed by a newline. A single
read from a stream may carry no frame, part of a frame, or several frames
back to back, so readers push raw bytes through a FrameBuffer and decode
each complete line independently.
"""

import json
import logging
from typing import Any, Dict, List, Union

from .envelope import Envelope, MessageType

logger = logging.getLogger(__name__)

FRAME_TERMINATOR = b"\n"
MAX_FRAME_SIZE = 64 * 1024  # bytes, terminator excluded
TEXT_FIELDS = ("username", "room", "message", "timestamp")


class DecodeError(ValueError):
    """Raised when a line is not a well-formed envelope."""


def encode(envelope: Envelope) -> bytes:
    """
    Serialize an envelope into a single frame.

    Args:
        envelope: The envelope to serialize

    Returns:
        bytes: UTF-8 JSON terminated by a newline
    """
    return json.dumps(envelope.to_dict()).encode("utf-8") + FRAME_TERMINATOR


def decode(line: Union[str, bytes]) -> Envelope:
    """
    Parse one frame into an envelope.

    A frame without a ``type`` is treated as chat. Unknown fields are
    ignored so newer peers can add fields without breaking older ones.

    Args:
        line: One frame, with or without its trailing newline

    Returns:
        Envelope: the decoded envelope

    Raises:
        DecodeError: If the line is not JSON, is not a JSON object, or
            carries fields of the wrong type
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")

    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise DecodeError("JSON nested too deeply") from e

    if not isinstance(data, dict):
        raise DecodeError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    return _envelope_from_dict(data)


def _envelope_from_dict(data: Dict[str, Any]) -> Envelope:
    message_type = data.get("type", MessageType.CHAT.value)
    if not isinstance(message_type, str):
        raise DecodeError("Field 'type' must be a string")

    values = {}
    for key in TEXT_FIELDS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise DecodeError(f"Field '{key}' must be a string")
        values[key] = value

    return Envelope(
        type=message_type,
        username=values["username"] or "",
        room=values["room"],
        message=values["message"],
        timestamp=values["timestamp"],
    )


class FrameBuffer:
    """
    Reassembles frames from arbitrary stream reads.

    Complete lines are returned from ``feed``; an unterminated trailing
    fragment is kept until the rest of it arrives. A frame longer than
    ``max_frame_size`` is dropped whole, so a peer that never sends a
    newline cannot make the buffer grow past that size.
    """

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE):
        self.max_frame_size = max_frame_size
        self.dropped = 0
        self._pending = b""
        self._discarding = False

    def feed(self, data: bytes) -> List[str]:
        """
        Add bytes read from the stream.

        Args:
            data: Raw bytes from one read

        Returns:
            list: Complete, non-empty frames as text (terminator removed)
        """
        *complete, pending = (self._pending + data).split(FRAME_TERMINATOR)

        frames = []
        for raw in complete:
            if self._discarding:
                # Tail of a frame that already overflowed
                self._discarding = False
                continue
            if len(raw) > self.max_frame_size:
                self._drop(len(raw))
                continue
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                frames.append(text)

        if len(pending) > self.max_frame_size:
            if not self._discarding:
                self._drop(len(pending))
            pending = b""
            self._discarding = True

        self._pending = pending
        return frames

    @property
    def pending(self) -> bytes:
        """Bytes of the incomplete frame still waiting for its newline."""
        return self._pending

    def _drop(self, size: int) -> None:
        self.dropped += 1
        logger.warning(
            f"Dropping oversized frame ({size} bytes, limit {self.max_frame_size})"
        )
