"""
Shared fixtures for the chat tests.

Server-side code only needs write/is_closing/close from a transport and
client-side code only needs send/close, so both are faked here instead of
opening sockets.
"""

from typing import List

import pytest

from tuichat.protocol import Envelope, FrameBuffer, decode


class FakeTransport:
    """Server-side stand-in for an asyncio StreamWriter."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.chunks: List[bytes] = []
        self.closed = False
        # Bytes the peer has not read yet
        self.unsent = 0
        # StreamWriter.transport; the fake plays both roles
        self.transport = self

    def get_write_buffer_size(self) -> int:
        return self.unsent

    def write(self, data: bytes) -> None:
        if self.fail:
            raise ConnectionResetError("connection reset by peer")
        self.chunks.append(data)

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    def envelopes(self) -> List[Envelope]:
        """Every envelope written so far, in order."""
        return [decode(line) for line in FrameBuffer().feed(b"".join(self.chunks))]

    def messages(self) -> List[str]:
        return [envelope.message for envelope in self.envelopes()]

    def reset(self) -> None:
        self.chunks.clear()


class FakeClientTransport:
    """Client-side stand-in for ChatConnection."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Envelope] = []
        self.closed = False

    def send(self, envelope: Envelope) -> None:
        if self.fail:
            raise ConnectionError("Not connected to server")
        self.sent.append(envelope)

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_transport():
    def factory(fail: bool = False) -> FakeTransport:
        return FakeTransport(fail)

    return factory


@pytest.fixture
def client_transport():
    return FakeClientTransport()


@pytest.fixture
def clock():
    return FakeClock()
