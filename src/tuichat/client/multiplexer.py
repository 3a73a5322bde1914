"""
Input Multiplexer

The client has two input sources: keystrokes and data from the server.
Both are serviced by the same event loop. Keys arrive one at a time from
the terminal UI; socket data is read by ``pump_socket`` running as a task
beside it. Neither source ever waits on the other.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..protocol import DecodeError, FrameBuffer, decode
from .controller import ClientSessionController

logger = logging.getLogger(__name__)

ENTER_KEYS = ("\r", "\n")
BACKSPACE_KEYS = ("\x7f", "\x08")
CTRL_C = "\x03"


def is_printable(char: str) -> bool:
    return len(char) == 1 and 32 <= ord(char) <= 126


class InputMultiplexer:
    """
    Turns raw key characters and socket bytes into controller calls.

    Attributes:
        controller: The client session controller
    """

    def __init__(
        self,
        controller: ClientSessionController,
        redraw: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the multiplexer.

        Args:
            controller: Controller receiving submitted lines and envelopes
            redraw: Called after every change to the input line
        """
        self.controller = controller
        self._redraw = redraw
        self._frames = FrameBuffer()

    @property
    def session(self):
        return self.controller.session

    def handle_key(self, char: str) -> None:
        """
        Handle one keystroke.

        Enter submits the buffered line, Backspace deletes the last
        character, Ctrl-C quits, printable ASCII is appended and anything
        else is ignored.

        Args:
            char: The character produced by the key
        """
        session = self.session

        if char in ENTER_KEYS:
            line = session.input_buffer
            session.input_buffer = ""
            if line.strip():
                self.controller.submit(line)
        elif char in BACKSPACE_KEYS:
            if not session.input_buffer:
                return
            session.input_buffer = session.input_buffer[:-1]
        elif char == CTRL_C:
            self.controller.quit(0)
            return
        elif is_printable(char):
            session.input_buffer += char
        else:
            return

        if not self.controller.finished:
            self._refresh()

    def handle_socket_data(self, data: bytes) -> None:
        """
        Handle bytes read from the server.

        Args:
            data: One read's worth of bytes, possibly several frames
        """
        for line in self._frames.feed(data):
            try:
                envelope = decode(line)
            except DecodeError as e:
                logger.warning(f"Ignoring malformed frame from server: {e}")
                continue
            self.controller.receive(envelope)

    async def pump_socket(self, connection) -> None:
        """
        Read from the server until the connection ends.

        Any end of the stream, clean or not, is reported to the controller
        as a lost connection.

        Args:
            connection: Connected ChatConnection (or compatible object)
        """
        try:
            while True:
                data = await connection.read()
                if not data:
                    break
                self.handle_socket_data(data)
        except asyncio.CancelledError:
            raise
        except (ConnectionError, OSError) as e:
            self.controller.connection_lost(e)
            return
        self.controller.connection_lost()

    def _refresh(self) -> None:
        if self._redraw:
            self._redraw()
