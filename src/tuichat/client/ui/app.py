"""
Chat Application UI

Terminal user interface for the chat client, built with Textual. The
whole screen is one widget that is repainted from the session state after
every change; keystrokes and server data are both fed in on Textual's
event loop.
"""

import asyncio
import logging
import signal
from typing import List, Optional

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Static

from ...config import ClientConfig
from ...terminal import DEFAULT_WIDTH
from ..connection import ChatConnection
from ..controller import ClientSessionController
from ..multiplexer import CTRL_C, InputMultiplexer
from ..session import ClientState, Session
from ..view import render_screen

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

CONNECT_GUIDANCE = "Make sure the server is running with: chat-server"

# Textual key names mapped to the control characters a raw terminal sends
KEY_CODES = {
    "enter": "\r",
    "backspace": "\x7f",
    "ctrl+h": "\x08",
}


class ChatApp(App):
    """Main chat application."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #screen {
        height: 100%;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Quit", priority=True),
    ]

    def __init__(
        self,
        config: ClientConfig,
        connection: Optional[ChatConnection] = None,
    ) -> None:
        """
        Initialize the chat application.

        Args:
            config: Client configuration (username, room, server address)
            connection: Optional pre-built connection (for testing)
        """
        super().__init__()
        self.config = config
        self.session = Session(config.username, config.room, config.max_messages)
        self.controller = ClientSessionController(
            self.session, on_change=self.redraw, on_exit=self._on_session_end
        )
        self.multiplexer = InputMultiplexer(self.controller, redraw=self.redraw)
        self.connection = connection or ChatConnection(config.host, config.port)
        self._receive_task: Optional[asyncio.Task] = None
        self._signals: List[signal.Signals] = []

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        yield Static(id="screen")

    def on_mount(self) -> None:
        """Handle application mount."""
        loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} not available")
                continue
            self._signals.append(sig)

        self.redraw()
        self._receive_task = asyncio.create_task(self._connect_and_receive())

    async def _connect_and_receive(self) -> None:
        """Connect, join, then keep reading from the server."""
        try:
            await self.connection.connect()
        except ConnectionError as e:
            self.session.state = ClientState.DISCONNECTED
            self.exit(
                return_code=1,
                message=f"❌ Failed to connect to server: {e}\n{CONNECT_GUIDANCE}",
            )
            return

        self.controller.attach(self.connection)
        await self.multiplexer.pump_socket(self.connection)

    def on_key(self, event: events.Key) -> None:
        """Feed keystrokes to the input multiplexer."""
        char = KEY_CODES.get(event.key, event.character)
        if not char:
            return
        event.stop()
        self.multiplexer.handle_key(char)

    def on_resize(self) -> None:
        self.redraw()

    def action_interrupt(self) -> None:
        """Ctrl-C quits immediately."""
        self.multiplexer.handle_key(CTRL_C)

    def redraw(self) -> None:
        """Repaint the whole screen from the session."""
        frame = render_screen(
            self.session,
            width=self.size.width or DEFAULT_WIDTH,
            height=self.size.height or 24,
        )
        text = Text("\n".join(frame.lines))
        # Cursor sits right after the typed text on the last line
        text.append(" ", style="reverse")
        try:
            self.query_one("#screen", Static).update(text)
        except NoMatches:
            pass

    def _handle_signal(self, sig: signal.Signals) -> None:
        """SIGINT and SIGTERM leave the room and exit cleanly."""
        logger.info(f"Received {sig.name}, shutting down")
        self.controller.quit()

    def on_unmount(self) -> None:
        self._cancel_receive()
        loop = asyncio.get_running_loop()
        for sig in self._signals:
            loop.remove_signal_handler(sig)
        self._signals.clear()

    def _cancel_receive(self) -> None:
        task = self._receive_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _on_session_end(self, status: int, message: Optional[str]) -> None:
        self._cancel_receive()
        self.exit(return_code=status, message=message)
