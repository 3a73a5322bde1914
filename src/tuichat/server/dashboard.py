"""
Server Operator View

A full-screen view of the running server: listening address, connection
and room counts, and the most recent log entries. Log records reach the
view through OperatorLogHandler, a regular logging handler, so server code
keeps logging the usual way.
"""

import asyncio
import logging
import signal
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Static

from ..protocol import format_timestamp
from ..terminal import DEFAULT_WIDTH, ScreenFrame, build_frame, center, rule
from .tcp import ChatServer

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOG_ENTRIES = 200


@dataclass
class LogEntry:
    """
    One line of the operator log.

    Attributes:
        category: Short tag such as "join", "chat" or "error"
        message: Log text
        timestamp: HH:MM:SS time the entry was recorded
    """

    category: str
    message: str
    timestamp: str

    def format(self) -> str:
        return f"[{self.timestamp}] {self.category:<10} {self.message}"


class OperatorLog:
    """Bounded log of recent entries, oldest evicted first."""

    def __init__(self, max_entries: int = DEFAULT_MAX_LOG_ENTRIES):
        self.entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._listeners: List[Callable[[], None]] = []

    def add(self, category: str, message: str, timestamp: Optional[str] = None) -> LogEntry:
        entry = LogEntry(category, message, timestamp or format_timestamp())
        self.entries.append(entry)
        for listener in self._listeners:
            listener()
        return entry

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every new entry."""
        self._listeners.append(listener)

    def __len__(self) -> int:
        return len(self.entries)


class OperatorLogHandler(logging.Handler):
    """
    Logging handler that feeds an OperatorLog.

    The category comes from ``extra={"category": ...}`` on the log call,
    falling back to the lower-cased level name.
    """

    def __init__(self, operator_log: OperatorLog, level: int = logging.INFO):
        super().__init__(level)
        self.operator_log = operator_log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            category = getattr(record, "category", None) or record.levelname.lower()
            self.operator_log.add(category, record.getMessage())
        except Exception:
            self.handleError(record)


def render_dashboard(
    operator_log: OperatorLog,
    address: str,
    connections: int,
    rooms: int,
    width: int = DEFAULT_WIDTH,
    height: int = 24,
) -> ScreenFrame:
    """
    Compute the operator screen.

    Args:
        operator_log: Log whose newest entries fill the body
        address: Listening address shown in the header
        connections: Number of open connections
        rooms: Number of active rooms
        width: Terminal width in cells
        height: Terminal height in rows

    Returns:
        ScreenFrame: the full screen
    """
    header = [
        rule(width),
        center(f"🚀 Server listening on {address}", width),
        center(f"Connections: {connections} | Rooms: {rooms}", width),
        rule(width),
    ]
    footer = [rule(width, "-"), "Press Ctrl+C to stop the server"]
    body = [entry.format() for entry in operator_log.entries]
    return build_frame(header, body, footer, height)


class ServerDashboard(App):
    """Textual app that runs the chat server and shows its operator view."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #screen {
        height: 100%;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "stop_server", "Stop", priority=True),
    ]

    def __init__(self, chat_server: ChatServer, operator_log: OperatorLog) -> None:
        """
        Initialize the dashboard.

        Args:
            chat_server: Server to start once the app is mounted
            operator_log: Log shown in the body
        """
        super().__init__()
        self.chat_server = chat_server
        self.operator_log = operator_log
        operator_log.subscribe(self._schedule_redraw)

    def compose(self) -> ComposeResult:
        yield Static(id="screen")

    async def on_mount(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(
                    sig, lambda: self.call_later(self.action_stop_server)
                )
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig} not available")

        try:
            await self.chat_server.start()
        except OSError as e:
            self.exit(return_code=1, message=f"❌ Could not start server: {e}")
            return
        self.redraw()

    def on_resize(self) -> None:
        self.redraw()

    def _schedule_redraw(self) -> None:
        if self.is_running:
            self.call_later(self.redraw)

    def redraw(self) -> None:
        """Repaint the whole view from current server state."""
        stats = self.chat_server.controller.get_stats()
        frame = render_dashboard(
            self.operator_log,
            f"{self.chat_server.host}:{self.chat_server.port}",
            stats["connections"],
            stats["rooms"],
            width=self.size.width or DEFAULT_WIDTH,
            height=self.size.height or 24,
        )
        try:
            self.query_one("#screen", Static).update(Text("\n".join(frame.lines)))
        except NoMatches:
            pass

    async def action_stop_server(self) -> None:
        await self.chat_server.stop()
        self.exit(return_code=0)
