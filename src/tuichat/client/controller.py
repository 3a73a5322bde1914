"""
Client Session Controller

Drives the client side of a chat session: joining on connect, sending
chat lines, handling slash commands, taking in envelopes from the server
and tearing everything down when the user quits or the connection drops.

Client lifecycle:

    CONNECTING -> CONNECTED -> IN_ROOM -> DISCONNECTED
                                  (any state) -> DISCONNECTED
"""

import logging
from typing import Any, Callable, Optional

from ..protocol import (
    Envelope,
    create_chat_envelope,
    create_join_envelope,
    create_leave_envelope,
    create_system_envelope,
    format_timestamp,
)
from .session import ClientState, Session

logger = logging.getLogger(__name__)

HELP_LINES = (
    "📋 Available Commands:",
    "  /quit, /exit    - Leave the chat",
    "  /clear          - Clear the screen",
    "  /room [name]    - Change room or show current room",
    "  /help           - Show this help message",
)

CONNECTION_LOST_MESSAGE = "❌ Connection to server lost!"
GOODBYE_MESSAGE = "👋 Goodbye!"

ExitCallback = Callable[[int, Optional[str]], None]


class ClientSessionController:
    """
    State machine for the chat client.

    The controller never touches the terminal or the socket directly: it
    sends envelopes through the attached transport, asks for a redraw via
    ``on_change`` and reports the end of the session via ``on_exit``.

    Attributes:
        session: Session state shared with the view
    """

    def __init__(
        self,
        session: Session,
        on_change: Optional[Callable[[], None]] = None,
        on_exit: Optional[ExitCallback] = None,
    ):
        """
        Initialize the controller.

        Args:
            session: The client session
            on_change: Called whenever the displayed state changes
            on_exit: Called once with (exit status, message) at teardown
        """
        self.session = session
        self.transport: Any = None
        self._on_change = on_change
        self._on_exit = on_exit
        self._finished = False

    @property
    def state(self) -> ClientState:
        return self.session.state

    # Connection lifecycle

    def attach(self, transport: Any) -> None:
        """
        Start the session on a freshly connected transport.

        Sends ``join`` and moves straight to IN_ROOM; the server's welcome
        notice is informational only.

        Args:
            transport: Connected transport with send(envelope) and close()
        """
        self.transport = transport
        self.session.state = ClientState.CONNECTED
        logger.info(f"Connected, joining room {self.session.room}")
        self._send(create_join_envelope(self.session.username, self.session.room))
        self.session.state = ClientState.IN_ROOM
        self._changed()

    def connection_lost(self, error: Optional[BaseException] = None) -> None:
        """
        Handle the transport closing or failing. The client does not retry.
        """
        if self._finished:
            return
        if error is not None:
            logger.error(f"Connection error: {error}")
            message = f"❌ Connection error: {error}"
        else:
            logger.warning("Connection closed by server")
            message = CONNECTION_LOST_MESSAGE
        self.session.state = ClientState.DISCONNECTED
        self._teardown(1, message, send_leave=False)

    def quit(self, status: int = 0) -> None:
        """Leave the room and end the session."""
        self._teardown(status, GOODBYE_MESSAGE, send_leave=True)

    # Input

    def submit(self, line: str) -> None:
        """
        Handle one submitted input line.

        Args:
            line: The line as typed; surrounding whitespace is ignored
        """
        text = line.strip()
        if not text or self._finished:
            return
        if text.startswith("/"):
            self.handle_command(text)
        else:
            self.send_chat(text)

    def handle_command(self, command: str) -> None:
        """
        Run a slash command.

        Args:
            command: Full command line, e.g. "/room lobby"
        """
        parts = command.split(" ", 1)
        name = parts[0].lower()
        argument = parts[1].strip() if len(parts) > 1 else ""

        if name in ("/quit", "/exit"):
            self.quit(0)
        elif name == "/clear":
            self.session.clear_messages()
            self._changed()
        elif name == "/help":
            for line in HELP_LINES:
                self._notice(line)
            self._changed()
        elif name == "/room":
            if argument:
                self.change_room(argument)
            else:
                self._notice(f"Current room: {self.session.room}")
                self._changed()
        else:
            self._notice(
                f"Unknown command: {name}. Type /help for available commands."
            )
            self._changed()

    def send_chat(self, text: str) -> None:
        """
        Send a chat line and show it locally right away.

        The server does not echo messages back to their sender.
        """
        if not self.session.is_connected:
            self._notice("Not connected to server!")
            self._changed()
            return

        self._send(create_chat_envelope(self.session.username, self.session.room, text))
        self.session.add_message(
            create_chat_envelope(
                self.session.username,
                self.session.room,
                text,
                timestamp=format_timestamp(),
            ),
            is_own=True,
        )
        self._changed()

    def change_room(self, room: str) -> None:
        """
        Move to another room on the same connection.

        Args:
            room: Target room slug
        """
        if room == self.session.room:
            self._notice(f"You're already in room '{room}'")
            self._changed()
            return

        self._send(create_leave_envelope(self.session.username, self.session.room))
        self.session.room = room
        self._send(create_join_envelope(self.session.username, room))
        self.session.clear_messages()
        self._notice(f"🚪 Switched to room '{room}'")
        logger.info(f"Switched to room {room}")
        self._changed()

    # Inbound

    def receive(self, envelope: Envelope) -> None:
        """Show an envelope received from the server."""
        if self.session.state is ClientState.DISCONNECTED:
            return
        self.session.add_message(envelope)
        self._changed()

    # Helpers

    def _send(self, envelope: Envelope) -> None:
        if self.transport is None:
            return
        try:
            self.transport.send(envelope)
        except (ConnectionError, OSError) as e:
            logger.error(f"Failed to send message: {e}")
            self._notice(f"Failed to send message: {e}")

    def _notice(self, text: str) -> None:
        self.session.add_message(create_system_envelope(text))

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()

    def _teardown(self, status: int, message: Optional[str], send_leave: bool) -> None:
        # Runs once, whichever exit path gets here first
        if self._finished:
            return
        self._finished = True

        if send_leave and self.session.is_connected:
            self._send(create_leave_envelope(self.session.username, self.session.room))

        self.session.state = ClientState.DISCONNECTED
        if self.transport is not None:
            try:
                self.transport.close()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing connection: {e}")

        logger.info(f"Session ended with status {status}")
        if self._on_exit:
            self._on_exit(status, message)

    @property
    def finished(self) -> bool:
        return self._finished
