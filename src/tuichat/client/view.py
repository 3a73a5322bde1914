"""
Chat Screen Layout

Computes the client's full screen from the session: a fixed header, the
most recent messages that fit, and a footer with the command hint and the
line being typed.
"""

from typing import List

from ..protocol import MessageType
from ..terminal import DEFAULT_WIDTH, ScreenFrame, build_frame, center, rule
from .session import DisplayedMessage, Session

TITLE = "🗨️  TUI Chat Client"
HINT = "Commands: /quit to exit, /clear to clear screen, /help for help"
PROMPT = "> "
NO_TIMESTAMP = "--:--:--"


def format_message(displayed: DisplayedMessage) -> str:
    """
    Format one displayed message as a single line.

    Args:
        displayed: The message to format

    Returns:
        str: e.g. "💬 [12:00:01] alice: hi"
    """
    envelope = displayed.envelope
    timestamp = envelope.timestamp or NO_TIMESTAMP
    username = envelope.username or "Unknown"
    content = envelope.message or ""

    if envelope.type == MessageType.SYSTEM:
        return f"🔔 [{timestamp}] {content}"
    if envelope.type == MessageType.CHAT:
        if displayed.is_own:
            return f"📤 [{timestamp}] You: {content}"
        return f"💬 [{timestamp}] {username}: {content}"
    return f"📨 [{timestamp}] {username}: {content}"


def render_header(session: Session, width: int) -> List[str]:
    return [
        rule(width),
        center(TITLE, width),
        center(f"Room: #{session.room} | User: {session.username}", width),
        rule(width),
    ]


def render_footer(session: Session, width: int) -> List[str]:
    return [
        rule(width, "-"),
        HINT,
        PROMPT + session.input_buffer,
    ]


def render_screen(
    session: Session, width: int = DEFAULT_WIDTH, height: int = 24
) -> ScreenFrame:
    """
    Compute the whole chat screen.

    Calling this again with unchanged state gives an identical frame.

    Args:
        session: Current session state
        width: Terminal width in cells
        height: Terminal height in rows

    Returns:
        ScreenFrame: header, visible messages, footer and cursor position
    """
    body = [format_message(message) for message in session.messages]
    return build_frame(
        render_header(session, width),
        body,
        render_footer(session, width),
        height,
    )
