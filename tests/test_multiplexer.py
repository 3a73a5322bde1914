"""
Tests for the input multiplexer.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tuichat.client.controller import ClientSessionController
from tuichat.client.multiplexer import InputMultiplexer
from tuichat.client.session import ClientState, Session
from tuichat.protocol import create_chat_envelope, encode


@pytest.fixture
def session():
    return Session("alice", "general")


@pytest.fixture
def on_exit():
    return MagicMock()


@pytest.fixture
def controller(session, client_transport, on_exit):
    controller = ClientSessionController(session, on_exit=on_exit)
    controller.attach(client_transport)
    client_transport.sent.clear()
    return controller


@pytest.fixture
def redraw():
    return MagicMock()


@pytest.fixture
def multiplexer(controller, redraw):
    return InputMultiplexer(controller, redraw=redraw)


def type_text(multiplexer, text):
    for char in text:
        multiplexer.handle_key(char)


# ----------------------------------------------------------------------------
# keys
# ----------------------------------------------------------------------------

def test_printable_keys_build_the_input_line(multiplexer, session, redraw):
    type_text(multiplexer, "hi there!")

    assert session.input_buffer == "hi there!"
    assert redraw.call_count == len("hi there!")


def test_backspace_removes_last_character(multiplexer, session):
    type_text(multiplexer, "hey")

    multiplexer.handle_key("\x7f")
    multiplexer.handle_key("\x08")

    assert session.input_buffer == "h"


def test_backspace_on_empty_line_does_nothing(multiplexer, session, redraw):
    multiplexer.handle_key("\x7f")

    assert session.input_buffer == ""
    redraw.assert_not_called()


def test_enter_submits_and_clears(multiplexer, session, client_transport):
    type_text(multiplexer, "hello")

    multiplexer.handle_key("\r")

    assert session.input_buffer == ""
    [chat] = client_transport.sent
    assert chat.message == "hello"


def test_enter_on_blank_line_sends_nothing(multiplexer, session, client_transport):
    type_text(multiplexer, "   ")

    multiplexer.handle_key("\n")

    assert client_transport.sent == []
    assert session.input_buffer == ""


def test_non_printable_keys_are_ignored(multiplexer, session, redraw):
    for char in ("\x1b", "\t", "é", "\x00"):
        multiplexer.handle_key(char)

    assert session.input_buffer == ""
    redraw.assert_not_called()


def test_ctrl_c_quits(multiplexer, client_transport, on_exit):
    multiplexer.handle_key("\x03")

    assert client_transport.sent[-1].type == "leave"
    on_exit.assert_called_once_with(0, "👋 Goodbye!")


def test_quit_command_does_not_redraw_after_exit(multiplexer, redraw, on_exit):
    type_text(multiplexer, "/quit")
    redraw.reset_mock()

    multiplexer.handle_key("\r")

    on_exit.assert_called_once()
    redraw.assert_not_called()


# ----------------------------------------------------------------------------
# socket data
# ----------------------------------------------------------------------------

def test_socket_frames_reach_the_display(multiplexer, session):
    data = encode(create_chat_envelope("bob", "general", "one", "10:00:00"))
    data += encode(create_chat_envelope("bob", "general", "two", "10:00:01"))

    multiplexer.handle_socket_data(data[:7])
    assert len(session.messages) == 0
    multiplexer.handle_socket_data(data[7:])

    assert [m.envelope.message for m in session.messages] == ["one", "two"]


def test_malformed_socket_frame_is_skipped(multiplexer, session):
    multiplexer.handle_socket_data(b'garbage\n{"type": "system", "message": "ok"}\n')

    assert [m.envelope.message for m in session.messages] == ["ok"]


def test_deeply_nested_socket_frame_is_skipped(multiplexer, session):
    multiplexer.handle_socket_data(b"[" * 50000 + b'\n{"type": "system", "message": "ok"}\n')

    assert [m.envelope.message for m in session.messages] == ["ok"]


@pytest.mark.asyncio
async def test_pump_socket_reports_end_of_stream(multiplexer, session, on_exit):
    connection = MagicMock()
    connection.read = AsyncMock(
        side_effect=[b'{"type": "system", "message": "hello"}\n', b""]
    )

    await multiplexer.pump_socket(connection)

    assert [m.envelope.message for m in session.messages] == ["hello"]
    assert session.state is ClientState.DISCONNECTED
    on_exit.assert_called_once_with(1, "❌ Connection to server lost!")


@pytest.mark.asyncio
async def test_pump_socket_reports_errors(multiplexer, on_exit):
    connection = MagicMock()
    connection.read = AsyncMock(side_effect=ConnectionResetError("reset by peer"))

    await multiplexer.pump_socket(connection)

    status, message = on_exit.call_args[0]
    assert status == 1
    assert "reset by peer" in message


@pytest.mark.asyncio
async def test_pump_socket_can_be_cancelled(multiplexer, on_exit):
    never = asyncio.Event()

    async def read():
        await never.wait()
        return b""

    connection = MagicMock()
    connection.read = read

    task = asyncio.create_task(multiplexer.pump_socket(connection))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    on_exit.assert_not_called()
