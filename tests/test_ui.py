"""
Tests for the Chat Client UI

Tests for the Textual-based user interface components.
"""

import asyncio
import os
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from tuichat.client.controller import GOODBYE_MESSAGE
from tuichat.client.session import ClientState
from tuichat.client.ui import ChatApp
from tuichat.config import ClientConfig


@pytest.fixture
def config():
    return ClientConfig(username="alice", room="general")


def make_connection(fail: bool = False):
    connection = MagicMock()
    if fail:
        connection.connect = AsyncMock(side_effect=ConnectionError("Could not connect"))
    else:
        connection.connect = AsyncMock()

    async def read():
        await asyncio.Event().wait()

    connection.read = read
    return connection


class TestChatAppInitialization:
    """Tests for ChatApp initialization."""

    def test_chat_app_can_be_instantiated(self, config):
        """Test that ChatApp can be instantiated."""
        app = ChatApp(config)
        assert app is not None

    def test_chat_app_initial_state(self, config):
        """Test ChatApp initial state."""
        app = ChatApp(config)
        assert app.session.username == "alice"
        assert app.session.room == "general"
        assert app.session.state is ClientState.CONNECTING
        assert app.connection.address == "127.0.0.1:2785"


class TestChatAppRunning:
    """Tests that drive the app headlessly."""

    @pytest.mark.asyncio
    async def test_typed_line_is_sent_as_chat(self, config):
        connection = make_connection()
        app = ChatApp(config, connection=connection)

        async with app.run_test() as pilot:
            await pilot.pause(0.1)
            assert app.session.state is ClientState.IN_ROOM

            await pilot.press("h", "i")
            assert app.session.input_buffer == "hi"

            await pilot.press("enter")
            await pilot.pause()

        sent = [call.args[0] for call in connection.send.call_args_list]
        assert [e.type for e in sent][:2] == ["join", "chat"]
        assert sent[1].message == "hi"

    @pytest.mark.asyncio
    async def test_failed_connect_exits_with_status_one(self, config):
        app = ChatApp(config, connection=make_connection(fail=True))

        async with app.run_test():
            for _ in range(100):
                if app.return_code is not None:
                    break
                await asyncio.sleep(0.01)

        assert app.return_code == 1
        assert app.session.state is ClientState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_sigterm_leaves_room_and_exits_cleanly(self, config):
        connection = make_connection()
        app = ChatApp(config, connection=connection)

        async with app.run_test() as pilot:
            await pilot.pause(0.1)
            assert app.session.state is ClientState.IN_ROOM
            assert signal.SIGTERM in app._signals

            on_exit = MagicMock(wraps=app._on_session_end)
            app.controller._on_exit = on_exit

            os.kill(os.getpid(), signal.SIGTERM)
            for _ in range(100):
                if app.return_code is not None:
                    break
                await asyncio.sleep(0.01)

            app.controller.quit()

        on_exit.assert_called_once_with(0, GOODBYE_MESSAGE)
        assert app.return_code == 0
        sent = [call.args[0] for call in connection.send.call_args_list]
        assert [e.type for e in sent] == ["join", "leave"]
        assert sent[1].username == "alice"
        assert sent[1].room == "general"
        connection.close.assert_called_once()
        assert app._signals == []
