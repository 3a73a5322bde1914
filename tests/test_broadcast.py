"""
Tests for room broadcasting.
"""

from unittest.mock import MagicMock

import pytest

from tuichat.protocol import create_chat_envelope
from tuichat.server.broadcast import Broadcaster
from tuichat.server.registry import ConnectionRegistry


@pytest.fixture
def registry():
    return ConnectionRegistry()


def join(registry, conn_id, transport, room="general"):
    registry.register(conn_id, transport)
    registry.set_identity(conn_id, conn_id.replace("conn-", "user"), room)
    return transport


def test_sender_is_excluded_from_broadcast(registry, make_transport):
    a = join(registry, "conn-1", make_transport())
    b = join(registry, "conn-2", make_transport())
    c = join(registry, "conn-3", make_transport())
    broadcaster = Broadcaster(registry)

    delivered = broadcaster.send(
        "general", create_chat_envelope("user1", "general", "hi"), exclude="conn-1"
    )

    assert delivered == 2
    assert a.chunks == []
    assert b.messages() == ["hi"]
    assert c.messages() == ["hi"]


def test_broadcasts_arrive_in_send_order(registry, make_transport):
    join(registry, "conn-1", make_transport())
    b = join(registry, "conn-2", make_transport())
    broadcaster = Broadcaster(registry)

    for text in ("one", "two", "three"):
        broadcaster.send("general", create_chat_envelope("user1", "general", text), exclude="conn-1")

    assert b.messages() == ["one", "two", "three"]


def test_other_rooms_do_not_receive(registry, make_transport):
    join(registry, "conn-1", make_transport(), room="general")
    other = join(registry, "conn-2", make_transport(), room="lobby")

    Broadcaster(registry).send("general", create_chat_envelope("user1", "general", "hi"))

    assert other.chunks == []


def test_failed_write_does_not_stop_delivery(registry, make_transport):
    join(registry, "conn-1", make_transport())
    join(registry, "conn-2", make_transport(fail=True))
    c = join(registry, "conn-3", make_transport())
    on_failure = MagicMock()
    broadcaster = Broadcaster(registry, on_failure=on_failure)

    delivered = broadcaster.send(
        "general", create_chat_envelope("user1", "general", "hi"), exclude="conn-1"
    )

    assert delivered == 1
    assert c.messages() == ["hi"]
    on_failure.assert_called_once_with("conn-2")


def test_closing_transport_counts_as_failure(registry, make_transport):
    closing = make_transport()
    closing.closed = True
    join(registry, "conn-1", closing)
    on_failure = MagicMock()

    delivered = Broadcaster(registry, on_failure=on_failure).send(
        "general", create_chat_envelope("x", "general", "hi")
    )

    assert delivered == 0
    on_failure.assert_called_once_with("conn-1")


def test_empty_room_is_a_no_op(registry):
    on_failure = MagicMock()

    delivered = Broadcaster(registry, on_failure=on_failure).send(
        "nowhere", create_chat_envelope("x", "nowhere", "hi")
    )

    assert delivered == 0
    on_failure.assert_not_called()


def test_send_to_single_connection(registry, make_transport):
    a = join(registry, "conn-1", make_transport())
    b = join(registry, "conn-2", make_transport())

    assert Broadcaster(registry).send_to("conn-1", create_chat_envelope("x", "general", "psst"))
    assert a.messages() == ["psst"]
    assert b.chunks == []


def test_send_to_unknown_connection(registry):
    assert Broadcaster(registry).send_to("conn-9", create_chat_envelope("x", None, "hi")) is False


def test_peer_that_stops_reading_is_dropped(registry, make_transport):
    join(registry, "conn-1", make_transport())
    stalled = join(registry, "conn-2", make_transport())
    c = join(registry, "conn-3", make_transport())
    stalled.unsent = 4096
    on_failure = MagicMock()
    broadcaster = Broadcaster(registry, on_failure=on_failure, write_buffer_limit=1024)

    delivered = broadcaster.send(
        "general", create_chat_envelope("user1", "general", "hi"), exclude="conn-1"
    )

    assert delivered == 1
    assert stalled.chunks == []
    assert c.messages() == ["hi"]
    on_failure.assert_called_once_with("conn-2")


def test_backlog_under_limit_is_still_written(registry, make_transport):
    slow = join(registry, "conn-1", make_transport())
    slow.unsent = 512

    delivered = Broadcaster(registry, write_buffer_limit=1024).send(
        "general", create_chat_envelope("x", "general", "hi")
    )

    assert delivered == 1
    assert slow.messages() == ["hi"]
