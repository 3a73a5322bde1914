"""
Tests for the line-delimited envelope codec.
"""

import json

import pytest

from tuichat.protocol import (
    DecodeError,
    Envelope,
    FrameBuffer,
    MessageType,
    create_chat_envelope,
    create_join_envelope,
    create_system_envelope,
    decode,
    encode,
)


# ----------------------------------------------------------------------------
# encode()
# ----------------------------------------------------------------------------

def test_encode_produces_one_terminated_line():
    frame = encode(create_chat_envelope("alice", "general", "hi\nthere"))

    assert frame.endswith(b"\n")
    # Newlines inside content are escaped, never raw
    assert frame.count(b"\n") == 1


def test_encode_omits_unset_fields():
    data = json.loads(encode(create_join_envelope("alice", "general")))

    assert data == {"type": "join", "username": "alice", "room": "general"}


def test_system_envelope_is_sent_by_system():
    envelope = create_system_envelope("Welcome to room #general!")

    assert envelope.username == "System"
    assert envelope.is_system
    assert envelope.timestamp


def test_encode_then_decode_preserves_fields():
    original = create_chat_envelope("alice", "general", "héllo 👋", timestamp="12:00:01")

    assert decode(encode(original)) == original


# ----------------------------------------------------------------------------
# decode()
# ----------------------------------------------------------------------------

def test_decode_accepts_bytes_and_str():
    line = '{"type": "join", "username": "bob", "room": "lobby"}'

    assert decode(line) == decode(line.encode("utf-8"))
    assert decode(line).type == MessageType.JOIN


def test_decode_missing_type_is_chat():
    envelope = decode('{"username": "bob", "message": "hi"}')

    assert envelope.type == "chat"
    assert envelope.message == "hi"


def test_decode_unknown_type_is_kept():
    envelope = decode('{"type": "dance", "username": "bob"}')

    assert envelope.type == "dance"


def test_decode_ignores_extra_fields():
    envelope = decode('{"type": "chat", "message": "hi", "color": "red"}')

    assert envelope == Envelope(type="chat", message="hi")


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        '{"type": "chat", "message": "tru',
        "[1, 2, 3]",
        '"just a string"',
        '{"type": 5}',
        '{"type": "chat", "message": 42}',
        '{"type": "join", "room": ["a"]}',
    ],
)
def test_decode_rejects_malformed_lines(line):
    with pytest.raises(DecodeError):
        decode(line)


def test_decode_error_is_a_value_error():
    with pytest.raises(ValueError):
        decode("{")


def test_decode_deeply_nested_json_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode("[" * 100000)

    with pytest.raises(DecodeError):
        decode('{"a": ' * 100000)


# ----------------------------------------------------------------------------
# FrameBuffer
# ----------------------------------------------------------------------------

def test_frame_buffer_splits_several_frames_in_one_read():
    buffer = FrameBuffer()
    data = encode(create_join_envelope("a", "r")) + encode(create_chat_envelope("a", "r", "x"))

    frames = buffer.feed(data)

    assert len(frames) == 2
    assert [decode(f).type for f in frames] == ["join", "chat"]
    assert buffer.pending == b""


def test_frame_buffer_keeps_partial_frame_until_completed():
    buffer = FrameBuffer()
    frame = encode(create_chat_envelope("alice", "general", "hello"))

    assert buffer.feed(frame[:10]) == []
    assert buffer.pending == frame[:10]

    frames = buffer.feed(frame[10:])
    assert len(frames) == 1
    assert decode(frames[0]).message == "hello"
    assert buffer.pending == b""


def test_frame_buffer_handles_multibyte_character_split_across_reads():
    buffer = FrameBuffer()
    frame = '{"type": "chat", "message": "é"}\n'.encode("utf-8")
    split = frame.index(b"\xc3") + 1

    assert buffer.feed(frame[:split]) == []
    assert decode(buffer.feed(frame[split:])[0]).message == "é"


def test_frame_buffer_skips_blank_lines():
    buffer = FrameBuffer()

    frames = buffer.feed(b'\n  \n{"type": "leave"}\r\n\n')

    assert frames == ['{"type": "leave"}']


def test_frame_buffer_bounds_a_frame_that_never_ends():
    buffer = FrameBuffer(max_frame_size=1024)

    for _ in range(100):
        assert buffer.feed(b"x" * 512) == []
        assert len(buffer.pending) <= 1024

    assert buffer.dropped == 1


def test_frame_buffer_resumes_after_oversized_frame():
    buffer = FrameBuffer(max_frame_size=1024)
    buffer.feed(b"x" * 2000)

    frames = buffer.feed(b'xxxx\n{"type": "leave"}\n')

    assert frames == ['{"type": "leave"}']
    assert buffer.pending == b""


def test_frame_buffer_drops_complete_oversized_frame():
    buffer = FrameBuffer(max_frame_size=24)

    frames = buffer.feed(b'{"type": "chat", "message": "too long"}\n{"type": "leave"}\n')

    assert frames == ['{"type": "leave"}']
    assert buffer.dropped == 1
