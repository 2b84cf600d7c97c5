import pytest

from framenet.protocol import (
    HEAD_TOTAL_LEN,
    MAX_LENGTH,
    MSG_HELLO_WORLD,
    FrameDecoder,
    LengthPrefixDecoder,
    Message,
    ProtocolError,
    decode_header,
    encode_length_prefixed,
    encode_message,
)


def test_encode_message_wire_bytes():
    assert encode_message(MSG_HELLO_WORLD, b"hi") == b"\x03\xe9\x00\x02hi"


def test_encode_message_accepts_text():
    frame = encode_message(MSG_HELLO_WORLD, "hello world!")
    assert frame[HEAD_TOTAL_LEN:] == b"hello world!"
    assert decode_header(frame[:HEAD_TOTAL_LEN]) == (MSG_HELLO_WORLD, len("hello world!"))


def test_encode_message_rejects_bad_id():
    with pytest.raises(ProtocolError):
        encode_message(-1, b"x")
    with pytest.raises(ProtocolError):
        encode_message(1 << 16, b"x")


def test_encode_message_rejects_huge_body():
    with pytest.raises(ProtocolError):
        encode_message(1, b"x" * (1 << 16))


def test_decode_header_wrong_size():
    with pytest.raises(ProtocolError):
        decode_header(b"\x00\x01\x00")


def test_decode_header_rejects_long_body():
    header = encode_message(1, b"x" * (MAX_LENGTH + 1))[:HEAD_TOTAL_LEN]
    with pytest.raises(ProtocolError):
        decode_header(header)


def test_frame_decoder_round_trip_single_chunk():
    frames = encode_message(MSG_HELLO_WORLD, b"one") + encode_message(7, b"two")
    decoded = FrameDecoder().feed(frames)
    assert decoded == [Message(MSG_HELLO_WORLD, b"one"), Message(7, b"two")]


def test_frame_decoder_byte_by_byte():
    payload = '{"id": 1001, "data": "hello world!"}'
    frame = encode_message(MSG_HELLO_WORLD, payload)
    decoder = FrameDecoder()
    collected = []
    for i in range(len(frame)):
        collected.extend(decoder.feed(frame[i : i + 1]))
    assert len(collected) == 1
    assert collected[0].msg_id == MSG_HELLO_WORLD
    assert collected[0].text == payload


def test_frame_decoder_split_across_header_and_body():
    frame = encode_message(3, b"abcdef") + encode_message(4, b"gh")
    decoder = FrameDecoder()
    assert decoder.feed(frame[:3]) == []
    assert decoder.feed(frame[3:7]) == []
    assert decoder.feed(frame[7:12]) == [Message(3, b"abcdef")]
    assert decoder.feed(frame[12:]) == [Message(4, b"gh")]


def test_frame_decoder_empty_body():
    assert FrameDecoder().feed(encode_message(5, b"")) == [Message(5, b"")]


def test_frame_decoder_rejects_large_id_and_stays_broken():
    decoder = FrameDecoder()
    with pytest.raises(ProtocolError):
        decoder.feed(encode_message(MAX_LENGTH + 1, b"x"))
    with pytest.raises(ProtocolError):
        decoder.feed(encode_message(1, b"x"))


def test_frame_decoder_without_id_limit():
    decoder = FrameDecoder(max_msg_id=None)
    assert decoder.feed(encode_message(60000, b"ok")) == [Message(60000, b"ok")]


def test_frame_decoder_rejects_long_body():
    decoder = FrameDecoder()
    with pytest.raises(ProtocolError):
        decoder.feed(encode_message(1, b"x" * (MAX_LENGTH + 1)))


def test_frame_decoder_accepts_max_length_body():
    body = b"y" * MAX_LENGTH
    assert FrameDecoder().feed(encode_message(1, body)) == [Message(1, body)]


def test_encode_length_prefixed_wire_bytes():
    assert encode_length_prefixed(b"abc") == b"\x00\x03abc"


def test_length_prefix_round_trip():
    stream = b"".join(encode_length_prefixed(s) for s in ["first", "", "third"])
    assert LengthPrefixDecoder().feed(stream) == [b"first", b"", b"third"]


def test_length_prefix_split_feed():
    frame = encode_length_prefixed("hello world")
    decoder = LengthPrefixDecoder()
    assert decoder.feed(frame[:1]) == []
    assert decoder.feed(frame[1:5]) == []
    assert decoder.feed(frame[5:]) == [b"hello world"]


def test_length_prefix_rejects_long_body():
    decoder = LengthPrefixDecoder()
    with pytest.raises(ProtocolError):
        decoder.feed(encode_length_prefixed(b"z" * (MAX_LENGTH + 1)))
    with pytest.raises(ProtocolError):
        decoder.feed(encode_length_prefixed(b"ok"))


def test_length_prefix_rejects_huge_body():
    with pytest.raises(ProtocolError):
        encode_length_prefixed(b"z" * (1 << 16))