"""Wire format for framed TCP messages.

Two framings are supported:

* the id/length frame: a 2-byte message id and a 2-byte body length, both in
  network byte order, followed by the body;
* the plain length-prefixed frame: a 2-byte body length in network byte order
  followed by the body.

Both decoders are incremental: bytes may arrive split at any point and several
frames may arrive in one chunk.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

MAX_LENGTH = 1024 * 2
HEAD_ID_LEN = 2
HEAD_DATA_LEN = 2
HEAD_TOTAL_LEN = HEAD_ID_LEN + HEAD_DATA_LEN
HEAD_LENGTH = 2
MAX_SENDQUE = 1024
MAX_RECVQUE = 1000
MSG_HELLO_WORLD = 1001

_FRAME_HEADER = struct.Struct("!HH")
_LENGTH_HEADER = struct.Struct("!H")
_U16_MAX = 0xFFFF


class ProtocolError(Exception):
    """Raised when a frame cannot be encoded or the peer sent an invalid one."""


@dataclass(frozen=True)
class Message:
    """A decoded id/length frame."""

    msg_id: int
    data: bytes

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.data.decode("utf-8")


def _as_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def encode_message(msg_id: int, data: bytes | str) -> bytes:
    """Build an id/length frame carrying ``data`` under ``msg_id``."""
    body = _as_bytes(data)
    if not 0 <= msg_id <= _U16_MAX:
        raise ProtocolError(f"message id {msg_id} does not fit in 16 bits")
    if len(body) > _U16_MAX:
        raise ProtocolError(f"message body of {len(body)} bytes is too long")
    return _FRAME_HEADER.pack(msg_id, len(body)) + body


def decode_header(header: bytes) -> tuple[int, int]:
    """Return ``(msg_id, body_length)`` from a 4-byte frame header."""
    if len(header) != HEAD_TOTAL_LEN:
        raise ProtocolError(
            f"header must be {HEAD_TOTAL_LEN} bytes, got {len(header)}"
        )
    msg_id, length = _FRAME_HEADER.unpack(bytes(header))
    if length > MAX_LENGTH:
        raise ProtocolError(f"invalid data length {length}")
    return msg_id, length


def encode_length_prefixed(data: bytes | str) -> bytes:
    """Build a frame made of a 2-byte length followed by ``data``."""
    body = _as_bytes(data)
    if len(body) > _U16_MAX:
        raise ProtocolError(f"message body of {len(body)} bytes is too long")
    return _LENGTH_HEADER.pack(len(body)) + body


class FrameDecoder:
    """Incremental decoder for id/length frames.

    ``max_msg_id`` bounds the accepted message ids; ``None`` accepts any id.
    Once an invalid frame is seen the decoder is broken and keeps raising.
    """

    def __init__(self, max_length: int = MAX_LENGTH, max_msg_id: int | None = MAX_LENGTH):
        self.max_length = max_length
        self.max_msg_id = max_msg_id
        self._buffer = bytearray()
        self._header: tuple[int, int] | None = None
        self._error: ProtocolError | None = None

    def feed(self, data: bytes) -> list[Message]:
        """Add received bytes and return every frame now complete."""
        if self._error is not None:
            raise self._error
        self._buffer += data
        messages: list[Message] = []
        while True:
            if self._header is None:
                if len(self._buffer) < HEAD_TOTAL_LEN:
                    break
                raw = bytes(self._buffer[:HEAD_TOTAL_LEN])
                del self._buffer[:HEAD_TOTAL_LEN]
                self._header = self._check(raw)
            msg_id, length = self._header
            if len(self._buffer) < length:
                break
            body = bytes(self._buffer[:length])
            del self._buffer[:length]
            self._header = None
            messages.append(Message(msg_id, body))
        return messages

    def _check(self, raw: bytes) -> tuple[int, int]:
        msg_id, length = _FRAME_HEADER.unpack(raw)
        if self.max_msg_id is not None and msg_id > self.max_msg_id:
            self._error = ProtocolError(f"invalid msg id {msg_id}")
        elif length > self.max_length:
            self._error = ProtocolError(f"invalid data length {length}")
        if self._error is not None:
            self._buffer.clear()
            raise self._error
        return msg_id, length


class LengthPrefixDecoder:
    """Incremental decoder for frames with only a 2-byte length prefix."""

    def __init__(self, max_length: int = MAX_LENGTH):
        self.max_length = max_length
        self._buffer = bytearray()
        self._length: int | None = None
        self._error: ProtocolError | None = None

    def feed(self, data: bytes) -> list[bytes]:
        """Add received bytes and return every body now complete."""
        if self._error is not None:
            raise self._error
        self._buffer += data
        bodies: list[bytes] = []
        while True:
            if self._length is None:
                if len(self._buffer) < HEAD_LENGTH:
                    break
                (length,) = _LENGTH_HEADER.unpack(bytes(self._buffer[:HEAD_LENGTH]))
                del self._buffer[:HEAD_LENGTH]
                if length > self.max_length:
                    self._buffer.clear()
                    self._error = ProtocolError(f"invalid data length {length}")
                    raise self._error
                self._length = length
            if len(self._buffer) < self._length:
                break
            bodies.append(bytes(self._buffer[: self._length]))
            del self._buffer[: self._length]
            self._length = None
        return bodies