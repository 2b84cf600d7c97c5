"""Ordered outgoing-write queue and fixed-size receive buffer.

A socket may only have one write in flight. :class:`SendQueue` keeps the
pending payloads in order: the caller starts a write only when
:meth:`SendQueue.enqueue` reports that the queue was idle, and after each
finished write :meth:`SendQueue.complete` hands back the next payload.
"""

from __future__ import annotations

import threading
from collections import deque

from .protocol import MAX_SENDQUE


class QueueFullError(Exception):
    """Raised when a send queue refuses another payload."""


def _as_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class SendQueue:
    """Thread-safe queue of payloads waiting to be written, head first.

    A payload is refused once more than ``max_size`` are already waiting.
    """

    def __init__(self, max_size: int = MAX_SENDQUE):
        if max_size < 0:
            raise ValueError("max_size must not be negative")
        self.max_size = max_size
        self._items: deque[bytes] = deque()
        self._lock = threading.Lock()

    def enqueue(self, data: bytes | str) -> bool:
        """Add a payload; return True when the caller must start writing it now."""
        payload = _as_bytes(data)
        with self._lock:
            if len(self._items) > self.max_size:
                raise QueueFullError(f"send queue is full, size is {self.max_size}")
            idle = not self._items
            self._items.append(payload)
            return idle

    def complete(self) -> bytes | None:
        """Drop the payload just written and return the next one, if any."""
        with self._lock:
            if not self._items:
                raise RuntimeError("no write in progress")
            self._items.popleft()
            return self._items[0] if self._items else None

    @property
    def head(self) -> bytes | None:
        """The payload currently being written, if any."""
        with self._lock:
            return self._items[0] if self._items else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class MessageBuffer:
    """Collects received bytes until ``total_len`` of them have arrived."""

    def __init__(self, total_len: int):
        if total_len < 0:
            raise ValueError("total_len must not be negative")
        self.total_len = total_len
        self._data = bytearray()

    @property
    def remaining(self) -> int:
        """Bytes still needed to complete the buffer."""
        return self.total_len - len(self._data)

    @property
    def data(self) -> bytes:
        """The bytes collected so far."""
        return bytes(self._data)

    def append(self, data: bytes) -> int:
        """Take as much of ``data`` as still fits; return how many bytes were taken."""
        taken = bytes(data[: self.remaining])
        self._data += taken
        return len(taken)

    def is_complete(self) -> bool:
        """True once ``total_len`` bytes have been collected."""
        return len(self._data) >= self.total_len

    def clear(self) -> None:
        """Discard everything collected."""
        self._data.clear()