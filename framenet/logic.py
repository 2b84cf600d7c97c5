"""Message dispatch on a dedicated worker thread.

Decoded frames are posted together with the session they came from; a single
worker thread takes them in arrival order and calls the callback registered
for the frame's message id. Frames with an unknown id are dropped. Stopping
the system lets the worker finish every frame already posted.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Any, Callable

from .protocol import MSG_HELLO_WORLD, Message

logger = logging.getLogger(__name__)

REPLY_PREFIX = "server has received, msg data is "

Callback = Callable[[Any, int, bytes], None]

_STOP = object()


def _styled_json(root: dict) -> str:
    return (
        json.dumps(
            root,
            indent=3,
            separators=(",", " : "),
            sort_keys=True,
            ensure_ascii=False,
        )
        + "\n"
    )


def hello_world_reply(data: bytes | str) -> tuple[int, str]:
    """Build the reply to a hello-world request.

    ``data`` is a JSON object with an ``id`` and a ``data`` field. The reply
    is the same object with ``data`` prefixed by :data:`REPLY_PREFIX`,
    rendered as indented JSON. Returns ``(reply_msg_id, reply_text)``; input
    that is not a JSON object is treated as an empty one.
    """
    text = data if isinstance(data, str) else bytes(data).decode("utf-8", errors="replace")
    try:
        root = json.loads(text)
    except ValueError:
        root = {}
    if not isinstance(root, dict):
        root = {}

    raw_id = root.get("id")
    msg_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else 0

    original = root.get("data")
    if not isinstance(original, str):
        original = ""
    logger.info("receive msg id is %d msg data is %s", msg_id, original)

    root["data"] = REPLY_PREFIX + original
    return msg_id, _styled_json(root)


class LogicSystem:
    """Dispatches posted messages to callbacks on one worker thread."""

    def __init__(self):
        self._callbacks: dict[int, Callback] = {}
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._stopped = False
        self.register(MSG_HELLO_WORLD, self._hello_world)
        self._worker = threading.Thread(
            target=self._deal_messages, name="logic-system", daemon=True
        )
        self._worker.start()

    def register(self, msg_id: int, callback: Callback) -> None:
        """Route messages with ``msg_id`` to ``callback(session, msg_id, data)``."""
        with self._lock:
            self._callbacks[msg_id] = callback

    def post(self, session: Any, message: Message) -> None:
        """Queue ``message`` received on ``session`` for dispatch."""
        with self._lock:
            if self._stopped:
                raise RuntimeError("logic system is stopped")
            self._queue.put((session, message))

    def stop(self) -> None:
        """Process every message already posted, then end the worker."""
        with self._lock:
            if not self._stopped:
                self._stopped = True
                self._queue.put(_STOP)
        if threading.current_thread() is not self._worker:
            self._worker.join()

    def __enter__(self) -> LogicSystem:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _deal_messages(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            session, message = item
            logger.debug("recv msg id is %d", message.msg_id)
            with self._lock:
                callback = self._callbacks.get(message.msg_id)
            if callback is None:
                continue
            try:
                callback(session, message.msg_id, message.data)
            except Exception:
                logger.exception("callback for msg id %d failed", message.msg_id)

    @staticmethod
    def _hello_world(session: Any, msg_id: int, data: bytes) -> None:
        reply_id, reply = hello_world_reply(data)
        session.send(reply, reply_id)


_instance: LogicSystem | None = None
_instance_lock = threading.Lock()


def get_logic_system() -> LogicSystem:
    """Return the process-wide logic system, creating it on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = LogicSystem()
        return _instance