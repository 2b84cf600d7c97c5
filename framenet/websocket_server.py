"""WebSocket echo server that tracks live connections by uuid.

Every received message is sent back to its sender with the same text or
binary type. Outgoing messages of one connection are written one at a time,
in order. A connection is registered with a :class:`ConnectionManager` when
it is accepted and removed when it fails or closes.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import threading
import uuid as uuidlib
from collections import deque
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 10086


class ConnectionManager:
    """Thread-safe registry of live connections keyed by uuid."""

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def add(self, connection: Connection) -> None:
        """Register ``connection`` under its uuid."""
        with self._lock:
            self._connections[connection.uuid] = connection

    def remove(self, uuid: str) -> None:
        """Forget the connection with ``uuid``; unknown uuids are ignored."""
        with self._lock:
            self._connections.pop(uuid, None)

    def get(self, uuid: str) -> Connection | None:
        """The connection registered under ``uuid``, if any."""
        with self._lock:
            return self._connections.get(uuid)

    @property
    def uuids(self) -> tuple[str, ...]:
        """The uuids of every registered connection."""
        with self._lock:
            return tuple(self._connections)

    def __contains__(self, uuid: object) -> bool:
        with self._lock:
            return uuid in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


CONNECTION_MANAGER = ConnectionManager()


class Connection:
    """One accepted WebSocket: echoes messages and writes them in order.

    Must be created and used on the event loop that serves ``websocket``.
    """

    def __init__(self, websocket: Any, manager: ConnectionManager):
        self.uuid = str(uuidlib.uuid4())
        self._websocket = websocket
        self._manager = manager
        self._loop = asyncio.get_running_loop()
        self._pending: deque[str | bytes] = deque()
        self._writer: asyncio.Task | None = None
        self._failed = False

    def send(self, data: str | bytes) -> bool:
        """Queue ``data`` for sending; return False once sending has failed."""
        if self._failed:
            return False
        idle = not self._pending
        self._pending.append(data)
        if idle:
            self._writer = self._loop.create_task(self._write_pending())
        return True

    async def _write_pending(self) -> None:
        try:
            while self._pending:
                await self._websocket.send(self._pending[0])
                self._pending.popleft()
        except (ConnectionClosed, OSError) as exc:
            logger.warning("async send msg failed, exception is %s", exc)
            self._failed = True
            self._pending.clear()
            self._manager.remove(self.uuid)

    async def run(self) -> None:
        """Register, echo every message until the peer leaves, then unregister."""
        self._manager.add(self)
        try:
            async for message in self._websocket:
                logger.info("recv data is %s", message)
                self.send(message)
        except (ConnectionClosed, OSError) as exc:
            logger.info("websocket read failed, exception is %s", exc)
        finally:
            self._manager.remove(self.uuid)
            writer = self._writer
            if writer is not None and not writer.done():
                with contextlib.suppress(Exception):
                    await writer


async def _handle(websocket: Any) -> None:
    await Connection(websocket, CONNECTION_MANAGER).run()


async def serve(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> Any:
    """Start the echo server and return it, already listening.

    Connections are tracked in :data:`CONNECTION_MANAGER`.
    """
    server = await websockets.serve(_handle, host, port)
    logger.info("server is opened, port is %d", port)
    return server


async def _run(host: str, port: int) -> None:
    server = await serve(host, port)
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
    try:
        await stop.wait()
    finally:
        server.close()
        await server.wait_closed()


def main(argv: list[str] | None = None) -> int:
    """Run the WebSocket echo server until interrupted."""
    parser = argparse.ArgumentParser(description="WebSocket echo server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        asyncio.run(_run(args.host, args.port))
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("Accept failed, exception is %s", exc)
        return 1
    return 0