"""Asynchronous TCP server for id/length framed messages.

Each accepted connection becomes a :class:`Session`. A session reads one
frame at a time (a 4-byte header, then the body). It posts every frame to a
:class:`~framenet.logic.LogicSystem`, whose callbacks answer through
:meth:`Session.send`. A frame that announces a body longer than
:data:`~framenet.protocol.MAX_LENGTH` ends the session.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import threading
import uuid as uuidlib

from .logic import LogicSystem, get_logic_system
from .protocol import (
    HEAD_TOTAL_LEN,
    MAX_SENDQUE,
    Message,
    ProtocolError,
    decode_header,
    encode_message,
)
from .sendqueue import QueueFullError, SendQueue

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 10086


class Session:
    """One client connection: reads frames and writes replies in order."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, server: Server):
        self.uuid = str(uuidlib.uuid4())
        self._reader = reader
        self._writer = writer
        self._server = server
        self._loop = asyncio.get_running_loop()
        self._send_queue = SendQueue(MAX_SENDQUE)
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once the session has been closed."""
        return self._closed

    def send(self, data: bytes | str, msg_id: int) -> bool:
        """Queue ``data`` as a frame under ``msg_id``; safe to call from any thread.

        Returns False when the session is closed or its send queue is full.
        """
        frame = encode_message(msg_id, data)
        if self._closed:
            return False
        try:
            start_writing = self._send_queue.enqueue(frame)
        except QueueFullError:
            logger.warning(
                "session %s send queue is full, size is %d", self.uuid, MAX_SENDQUE
            )
            return False
        if start_writing:
            try:
                self._loop.call_soon_threadsafe(self._spawn_writer)
            except RuntimeError:
                return False
        return True

    def _spawn_writer(self) -> None:
        if not self._closed:
            self._loop.create_task(self._write_pending())

    async def _write_pending(self) -> None:
        frame = self._send_queue.head
        try:
            while frame is not None and not self._closed:
                self._writer.write(frame)
                await self._writer.drain()
                frame = self._send_queue.complete()
        except (ConnectionError, OSError) as exc:
            logger.info("handle write failed on session %s: %s", self.uuid, exc)
            self._server.clear_session(self.uuid)
            self.close()

    def close(self) -> None:
        """Close the connection; calling it again does nothing."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()

    async def run(self) -> None:
        """Read frames until the peer leaves or sends an invalid one."""
        try:
            while not self._closed:
                try:
                    header = await self._reader.readexactly(HEAD_TOTAL_LEN)
                except asyncio.IncompleteReadError:
                    logger.info("receive peer is closed")
                    break
                try:
                    msg_id, length = decode_header(header)
                except ProtocolError as exc:
                    logger.warning("session %s: %s", self.uuid, exc)
                    break
                logger.debug("msg id is %d, data len is %d", msg_id, length)
                try:
                    body = await self._reader.readexactly(length)
                except asyncio.IncompleteReadError:
                    logger.info("receive peer is closed")
                    break
                self._server.logic.post(self, Message(msg_id, body))
        except (ConnectionError, OSError) as exc:
            logger.info("read error on session %s: %s", self.uuid, exc)
        except RuntimeError as exc:
            logger.warning("session %s stopped: %s", self.uuid, exc)
        finally:
            self._server.clear_session(self.uuid)
            self.close()


class Server:
    """Accepts connections and keeps a session for each one by uuid."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, logic: LogicSystem | None = None):
        self.host = host
        self.requested_port = port
        self.logic = logic if logic is not None else get_logic_system()
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._server: asyncio.base_events.Server | None = None

    @property
    def port(self) -> int:
        """The port actually listened on."""
        if self._server is None or not self._server.sockets:
            return self.requested_port
        return self._server.sockets[0].getsockname()[1]

    @property
    def sessions(self) -> dict[str, Session]:
        """A snapshot of the live sessions keyed by uuid."""
        with self._lock:
            return dict(self._sessions)

    async def start(self) -> None:
        """Start listening."""
        if self._server is not None:
            raise RuntimeError("server is already started")
        self._server = await asyncio.start_server(
            self._handle_accept, self.host, self.requested_port
        )
        logger.info("Server start success ,on port : %d", self.port)

    async def _handle_accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        session = Session(reader, writer, self)
        with self._lock:
            self._sessions[session.uuid] = session
        await session.run()

    def clear_session(self, uuid: str) -> None:
        """Forget the session with ``uuid``, if it is still known."""
        with self._lock:
            self._sessions.pop(uuid, None)

    async def serve_forever(self) -> None:
        """Start listening if needed and accept connections until cancelled."""
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def close(self) -> None:
        """Stop listening and close every session."""
        server = self._server
        if server is not None:
            server.close()
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        if server is not None:
            await server.wait_closed()

    async def __aenter__(self) -> Server:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def _serve(host: str, port: int) -> None:
    logic = get_logic_system()
    server = Server(host, port, logic)
    await server.start()
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
        await server.close()
        logic.stop()


def main(argv: list[str] | None = None) -> int:
    """Run the framed-message server until interrupted."""
    parser = argparse.ArgumentParser(description="Framed TCP message server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        asyncio.run(_serve(args.host, args.port))
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("error is %s", exc)
        return 1
    return 0