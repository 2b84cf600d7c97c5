"""A small HTTP server with request-count, time and e-mail endpoints.

``GET /count`` reports how many count requests have been served, ``GET /time``
reports the current Unix time, and ``POST /email`` echoes the ``email`` field
of a JSON body. Any other target is answered with 404. Any other method is
answered with 400. Every connection is closed after one response.
"""

from __future__ import annotations

import argparse
import json
import logging
import threading
import time
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable

logger = logging.getLogger(__name__)

SERVER_NAME = "Beast"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
READ_TIMEOUT = 60
EMAIL_PARSE_ERROR = 1001
EMAIL_SUCCESS_MSG = "receive email post success"
NOT_FOUND_BODY = "File not found\r\n"


class AppState:
    """Shared server state: the request counter and the clock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._count = 0
        self._lock = threading.Lock()

    def next_request_count(self) -> int:
        """Increment the request counter and return its new value."""
        with self._lock:
            self._count += 1
            return self._count

    def now(self) -> int:
        """Whole seconds since the epoch."""
        return int(self._clock())


@dataclass(frozen=True)
class Response:
    """An HTTP response ready to be written."""

    status: HTTPStatus
    content_type: str
    body: bytes
    server: str | None = None

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8")


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


def _not_found() -> Response:
    return Response(HTTPStatus.NOT_FOUND, "text/plain", NOT_FOUND_BODY.encode("utf-8"), SERVER_NAME)


def _get_response(target: str, state: AppState) -> Response:
    if target == "/count":
        body = (
            "<html>\n"
            "<head><title>Request count</title></head>\n"
            "<body>\n"
            "<h1>Request count</h1>\n"
            f"<p>There have been {state.next_request_count()} requests so far.</p>\n"
            "</body>\n"
            "</html>\n"
        )
    elif target == "/time":
        body = (
            "<html>\n"
            "<head><title>Request time</title></head>\n"
            "<body>\n"
            "<h1>Current time</h1>\n"
            f"<p>The current time is {state.now()} seconds since the epoch</p>\n"
            "</body>\n"
            "</html>\n"
        )
    else:
        return _not_found()
    return Response(HTTPStatus.OK, "text/html", body.encode("utf-8"), SERVER_NAME)


def _post_response(target: str, body: bytes) -> Response:
    if target != "/email":
        return _not_found()
    text = body.decode("utf-8", errors="replace")
    logger.info("receive body is %s", text)
    parts: list[str] = []
    try:
        source = json.loads(text)
    except ValueError:
        logger.warning("failed to parse Json data")
        parts.append(_styled_json({"error": EMAIL_PARSE_ERROR}))
        source = None
    email = source.get("email") if isinstance(source, dict) else None
    parts.append(_styled_json({"error": 0, "email": email, "msg": EMAIL_SUCCESS_MSG}))
    return Response(HTTPStatus.OK, "text/json", "".join(parts).encode("utf-8"), SERVER_NAME)


def build_response(method: str, target: str, body: bytes, state: AppState) -> Response:
    """Build the response to one request."""
    if method == "GET":
        return _get_response(target, state)
    if method == "POST":
        return _post_response(target, body)
    message = f"Invalid request method '{method}'"
    return Response(HTTPStatus.BAD_REQUEST, "text/plain", message.encode("utf-8"))


class RequestHandler(BaseHTTPRequestHandler):
    """Answers one request per connection using :func:`build_response`."""

    protocol_version = "HTTP/1.1"
    timeout = READ_TIMEOUT

    def _handle(self) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            self.send_error(HTTPStatus.BAD_REQUEST, "invalid Content-Length")
            return
        body = self.rfile.read(length) if length > 0 else b""
        response = build_response(self.command, self.path, body, self.server.state)
        self.close_connection = True
        self.send_response_only(response.status)
        if response.server is not None:
            self.send_header("Server", response.server)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(response.body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(response.body)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle
    do_HEAD = _handle
    do_PATCH = _handle
    do_OPTIONS = _handle
    do_TRACE = _handle
    do_CONNECT = _handle

    def log_message(self, format: str, *args: object) -> None:
        logger.info("%s - %s", self.address_string(), format % args)


class _HTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], state: AppState):
        super().__init__(address, RequestHandler)
        self.state = state


def serve(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    """Start the HTTP server accepting in the background and return it.

    Call ``shutdown()`` and ``server_close()`` on the result to stop it.
    """
    server = _HTTPServer((host, port), AppState())
    threading.Thread(target=server.serve_forever, name="http-acceptor", daemon=True).start()
    logger.info("http server listening on %s:%d", *server.server_address[:2])
    return server


def main(argv: list[str] | None = None) -> int:
    """Run the HTTP server until interrupted."""
    parser = argparse.ArgumentParser(description="Small HTTP server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        server = serve(args.host, args.port)
    except OSError as exc:
        logger.error("exception is %s", exc)
        return 1
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
        server.server_close()
    return 0