"""Endpoint helpers and blocking read/write loops for TCP sockets."""

from __future__ import annotations

import ipaddress
import socket

_ANY_V6 = ipaddress.IPv6Address("::")


def parse_address(raw: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Parse an IPv4 or IPv6 address, raising ValueError when it is invalid."""
    try:
        return ipaddress.ip_address(raw)
    except ValueError as exc:
        raise ValueError(f"failed to parse the IP address {raw!r}") from exc


def _check_port(port: int) -> int:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port} is out of range")
    return port


def client_endpoint(raw: str, port: int) -> tuple[str, int]:
    """Return the ``(address, port)`` pair a client connects to."""
    return str(parse_address(raw)), _check_port(port)


def server_endpoint(port: int) -> tuple[str, int]:
    """Return the ``(address, port)`` pair for listening on every IPv6 address."""
    return str(_ANY_V6), _check_port(port)


def connect_to(host: str, port: int) -> socket.socket:
    """Open a TCP connection; raises OSError when it cannot be made."""
    return socket.create_connection((host, _check_port(port)))


def write_all(sock: socket.socket, data: bytes | str) -> int:
    """Write all of ``data`` with repeated sends and return the bytes written."""
    view = memoryview(data.encode("utf-8") if isinstance(data, str) else bytes(data))
    total = 0
    while total < len(view):
        total += sock.send(view[total:])
    return total


def read_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes; raises ConnectionError if the peer closes first."""
    if size < 0:
        raise ValueError("size must not be negative")
    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ConnectionError(f"connection closed after {len(buf)} of {size} bytes")
        buf += chunk
    return bytes(buf)