"""Framed TCP messaging server, HTTP server and WebSocket echo server on asyncio."""

__version__ = "0.1.0"