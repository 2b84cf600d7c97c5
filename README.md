# framenet

A small collection of TCP networking pieces built on `asyncio`: a framed
message protocol, a message server that dispatches messages to handlers
by id, a minimal HTTP server, a WebSocket echo server and a few helpers
for blocking sockets.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## The message protocol

Every message on the wire is a 4-byte header followed by a body:

| bytes | meaning                               |
|-------|---------------------------------------|
| 0–1   | message id, big-endian unsigned short |
| 2–3   | body length, big-endian unsigned short|
| 4–    | body                                  |

`framenet.protocol` holds the pieces for working with it:

- `encode_message(msg_id, data)` builds a complete frame.
- `decode_header(header)` returns `(msg_id, body_length)` from a 4-byte
  header and raises `ProtocolError` when the length exceeds `MAX_LENGTH`
  (2048 bytes).
- `FrameDecoder.feed(data)` takes bytes as they arrive, in any chunk
  sizes, and returns each complete `Message`. By default a body longer
  than `MAX_LENGTH`, or a message id above 2048, raises `ProtocolError`;
  after that the decoder keeps raising.
- `encode_length_prefixed(data)` and `LengthPrefixDecoder` handle the
  simpler variant whose header is only the 2-byte body length.

```python
from framenet.protocol import FrameDecoder, encode_message

frame = encode_message(1001, b'{"id": 1001, "data": "hello"}')
decoder = FrameDecoder()
for message in decoder.feed(frame[:3]) + decoder.feed(frame[3:]):
    print(message.msg_id, message.data)
```

## Message server

`framenet.server.Server` accepts connections and gives each one a
`Session`, kept by uuid until it closes. Sessions read frames and post
them to a `framenet.logic.LogicSystem`, which calls the callback
registered for the message id on a single worker thread, in arrival
order. Messages with no callback are dropped. A frame that announces a
body longer than `MAX_LENGTH` ends the session.

The default logic system answers message id 1001: the body is JSON with
`id` and `data` fields, and the reply (built by `hello_world_reply`) is
the same object as indented JSON, sent under the request's `id`, with
`data` prefixed by `"server has received, msg data is "`. Add handlers
with `LogicSystem.register(msg_id, callback)`; a callback is called as
`callback(session, msg_id, data)` and may answer with
`session.send(data, msg_id)`.

Outgoing frames of a session go through a bounded
`framenet.sendqueue.SendQueue` and are written one at a time, in order;
when the queue is full `Session.send` returns `False` instead of queuing.

Start the server (listens on `0.0.0.0:10086` unless `--host`/`--port`
say otherwise; SIGINT or SIGTERM stops it):

```
framenet-server
```

## HTTP server

`framenet.http_server` answers:

- `GET /count` — an HTML page with the number of count requests so far,
- `GET /time` — an HTML page with the current time in seconds since the epoch,
- `POST /email` — takes a JSON body with an `email` field and replies with
  `text/json` holding `error`, `email` and `msg`,
- any other target — `404 File not found`; methods other than GET and
  POST get `400`.

Every connection is closed after one response. Responses are built by
`build_response(method, target, body, state)`, so they can be produced
without a socket. `serve(host, port)` starts the server in the
background and returns it. From the command line (default
`127.0.0.1:8080`, `--host`/`--port` to change):

```
framenet-http
```

## WebSocket echo server

`framenet.websocket_server` accepts WebSocket connections, registers each
`Connection` with a `ConnectionManager` and sends every message it
receives back to the sender with the same text or binary type, in order.
Connections are removed from the manager when they close or a send
fails. Default address `0.0.0.0:10086`:

```
framenet-websocket
```

## Other pieces

- `framenet.iopool.IOServicePool` runs a number of event loops, each on
  its own thread, and hands them out round-robin with `get_loop()`.
- `framenet.sendqueue.MessageBuffer` collects received bytes until a
  fixed total has arrived.
- `framenet.endpoints` has helpers for addresses and blocking sockets:
  `parse_address`, `client_endpoint`, `server_endpoint`, `connect_to`,
  `write_all` and `read_exact`.

## What is not included

The package has no command-line client and no stand-alone plain TCP echo
server. To talk to the message server from a script, combine the
protocol and endpoint helpers:

```python
import json

from framenet.endpoints import connect_to, read_exact, write_all
from framenet.protocol import HEAD_TOTAL_LEN, decode_header, encode_message

sock = connect_to("127.0.0.1", 10086)
write_all(sock, encode_message(1001, json.dumps({"id": 1001, "data": "hello world!"})))
msg_id, length = decode_header(read_exact(sock, HEAD_TOTAL_LEN))
print(msg_id, read_exact(sock, length).decode("utf-8"))
sock.close()
```