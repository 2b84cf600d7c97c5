import http.client
import json
import threading
from http import HTTPStatus

import pytest

from framenet.http_server import (
    AppState,
    Response,
    build_response,
    serve,
)


def test_request_count_is_sequential():
    state = AppState()
    assert [state.next_request_count() for _ in range(3)] == [1, 2, 3]


def test_request_count_is_thread_safe():
    state = AppState()
    results = []
    lock = threading.Lock()

    def worker():
        values = [state.next_request_count() for _ in range(100)]
        with lock:
            results.extend(values)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert sorted(results) == list(range(1, 801))
    assert state.next_request_count() == 801


def test_get_count_body():
    state = AppState()
    response = build_response("GET", "/count", b"", state)
    assert response.status == HTTPStatus.OK
    assert response.server == "Beast"
    assert response.content_type == "text/html"
    assert response.text == (
        "<html>\n"
        "<head><title>Request count</title></head>\n"
        "<body>\n"
        "<h1>Request count</h1>\n"
        "<p>There have been 1 requests so far.</p>\n"
        "</body>\n"
        "</html>\n"
    )


def test_get_count_increments_between_requests():
    state = AppState()
    build_response("GET", "/count", b"", state)
    second = build_response("GET", "/count", b"", state)
    assert "<p>There have been 2 requests so far.</p>" in second.text


def test_get_time_uses_clock():
    state = AppState(clock=lambda: 1700000000.7)
    response = build_response("GET", "/time", b"", state)
    assert response.status == HTTPStatus.OK
    assert response.content_type == "text/html"
    assert "<p>The current time is 1700000000 seconds since the epoch</p>" in response.text
    assert "<h1>Current time</h1>" in response.text


@pytest.mark.parametrize("method", ["GET", "POST"])
def test_unknown_target_is_not_found(method):
    response = build_response(method, "/missing", b"", AppState())
    assert response.status == HTTPStatus.NOT_FOUND
    assert response.content_type == "text/plain"
    assert response.body == b"File not found\r\n"


def test_unknown_target_does_not_count():
    state = AppState()
    build_response("GET", "/missing", b"", state)
    assert state.next_request_count() == 1


def test_post_email_echoes_address():
    body = json.dumps({"email": "someone@example.com"}).encode()
    response = build_response("POST", "/email", body, AppState())
    assert response.status == HTTPStatus.OK
    assert response.content_type == "text/json"
    assert json.loads(response.body) == {
        "error": 0,
        "email": "someone@example.com",
        "msg": "receive email post success",
    }


def test_post_email_invalid_json_reports_error_first():
    response = build_response("POST", "/email", b"not json", AppState())
    text = response.text
    first_end = text.index("}\n") + 2
    assert json.loads(text[:first_end]) == {"error": 1001}
    assert json.loads(text[first_end:]) == {
        "error": 0,
        "email": None,
        "msg": "receive email post success",
    }


def test_post_email_without_email_field():
    response = build_response("POST", "/email", b'{"name": "x"}', AppState())
    assert json.loads(response.body)["email"] is None


def test_invalid_method_is_bad_request():
    response = build_response("PUT", "/count", b"", AppState())
    assert response.status == HTTPStatus.BAD_REQUEST
    assert response.server is None
    assert response.content_type == "text/plain"
    assert response.text == "Invalid request method 'PUT'"


def test_response_text_decodes_body():
    response = Response(HTTPStatus.OK, "text/plain", "héllo".encode("utf-8"))
    assert response.text == "héllo"


def _request(port, method, target, body=None, headers=None):
    conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
    try:
        conn.request(method, target, body=body, headers=headers or {})
        response = conn.getresponse()
        return response.status, dict(response.getheaders()), response.read()
    finally:
        conn.close()


@pytest.fixture
def http_port():
    server = serve("127.0.0.1", 0)
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()


def test_served_count(http_port):
    status, headers, body = _request(http_port, "GET", "/count")
    assert status == 200
    assert headers["Server"] == "Beast"
    assert headers["Content-Type"] == "text/html"
    assert int(headers["Content-Length"]) == len(body)
    assert b"There have been 1 requests so far." in body
    _, _, body2 = _request(http_port, "GET", "/count")
    assert b"There have been 2 requests so far." in body2


def test_served_email(http_port):
    payload = json.dumps({"email": "someone@example.com"})
    status, headers, body = _request(
        http_port, "POST", "/email", body=payload, headers={"Content-Type": "application/json"}
    )
    assert status == 200
    assert headers["Content-Type"] == "text/json"
    assert json.loads(body)["email"] == "someone@example.com"


def test_served_bad_method(http_port):
    status, _, body = _request(http_port, "DELETE", "/count")
    assert status == 400
    assert body == b"Invalid request method 'DELETE'"


def test_served_not_found(http_port):
    status, _, body = _request(http_port, "GET", "/nothing")
    assert status == 404
    assert body == b"File not found\r\n"