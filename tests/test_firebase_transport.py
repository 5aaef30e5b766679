from __future__ import annotations

import io
import json
import threading

import pytest
import requests

from club_attendance.remote import FirebaseTransport, RemoteError
from club_attendance.remote.firebase import StreamListener, iter_server_sent_events


class StubResponse:
    def __init__(self, lines=()):
        self._lines = list(lines)
        self.closed = False

    def raise_for_status(self):
        return None

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class StubSession:
    def __init__(self, lines=(), fail=False):
        self.lines = lines
        self.fail = fail
        self.puts = []
        self.gets = []
        self.closed = False

    def put(self, url, **kwargs):
        if self.fail:
            raise requests.ConnectionError("offline")
        self.puts.append((url, kwargs))
        return StubResponse()

    def get(self, url, **kwargs):
        self.gets.append((url, kwargs))
        return StubResponse(self.lines)

    def close(self):
        self.closed = True


def _event(name, path, data):
    return [f"event: {name}", "data: " + json.dumps({"path": path, "data": data}, ensure_ascii=False), ""]


def test_iter_server_sent_events_groups_lines():
    lines = [
        ": comment",
        "event: put",
        'data: {"path": "/", "data": 1}',
        "",
        "event: keep-alive",
        "data: null",
        "",
        b"event: patch",
        b'data: {"path": "/a", "data": {}}',
    ]

    assert list(iter_server_sent_events(lines)) == [
        ("put", '{"path": "/", "data": 1}'),
        ("keep-alive", "null"),
        ("patch", '{"path": "/a", "data": {}}'),
    ]


def test_stream_listener_tracks_full_snapshot():
    received = []
    listener = StreamListener(url="https://club.example/.json", params={}, callback=received.append, session=StubSession())

    assert listener.handle_event("put", json.dumps({"path": "/", "data": {"members": [{"id": "A"}]}}))
    assert listener.handle_event("put", json.dumps({"path": "/clubLink", "data": "https://x"}))
    assert listener.handle_event("patch", json.dumps({"path": "/attendance", "data": {"2024-05-01/A": [1, 0, 0, 0]}}))
    assert listener.handle_event("keep-alive", "null")
    assert listener.handle_event("put", "not json")

    assert received[-1] == {
        "members": [{"id": "A"}],
        "clubLink": "https://x",
        "attendance": {"2024-05-01": {"A": [1, 0, 0, 0]}},
    }
    assert len(received) == 3

    received[-1]["members"].clear()
    assert listener.snapshot["members"] == [{"id": "A"}]

    assert listener.handle_event("cancel", "null") is False
    assert listener.handle_event("auth_revoked", "null") is False


def test_stream_listener_null_root_is_empty():
    received = []
    listener = StreamListener(url="https://club.example/.json", params={}, callback=received.append, session=StubSession())

    listener.handle_event("put", json.dumps({"path": "/", "data": None}))

    assert received == [None]


def test_push_puts_json_in_background():
    session = StubSession()
    transport = FirebaseTransport("https://club.example/", auth_token="secret", session_factory=lambda: session)

    future = transport.push("attendance", {"2024-05-01": {"A": [1, 0, 0, 0]}})

    assert future.result(timeout=5) is True
    url, kwargs = session.puts[0]
    assert url == "https://club.example/attendance.json"
    assert kwargs["params"] == {"auth": "secret"}
    assert json.loads(kwargs["data"].decode("utf-8")) == {"2024-05-01": {"A": [1, 0, 0, 0]}}
    assert transport.url_for("/") == "https://club.example/.json"
    transport.close()


def test_failed_push_is_dropped():
    transport = FirebaseTransport("https://club.example", session_factory=lambda: StubSession(fail=True))

    assert transport.push("members", []).result(timeout=5) is False

    transport.close()
    with pytest.raises(RemoteError):
        transport.push("members", [])


def test_subscribe_streams_snapshots():
    lines = _event("put", "/", {"members": [{"id": "A", "name": "김철수"}]}) + _event("put", "/clubLink", "x")
    session = StubSession(lines=lines)
    transport = FirebaseTransport("https://club.example", session_factory=lambda: session)
    received = []
    done = threading.Event()

    def on_snapshot(snapshot):
        received.append(snapshot)
        if len(received) == 2:
            done.set()

    unsubscribe = transport.subscribe("/", on_snapshot)
    assert done.wait(timeout=5)
    unsubscribe()
    transport.close()

    assert received[-1] == {"members": [{"id": "A", "name": "김철수"}], "clubLink": "x"}
    url, kwargs = session.gets[0]
    assert url == "https://club.example/.json"
    assert kwargs["headers"] == {"Accept": "text/event-stream"}
    assert kwargs["stream"] is True


def test_transport_requires_url():
    with pytest.raises(RemoteError):
        FirebaseTransport("")


class RawStreamSession(StubSession):
    def __init__(self, body: bytes):
        super().__init__()
        self.body = body

    def get(self, url, **kwargs):
        self.gets.append((url, kwargs))
        response = requests.Response()
        response.status_code = 200
        response.headers["Content-Type"] = "text/event-stream"
        response.raw = io.BytesIO(self.body)
        return response


def test_stream_without_charset_is_read_as_utf8():
    body = "\n".join(_event("put", "/", {"clubLink": "김철수"})).encode("utf-8") + b"\n"
    transport = FirebaseTransport("https://club.example", session_factory=lambda: RawStreamSession(body))
    received = []
    done = threading.Event()

    def on_snapshot(snapshot):
        received.append(snapshot)
        done.set()

    unsubscribe = transport.subscribe("/", on_snapshot)
    assert done.wait(timeout=5)
    unsubscribe()
    transport.close()

    assert received == [{"clubLink": "김철수"}]
