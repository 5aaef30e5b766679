from __future__ import annotations

import copy
import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Iterator, Optional

import requests

from club_attendance.remote.base import (
    RemoteError,
    SnapshotCallback,
    Unsubscribe,
    apply_put,
    split_path,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
# The server sends keep-alive events every 30 seconds.
STREAM_READ_TIMEOUT_SECONDS = 90.0
STOP_JOIN_TIMEOUT_SECONDS = 1.5

SessionFactory = Callable[[], requests.Session]


def iter_server_sent_events(lines: Iterable[str | bytes]) -> Iterator[tuple[str, str]]:
    """Group raw ``text/event-stream`` lines into ``(event, data)`` pairs."""

    event = "message"
    data_lines: list[str] = []

    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r")

        if not line:
            if data_lines:
                yield event, "\n".join(data_lines)
            event = "message"
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)

    if data_lines:
        yield event, "\n".join(data_lines)


class FirebaseTransport:
    """Realtime Database client speaking the REST and streaming endpoints.

    Writes go through a single background worker so they land in the order
    they were issued; the caller never waits for them. Failed writes are
    logged and dropped.
    """

    def __init__(
        self,
        database_url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session_factory: SessionFactory = requests.Session,
    ) -> None:
        if not database_url:
            raise RemoteError("A database URL is required for the Firebase transport.")

        self._base_url = database_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._session_factory = session_factory
        self._session = session_factory()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="firebase-push")
        self._listeners: list[StreamListener] = []
        self._lock = threading.Lock()
        self._closed = False

    def url_for(self, path: str) -> str:
        segments = split_path(path)
        suffix = "/".join(segments)
        return f"{self._base_url}/{suffix}.json" if suffix else f"{self._base_url}/.json"

    @property
    def params(self) -> dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    def push(self, path: str, value: Any) -> Future:
        with self._lock:
            if self._closed:
                raise RemoteError("Transport is closed.")
            return self._executor.submit(self._put, path, copy.deepcopy(value))

    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        listener = StreamListener(
            url=self.url_for(path),
            params=self.params,
            callback=callback,
            session=self._session_factory(),
            connect_timeout=self._timeout,
        )
        with self._lock:
            if self._closed:
                raise RemoteError("Transport is closed.")
            self._listeners.append(listener)
        listener.start()

        def unsubscribe() -> None:
            listener.stop()
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            listeners = list(self._listeners)
            self._listeners.clear()

        for listener in listeners:
            listener.stop()
        self._executor.shutdown(wait=True)
        self._session.close()

    def _put(self, path: str, value: Any) -> bool:
        url = self.url_for(path)
        try:
            response = self._session.put(
                url,
                params=self.params,
                data=json.dumps(value, ensure_ascii=False).encode("utf-8"),
                headers={"Content-Type": "application/json; charset=utf-8"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Push to %s failed: %s", path or "/", exc)
            return False

        logger.debug("Pushed %s", path or "/")
        return True


class StreamListener:
    """Follow one streaming endpoint on a daemon thread and keep its full value."""

    def __init__(
        self,
        *,
        url: str,
        params: dict[str, str],
        callback: SnapshotCallback,
        session: requests.Session,
        connect_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._params = params
        self._callback = callback
        self._session = session
        self._connect_timeout = connect_timeout
        self._snapshot: Any = None
        self._response: Optional[requests.Response] = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def snapshot(self) -> Any:
        return copy.deepcopy(self._snapshot)

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="firebase-stream", daemon=True)
            self._running = True
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            response = self._response
            thread = self._thread

        if response is not None:
            response.close()

        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT_SECONDS)
        self._session.close()

    def handle_event(self, event: str, data: str) -> bool:
        """Apply one stream event; return False when the stream should end."""

        if event == "keep-alive":
            return True

        if event in {"cancel", "auth_revoked"}:
            logger.warning("Remote stream %s ended by server: %s %s", self._url, event, data)
            return False

        if event not in {"put", "patch"}:
            logger.debug("Ignoring stream event %s", event)
            return True

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed %s event on %s", event, self._url)
            return True

        segments = split_path(str(payload.get("path", "/")))
        value = payload.get("data")

        if event == "put":
            self._snapshot = apply_put(self._snapshot, segments, value)
        else:
            for key, child in (value or {}).items():
                self._snapshot = apply_put(self._snapshot, segments + split_path(key), child)

        if self._snapshot == {}:
            self._snapshot = None

        try:
            self._callback(copy.deepcopy(self._snapshot))
        except Exception:  # pragma: no cover - guard callback faults
            logger.exception("Snapshot callback failed for %s", self._url)
        return True

    def _run(self) -> None:
        try:
            with self._session.get(
                self._url,
                params=self._params,
                headers={"Accept": "text/event-stream"},
                stream=True,
                timeout=(self._connect_timeout, STREAM_READ_TIMEOUT_SECONDS),
            ) as response:
                response.raise_for_status()
                with self._lock:
                    self._response = response

                for event, data in iter_server_sent_events(response.iter_lines()):
                    if self._stop_event.is_set():
                        break
                    if not self.handle_event(event, data):
                        break
        except requests.RequestException as exc:
            if not self._stop_event.is_set():
                logger.warning("Remote stream %s unavailable: %s", self._url, exc)
        finally:
            with self._lock:
                self._response = None
                self._running = False
