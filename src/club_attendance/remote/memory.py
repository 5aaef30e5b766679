from __future__ import annotations

import copy
import logging
from typing import Any, List, Tuple

from club_attendance.remote.base import SnapshotCallback, Unsubscribe, apply_put, get_at_path, split_path

logger = logging.getLogger(__name__)


class InMemoryTransport:
    """Process-local document store with the same push/subscribe contract as the remote one.

    Delivery is synchronous: subscribers see every write before ``push``
    returns. Several stores can share one instance to act as separate clients
    of the same remote dataset.
    """

    def __init__(self, initial: Any = None) -> None:
        self._root: Any = copy.deepcopy(initial)
        self._subscribers: List[Tuple[List[str], SnapshotCallback]] = []
        self.pushes: List[Tuple[str, Any]] = []
        self.fail_pushes = False

    @property
    def root(self) -> Any:
        return copy.deepcopy(self._root)

    def value_at(self, path: str) -> Any:
        return copy.deepcopy(get_at_path(self._root, split_path(path)))

    def push(self, path: str, value: Any) -> None:
        if self.fail_pushes:
            logger.warning("Dropped push to %s: transport offline", path or "/")
            return

        self.pushes.append((path, copy.deepcopy(value)))
        self._root = apply_put(self._root, split_path(path), value)
        if self._root == {}:
            self._root = None
        self._notify()

    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        entry = (split_path(path), callback)
        self._subscribers.append(entry)
        callback(copy.deepcopy(get_at_path(self._root, entry[0])))

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def close(self) -> None:
        """Nothing to release; other clients sharing this instance stay subscribed."""

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self) -> None:
        for segments, callback in list(self._subscribers):
            callback(copy.deepcopy(get_at_path(self._root, segments)))
