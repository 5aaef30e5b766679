from __future__ import annotations

import copy
from typing import Any, Callable, List, Protocol

SnapshotCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]

ROOT_PATH = "/"


class RemoteError(RuntimeError):
    """Raised when the remote store rejects a request or cannot be reached."""


class RemoteTransport(Protocol):
    """Key-value document store reachable by path.

    ``push`` replaces the subtree at ``path`` and returns without waiting for
    the remote store. ``subscribe`` calls ``callback`` with the full value at
    ``path`` once on registration and again after every change, until the
    returned function is called.
    """

    def push(self, path: str, value: Any) -> Any: ...

    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe: ...

    def close(self) -> None: ...


def split_path(path: str) -> List[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def get_at_path(root: Any, segments: List[str]) -> Any:
    node = root
    for segment in segments:
        if isinstance(node, dict):
            node = node.get(segment)
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            return None
    return node


def apply_put(node: Any, segments: List[str], value: Any) -> Any:
    """Return a copy of ``node`` with the subtree at ``segments`` replaced.

    Mirrors how the document store treats writes: ``None`` deletes, and
    containers left empty disappear. Only the nodes along the path are copied.
    """

    if not segments:
        return copy.deepcopy(value)

    head, rest = segments[0], segments[1:]

    if isinstance(node, list) and head.isdigit() and int(head) <= len(node):
        index = int(head)
        items = list(node)
        child = items[index] if index < len(items) else None
        updated = apply_put(child, rest, value)
        if index == len(items):
            if not _is_empty(updated):
                items.append(updated)
        else:
            items[index] = None if _is_empty(updated) else updated
        while items and items[-1] is None:
            items.pop()
        return items

    if isinstance(node, list):
        mapping = {str(i): item for i, item in enumerate(node) if item is not None}
    elif isinstance(node, dict):
        mapping = dict(node)
    else:
        mapping = {}

    updated = apply_put(mapping.get(head), rest, value)
    if _is_empty(updated):
        mapping.pop(head, None)
    else:
        mapping[head] = updated
    return mapping


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list)) and not value)
