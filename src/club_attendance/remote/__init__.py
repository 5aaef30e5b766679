from .base import ROOT_PATH, RemoteError, RemoteTransport, SnapshotCallback, Unsubscribe
from .firebase import FirebaseTransport
from .memory import InMemoryTransport

__all__ = [
    "ROOT_PATH",
    "RemoteError",
    "RemoteTransport",
    "SnapshotCallback",
    "Unsubscribe",
    "FirebaseTransport",
    "InMemoryTransport",
]
