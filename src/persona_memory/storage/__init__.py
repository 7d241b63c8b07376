"""Storage backends for persona memory snapshots."""

from .base import InMemorySnapshotStore, Payload, SnapshotStore
from .redis import RedisSnapshotStore

__all__ = [
    "InMemorySnapshotStore",
    "Payload",
    "RedisSnapshotStore",
    "SnapshotStore",
]
