"""Key-value backends for vault buckets."""

from .base import KVBackend, KVBucket
from .memory import MemoryBackend, MemoryBucket
from .nats import NatsBackend, NatsBucket

__all__ = [
    "KVBackend",
    "KVBucket",
    "MemoryBackend",
    "MemoryBucket",
    "NatsBackend",
    "NatsBucket",
]
