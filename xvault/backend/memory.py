"""
In-process key-value backend.

Keeps buckets in a dict. Used by tests and for running the vault without a
NATS server. Safe for concurrent use from a single event loop since no
operation awaits between reading and writing its state.
"""
import logging
from typing import Optional

from ..exceptions import BucketExists, BucketNotFound, KeyNotFound
from .base import KVBackend, KVBucket

logger = logging.getLogger("xvault")


class _BucketState:
    __slots__ = ("metadata", "values", "revisions")

    def __init__(self, metadata: dict[str, str]):
        self.metadata = dict(metadata)
        self.values: dict[str, bytes] = {}
        self.revisions: dict[str, int] = {}


class MemoryBucket(KVBucket):
    """Handle on a bucket held by :class:`MemoryBackend`."""

    def __init__(self, backend: "MemoryBackend", name: str):
        super().__init__(name)
        self._backend = backend

    def _state(self) -> _BucketState:
        return self._backend._require(self.name)

    async def status(self) -> dict[str, str]:
        return dict(self._state().metadata)

    async def get(self, key: str) -> bytes:
        state = self._state()
        try:
            return state.values[key]
        except KeyError:
            raise KeyNotFound(f"Key {key!r} not found in bucket {self.name}") from None

    async def put(self, key: str, value: bytes) -> int:
        state = self._state()
        revision = state.revisions.get(key, 0) + 1
        state.values[key] = bytes(value)
        state.revisions[key] = revision
        return revision

    async def delete(self, key: str) -> None:
        state = self._state()
        if key not in state.values:
            raise KeyNotFound(f"Key {key!r} not found in bucket {self.name}")
        del state.values[key]

    async def revision(self, key: str) -> Optional[int]:
        """Last revision written for ``key``, including deleted keys."""
        return self._state().revisions.get(key)


class MemoryBackend(KVBackend):
    """Dictionary-backed :class:`KVBackend`."""

    def __init__(self):
        self._buckets: dict[str, _BucketState] = {}

    def _require(self, name: str) -> _BucketState:
        try:
            return self._buckets[name]
        except KeyError:
            raise BucketNotFound(f"Bucket {name} not found") from None

    async def bucket_exists(self, name: str) -> bool:
        return name in self._buckets

    async def create_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        if name in self._buckets:
            raise BucketExists(f"Bucket {name} already exists")
        self._buckets[name] = _BucketState(metadata)
        logger.debug("Memory backend: created bucket %s", name)
        return MemoryBucket(self, name)

    async def update_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        self._require(name).metadata = dict(metadata)
        return MemoryBucket(self, name)

    async def delete_bucket(self, name: str) -> bool:
        self._require(name)
        del self._buckets[name]
        logger.debug("Memory backend: deleted bucket %s", name)
        return True

    async def get_bucket(self, name: str) -> KVBucket:
        self._require(name)
        return MemoryBucket(self, name)

    def bucket_names(self) -> list[str]:
        return sorted(self._buckets)
