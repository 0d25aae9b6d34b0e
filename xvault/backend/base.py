"""
Key-value backend interface.

A backend stores buckets. Each bucket carries flat ``str -> str`` metadata
and a set of keys holding bytes. Every write to a key returns a revision
number that increases monotonically for that key.

Implementations translate their library errors into
:class:`~xvault.exceptions.BucketNotFound`,
:class:`~xvault.exceptions.BucketExists`,
:class:`~xvault.exceptions.KeyNotFound` and
:class:`~xvault.exceptions.BackendUnavailable`. Nothing else may escape.
Task cancellation is never caught.
"""
from abc import ABC, abstractmethod


class KVBucket(ABC):
    """Handle on a single bucket, valid for the duration of a request."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def status(self) -> dict[str, str]:
        """Return the bucket metadata.

        Raises:
            BucketNotFound: If the bucket was removed.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the current value of ``key``.

        Raises:
            KeyNotFound: If the key is absent or deleted.
        """

    @abstractmethod
    async def put(self, key: str, value: bytes) -> int:
        """Store ``value`` under ``key`` and return the new revision."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``.

        Raises:
            KeyNotFound: If the key is already absent.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class KVBackend(ABC):
    """Bucket-level operations on the key-value store."""

    @abstractmethod
    async def bucket_exists(self, name: str) -> bool:
        """True if the bucket exists. Transport errors raise."""

    @abstractmethod
    async def create_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        """Create a bucket with ``metadata``.

        Raises:
            BucketExists: If the bucket already exists.
        """

    @abstractmethod
    async def update_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        """Replace the metadata of an existing bucket.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """

    @abstractmethod
    async def delete_bucket(self, name: str) -> bool:
        """Delete a bucket and all of its keys.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """

    @abstractmethod
    async def get_bucket(self, name: str) -> KVBucket:
        """Open a handle on an existing bucket.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
