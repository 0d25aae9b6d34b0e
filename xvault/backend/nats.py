"""
NATS JetStream key-value backend.

Each vault bucket is a JetStream KV bucket. Its metadata is stored in the
``metadata`` of the underlying ``KV_<bucket>`` stream. The stream is created
together with its metadata in a single request, so a bucket never exists
without its record.

Revisions are JetStream stream sequences: they increase monotonically for
every key of a bucket, and therefore per key as well.
"""
import dataclasses
import logging
from contextlib import contextmanager
from typing import Optional

import nats
from nats import errors as nats_errors
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext
from nats.js import errors as js_errors
from nats.js.api import DiscardPolicy, StreamConfig
from nats.js.kv import KeyValue

from ..exceptions import (
    BackendUnavailable,
    BucketExists,
    BucketNotFound,
    KeyNotFound,
)
from .base import KVBackend, KVBucket

logger = logging.getLogger("xvault")

KV_STREAM_PREFIX = "KV_"
KV_SUBJECT_TEMPLATE = "$KV.{bucket}.>"
STREAM_NAME_IN_USE = 10058  # JetStream API error code


@contextmanager
def _backend_errors(bucket: str, key: Optional[str] = None):
    """Translate nats-py errors into vault backend errors."""
    try:
        yield
    except (js_errors.KeyNotFoundError, js_errors.KeyDeletedError) as err:
        raise KeyNotFound(f"Key {key!r} not found in bucket {bucket}") from err
    except (js_errors.BucketNotFoundError, js_errors.NotFoundError) as err:
        raise BucketNotFound(f"Bucket {bucket} not found") from err
    except (nats_errors.Error, OSError) as err:
        logger.error("NATS backend failure on bucket %s: %s", bucket, err)
        raise BackendUnavailable(f"NATS backend failure on bucket {bucket}: {err}") from err


class NatsBucket(KVBucket):
    """Handle on a JetStream KV bucket."""

    def __init__(self, js: JetStreamContext, kv: KeyValue, name: str):
        super().__init__(name)
        self._js = js
        self._kv = kv

    async def status(self) -> dict[str, str]:
        with _backend_errors(self.name):
            info = await self._js.stream_info(f"{KV_STREAM_PREFIX}{self.name}")
        return dict(info.config.metadata or {})

    async def get(self, key: str) -> bytes:
        with _backend_errors(self.name, key):
            entry = await self._kv.get(key)
        if entry.value is None:
            raise KeyNotFound(f"Key {key!r} not found in bucket {self.name}")
        return entry.value

    async def put(self, key: str, value: bytes) -> int:
        with _backend_errors(self.name, key):
            return await self._kv.put(key, value)

    async def delete(self, key: str) -> None:
        # JetStream writes a tombstone even for absent keys, so check first.
        with _backend_errors(self.name, key):
            await self._kv.get(key)
            await self._kv.delete(key)


class NatsBackend(KVBackend):
    """:class:`KVBackend` over a shared NATS connection.

    The connection is long-lived and safe for concurrent use by any number
    of in-flight requests.
    """

    def __init__(
        self,
        servers: str = "nats://localhost:4222",
        user: Optional[str] = None,
        password: Optional[str] = None,
        history: int = 1,
    ):
        self._servers = servers
        self._user = user
        self._password = password
        self._history = history
        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None

    @classmethod
    def from_settings(cls, settings) -> "NatsBackend":
        """Build an unconnected backend from :class:`~xvault.config.VaultSettings`."""
        return cls(
            servers=settings.nats_url,
            user=settings.nats_user,
            password=settings.nats_password,
            history=settings.kv_history,
        )

    @classmethod
    def from_client(cls, nc: NATS) -> "NatsBackend":
        """Wrap an already connected client."""
        backend = cls()
        backend._nc = nc
        backend._js = nc.jetstream()
        return backend

    async def connect(self) -> "NatsBackend":
        if self._nc is not None and self._nc.is_connected:
            return self
        try:
            self._nc = await nats.connect(
                servers=self._servers, user=self._user, password=self._password,
            )
        except (nats_errors.Error, OSError) as err:
            raise BackendUnavailable(f"Cannot connect to NATS at {self._servers}: {err}") from err
        self._js = self._nc.jetstream()
        logger.info("Connected to NATS at %s", self._servers)
        return self

    async def close(self) -> None:
        if self._nc is not None:
            await self._nc.close()
            self._nc = None
            self._js = None
            logger.info("NATS connection closed")

    async def __aenter__(self) -> "NatsBackend":
        return await self.connect()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def js(self) -> JetStreamContext:
        if self._js is None:
            raise BackendUnavailable("NATS backend is not connected")
        return self._js

    async def _set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        stream = f"{KV_STREAM_PREFIX}{name}"
        info = await self.js.stream_info(stream)
        config = dataclasses.replace(info.config, metadata=dict(metadata))
        await self.js.update_stream(config=config)

    async def bucket_exists(self, name: str) -> bool:
        try:
            await self.get_bucket(name)
        except BucketNotFound:
            return False
        return True

    def _kv_stream_config(self, name: str, metadata: dict[str, str]) -> StreamConfig:
        """Stream layout of a JetStream KV bucket, metadata included."""
        return StreamConfig(
            name=f"{KV_STREAM_PREFIX}{name}",
            subjects=[KV_SUBJECT_TEMPLATE.format(bucket=name)],
            allow_direct=True,
            allow_rollup_hdrs=True,
            deny_delete=True,
            discard=DiscardPolicy.NEW,
            max_consumers=-1,
            max_msgs=-1,
            max_msgs_per_subject=self._history,
            metadata=dict(metadata),
        )

    async def create_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        if await self.bucket_exists(name):
            raise BucketExists(f"Bucket {name} already exists")
        with _backend_errors(name):
            try:
                await self.js.add_stream(config=self._kv_stream_config(name, metadata))
            except js_errors.APIError as err:
                if err.err_code == STREAM_NAME_IN_USE:
                    raise BucketExists(f"Bucket {name} already exists") from err
                raise
            kv = await self.js.key_value(name)
        logger.debug("NATS backend: created bucket %s", name)
        return NatsBucket(self.js, kv, name)

    async def update_bucket(self, name: str, metadata: dict[str, str]) -> KVBucket:
        with _backend_errors(name):
            kv = await self.js.key_value(name)
            await self._set_metadata(name, metadata)
        return NatsBucket(self.js, kv, name)

    async def delete_bucket(self, name: str) -> bool:
        with _backend_errors(name):
            return await self.js.delete_key_value(name)

    async def get_bucket(self, name: str) -> KVBucket:
        with _backend_errors(name):
            kv = await self.js.key_value(name)
        return NatsBucket(self.js, kv, name)
