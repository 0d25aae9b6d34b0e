"""
VaultManager — vault lifecycle and scoped key access on a KV backend.

Provides the vault operations used behind the authorization gate:
- ``exists`` / ``get_record`` — look up a vault and its metadata
- ``create`` / ``update`` / ``delete`` — manage the vault bucket and record
- ``get_value`` / ``put_value`` / ``delete_value`` — key access in a vault
- ``validate_signer`` / ``validate_owner`` — identity checks against metadata

Every call reads the metadata stored on the bucket; nothing about a vault is
cached between calls, so authorization changes apply on the next request.

Security Note:
    Never log stored values. Only log vault ids, key names and public
    identities.
"""
import logging
import re
from typing import Optional

from .backend.base import KVBackend, KVBucket
from .exceptions import (
    AlreadyExists,
    BucketExists,
    BucketNotFound,
    InvalidArgument,
    KeyNotFound,
    NotFound,
    Unauthorized,
)
from .identity import is_valid_public_key
from .record import VaultRecord, utcnow

logger = logging.getLogger("xvault")

DEFAULT_BUCKET_PREFIX = "vault_"

_VAULT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_KEY_PATTERN = re.compile(r"^[-/_=.A-Za-z0-9]+$")
_MAX_KEY_LENGTH = 255


class VaultManager:
    """Vault operations over a shared :class:`KVBackend`.

    The backend handle is shared across concurrent requests. The manager
    holds no per-vault state.
    """

    def __init__(self, backend: KVBackend, prefix: str = DEFAULT_BUCKET_PREFIX):
        self._backend = backend
        self._prefix = prefix

    @property
    def backend(self) -> KVBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_vault_id(self, vault_id: str) -> None:
        """Validate a vault id.

        Raises:
            InvalidArgument: If the id is empty or not a valid bucket name.
        """
        if not vault_id or not vault_id.strip():
            raise InvalidArgument("Vault ID cannot be empty")
        if not _VAULT_ID_PATTERN.match(vault_id):
            raise InvalidArgument(
                f"Vault ID {vault_id!r} may only contain letters, digits, '-' and '_'"
            )

    def _validate_key(self, key: str) -> None:
        """Validate a key name.

        Raises:
            InvalidArgument: If key is empty, too long, or has invalid characters.
        """
        if not key:
            raise InvalidArgument("Vault key cannot be empty")
        if len(key) > _MAX_KEY_LENGTH:
            raise InvalidArgument(f"Vault key cannot exceed {_MAX_KEY_LENGTH} characters")
        if not _KEY_PATTERN.match(key) or key.startswith(".") or key.endswith("."):
            raise InvalidArgument(f"Vault key {key!r} contains invalid characters")

    def _validate_identities(self, record: VaultRecord) -> None:
        """Check that the owner and every signer are public identities.

        Raises:
            InvalidArgument: If any of them is not a valid public key.
        """
        if not is_valid_public_key(record.owner_key):
            raise InvalidArgument(f"Owner key {record.owner_key!r} is not a public identity")
        for signer in record.signers:
            if not is_valid_public_key(signer):
                raise InvalidArgument(f"Signer {signer!r} is not a public identity")

    # ------------------------------------------------------------------
    # Bucket helpers
    # ------------------------------------------------------------------

    def bucket_name(self, vault_id: str) -> str:
        return f"{self._prefix}{vault_id}"

    async def _bucket(self, vault_id: str) -> KVBucket:
        self._validate_vault_id(vault_id)
        try:
            return await self._backend.get_bucket(self.bucket_name(vault_id))
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None

    async def _load(self, bucket: KVBucket, vault_id: str) -> VaultRecord:
        try:
            metadata = await bucket.status()
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None
        return VaultRecord.from_metadata(vault_id, metadata)

    # ------------------------------------------------------------------
    # Vault lifecycle
    # ------------------------------------------------------------------

    async def exists(self, vault_id: str) -> bool:
        """Check whether a vault exists.

        Returns:
            True if the backing bucket exists. Invalid ids report False.

        Raises:
            BackendUnavailable: If the backend cannot be reached.
        """
        try:
            self._validate_vault_id(vault_id)
        except InvalidArgument:
            return False
        return await self._backend.bucket_exists(self.bucket_name(vault_id))

    async def get_record(self, vault_id: str) -> VaultRecord:
        """Load the stored record of a vault.

        Raises:
            NotFound: If the vault does not exist.
            CorruptRecord: If the stored metadata names no owner.
        """
        bucket = await self._bucket(vault_id)
        return await self._load(bucket, vault_id)

    async def create(self, record: VaultRecord) -> VaultRecord:
        """Create a vault bucket holding ``record`` as its metadata.

        Args:
            record: Vault to create. ``created_at`` defaults to now.

        Returns:
            The record as stored.

        Raises:
            InvalidArgument: If the vault id or owner key is empty, or the
                owner or a signer is not a public identity.
            AlreadyExists: If the vault already exists.
        """
        self._validate_vault_id(record.vault_id)
        if not record.owner_key:
            raise InvalidArgument("Owner key cannot be empty")
        self._validate_identities(record)

        stored = record.model_copy(
            update={"created_at": record.created_at or utcnow(), "updated_at": None}
        )
        name = self.bucket_name(record.vault_id)
        if await self._backend.bucket_exists(name):
            raise AlreadyExists(f"Vault {record.vault_id} already exists")
        try:
            await self._backend.create_bucket(name, stored.to_metadata())
        except BucketExists:
            raise AlreadyExists(f"Vault {record.vault_id} already exists") from None

        logger.info(
            "Vault created: vault=%s owner=%s", stored.vault_id, stored.owner_key,
        )
        return stored

    async def update(self, record: VaultRecord) -> VaultRecord:
        """Replace the metadata of an existing vault.

        ``created_at`` is kept from the stored record, and so is the owner
        when ``record.owner_key`` is empty. ``updated_at`` is set to now.

        Returns:
            The record as stored.

        Raises:
            InvalidArgument: If the vault id is empty, or the owner or a signer
                is not a public identity.
            NotFound: If the vault does not exist.
        """
        self._validate_vault_id(record.vault_id)
        current = await self.get_record(record.vault_id)

        updated = record.model_copy(
            update={
                "owner_key": record.owner_key or current.owner_key,
                "display_name": record.display_name or record.vault_id,
                "created_at": current.created_at,
                "updated_at": utcnow(),
            }
        )
        self._validate_identities(updated)
        try:
            await self._backend.update_bucket(
                self.bucket_name(record.vault_id), updated.to_metadata(),
            )
        except BucketNotFound:
            raise NotFound(f"Vault {record.vault_id} does not exist") from None

        logger.info(
            "Vault updated: vault=%s owner=%s signers=%d",
            updated.vault_id, updated.owner_key, len(updated.signers),
        )
        return updated

    async def delete(self, vault_id: str) -> None:
        """Delete a vault and every key in it. Irreversible.

        Raises:
            NotFound: If the vault does not exist.
        """
        self._validate_vault_id(vault_id)
        try:
            await self._backend.delete_bucket(self.bucket_name(vault_id))
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None
        logger.info("Vault deleted: vault=%s", vault_id)

    # ------------------------------------------------------------------
    # Identity checks
    # ------------------------------------------------------------------

    async def validate_signer(self, vault_id: str, identity: Optional[str]) -> VaultRecord:
        """Check that ``identity`` may read and write the vault.

        The owner is always a signer. An expired vault accepts nobody.

        Returns:
            The current vault record.

        Raises:
            Unauthorized: If the identity is empty, not a signer, or the
                vault has expired.
            NotFound: If the vault does not exist.
        """
        if not identity:
            raise Unauthorized("Signer claim is missing")
        record = await self.get_record(vault_id)
        if record.is_expired():
            raise Unauthorized(f"Vault {vault_id} has expired")
        if not record.is_signer(identity):
            raise Unauthorized("Unauthorized signer")
        return record

    async def validate_owner(self, vault_id: str, identity: Optional[str]) -> VaultRecord:
        """Check that ``identity`` owns the vault.

        Expiry is not applied, so an owner can extend or delete an expired
        vault.

        Returns:
            The current vault record.

        Raises:
            Unauthorized: If the identity is empty or not the owner.
            NotFound: If the vault does not exist.
        """
        if not identity:
            raise Unauthorized("Signer claim is missing")
        record = await self.get_record(vault_id)
        if identity != record.owner_key:
            raise Unauthorized("Signer is not the vault owner")
        return record

    # ------------------------------------------------------------------
    # Key access
    # ------------------------------------------------------------------

    async def get_value(self, vault_id: str, key: str) -> bytes:
        """Return the value stored under ``key``.

        Raises:
            NotFound: If the vault or the key does not exist.
        """
        self._validate_key(key)
        bucket = await self._bucket(vault_id)
        try:
            value = await bucket.get(key)
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None
        except KeyNotFound:
            raise NotFound(f"Key {key!r} not found in vault {vault_id}") from None
        logger.debug("Vault get: vault=%s key=%s", vault_id, key)
        return value

    async def put_value(self, vault_id: str, key: str, value: bytes) -> int:
        """Store ``value`` under ``key``.

        Returns:
            The backend revision of the write.

        Raises:
            NotFound: If the vault does not exist.
        """
        self._validate_key(key)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise InvalidArgument("Vault values must be bytes")
        bucket = await self._bucket(vault_id)
        try:
            revision = await bucket.put(key, bytes(value))
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None
        logger.debug("Vault put: vault=%s key=%s revision=%s", vault_id, key, revision)
        return revision

    async def delete_value(self, vault_id: str, key: str) -> None:
        """Remove ``key`` from the vault.

        Deleting a key that is already absent is an error, not a no-op.

        Raises:
            NotFound: If the vault or the key does not exist.
        """
        self._validate_key(key)
        bucket = await self._bucket(vault_id)
        try:
            await bucket.delete(key)
        except BucketNotFound:
            raise NotFound(f"Vault {vault_id} does not exist") from None
        except KeyNotFound:
            raise NotFound(f"Key {key!r} not found in vault {vault_id}") from None
        logger.debug("Vault delete: vault=%s key=%s", vault_id, key)
