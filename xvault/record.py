"""
Vault Record — vault metadata and its flat-string bucket representation.

The backend only stores ``str -> str`` metadata on a bucket, so the record is
serialized into that shape by :meth:`VaultRecord.to_metadata` and read back by
:meth:`VaultRecord.from_metadata`. Timestamps are ISO-8601 strings and
signers are comma-joined.

The codec is versioned with ``schemaVersion``. A record without an owner is
corrupt and fails to decode. A missing or unparsable optional field falls
back to its default instead, so vaults written by older versions stay
readable.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .exceptions import CorruptRecord

logger = logging.getLogger("xvault")

SCHEMA_VERSION = 1
SIGNER_DELIMITER = ","

# Metadata keys
META_SCHEMA_VERSION = "schemaVersion"
META_OWNER_KEY = "ownerKey"
META_DISPLAY_NAME = "displayName"
META_DESCRIPTION = "description"
META_SIGNERS = "signers"
META_EXPIRES = "expires"
META_CREATED_AT = "createdAt"
META_UPDATED_AT = "updatedAt"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        logger.warning("Ignoring unparsable %s timestamp %r in vault metadata", name, value)
        return None


class VaultRecord(BaseModel):
    """Metadata describing a single vault.

    ``owner_key`` may be empty only on an incoming request, where it means
    "keep the current owner" (update) or "use the caller" (create).
    """

    vault_id: str = ""
    owner_key: str = ""
    display_name: str = ""
    description: Optional[str] = None
    signers: list[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("vault_id", "owner_key", "display_name", mode="before")
    @classmethod
    def strip_strings(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @field_validator("signers", mode="before")
    @classmethod
    def normalize_signers(cls, v) -> list[str]:
        """Drop blanks and duplicates, keeping first-seen order."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(SIGNER_DELIMITER)
        seen: dict[str, None] = {}
        for signer in v:
            signer = str(signer).strip()
            if signer:
                seen.setdefault(signer, None)
        return list(seen)

    @field_validator("expires_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def default_display_name(self) -> "VaultRecord":
        if not self.display_name:
            self.display_name = self.vault_id
        return self

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def is_signer(self, identity: str) -> bool:
        """Owner or listed signer."""
        if not identity:
            return False
        return identity == self.owner_key or identity in self.signers

    # ------------------------------------------------------------------
    # Metadata codec
    # ------------------------------------------------------------------

    def to_metadata(self) -> dict[str, str]:
        """Serialize to flat bucket metadata.

        ``created_at`` is written as now when it has not been set yet.
        Optional fields are omitted when empty.
        """
        metadata = {
            META_SCHEMA_VERSION: str(SCHEMA_VERSION),
            META_OWNER_KEY: self.owner_key,
            META_DISPLAY_NAME: self.display_name or self.vault_id,
            META_CREATED_AT: (self.created_at or utcnow()).isoformat(),
        }
        if self.description:
            metadata[META_DESCRIPTION] = self.description
        if self.signers:
            metadata[META_SIGNERS] = SIGNER_DELIMITER.join(self.signers)
        if self.expires_at is not None:
            metadata[META_EXPIRES] = self.expires_at.isoformat()
        if self.updated_at is not None:
            metadata[META_UPDATED_AT] = self.updated_at.isoformat()
        return metadata

    @classmethod
    def from_metadata(cls, vault_id: str, metadata: dict[str, str]) -> "VaultRecord":
        """Rebuild a record from bucket metadata.

        Args:
            vault_id: Vault id (the bucket name without its prefix).
            metadata: Flat metadata as stored on the bucket.

        Returns:
            Decoded record. Missing optional fields take their defaults.

        Raises:
            CorruptRecord: If the metadata names no owner.
        """
        metadata = metadata or {}
        owner_key = (metadata.get(META_OWNER_KEY) or "").strip()
        if not owner_key:
            raise CorruptRecord(f"Vault {vault_id} metadata has no {META_OWNER_KEY}")
        version = metadata.get(META_SCHEMA_VERSION)
        if version and version != str(SCHEMA_VERSION):
            logger.debug(
                "Vault %s metadata has schema version %s (current %s)",
                vault_id, version, SCHEMA_VERSION,
            )
        return cls(
            vault_id=vault_id,
            owner_key=owner_key,
            display_name=metadata.get(META_DISPLAY_NAME) or vault_id,
            description=metadata.get(META_DESCRIPTION) or None,
            signers=metadata.get(META_SIGNERS, ""),
            expires_at=_parse_timestamp(metadata.get(META_EXPIRES), META_EXPIRES),
            created_at=_parse_timestamp(metadata.get(META_CREATED_AT), META_CREATED_AT),
            updated_at=_parse_timestamp(metadata.get(META_UPDATED_AT), META_UPDATED_AT),
        )
