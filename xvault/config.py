"""
Vault Configuration — root authority and backend settings.

Reads settings from environment variables:
    VAULT_ISSUER_KEY = <public identity of the root authority>   (required)
    VAULT_NATS_URL = nats://host:4222
    VAULT_NATS_USER / VAULT_NATS_PASSWORD
    VAULT_BUCKET_PREFIX = vault_
    VAULT_KV_HISTORY = 1   (values kept per key, 1-64)

The root authority is loaded once at process start and not changed after.

Security Note:
    Never log the NATS password or any seed. Public identities are fine.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .identity import is_valid_public_key
from .manager import DEFAULT_BUCKET_PREFIX

logger = logging.getLogger("xvault")

DEFAULT_NATS_URL = "nats://localhost:4222"


def load_issuer_key() -> str:
    """Read the root authority identity from VAULT_ISSUER_KEY.

    Returns:
        Public identity string of the root authority.

    Raises:
        RuntimeError: If VAULT_ISSUER_KEY is not set.
    """
    raw = os.environ.get("VAULT_ISSUER_KEY", "").strip()
    if not raw:
        raise RuntimeError(
            "VAULT_ISSUER_KEY environment variable is not set. "
            "Set it to the public identity of the vault root authority."
        )
    return raw


class VaultSettings(BaseModel):
    """Validated vault settings."""

    issuer_key: str
    nats_url: str = Field(default=DEFAULT_NATS_URL)
    nats_user: Optional[str] = None
    nats_password: Optional[str] = Field(default=None, repr=False)
    bucket_prefix: str = Field(default=DEFAULT_BUCKET_PREFIX, min_length=1)
    kv_history: int = Field(default=1, ge=1, le=64)

    @field_validator("issuer_key")
    @classmethod
    def validate_issuer_key(cls, v: str) -> str:
        """Issuer key must be a public identity."""
        v = v.strip()
        if not is_valid_public_key(v):
            raise ValueError("issuer_key is not a valid public identity")
        return v

    @field_validator("nats_url")
    @classmethod
    def validate_nats_url(cls, v: str) -> str:
        if not v.startswith(("nats://", "tls://", "ws://", "wss://")):
            raise ValueError(f"Unsupported NATS URL scheme: {v}")
        return v

    @field_validator("bucket_prefix")
    @classmethod
    def validate_bucket_prefix(cls, v: str) -> str:
        if not all(c.isalnum() or c in "-_" for c in v):
            raise ValueError(f"Invalid bucket prefix: {v!r}")
        return v

    @classmethod
    def from_env(cls) -> "VaultSettings":
        """Create VaultSettings by loading values from environment.

        Returns:
            Populated VaultSettings instance.
        """
        settings = cls(
            issuer_key=load_issuer_key(),
            nats_url=os.environ.get("VAULT_NATS_URL", DEFAULT_NATS_URL),
            nats_user=os.environ.get("VAULT_NATS_USER") or None,
            nats_password=os.environ.get("VAULT_NATS_PASSWORD") or None,
            bucket_prefix=os.environ.get("VAULT_BUCKET_PREFIX", DEFAULT_BUCKET_PREFIX),
            kv_history=os.environ.get("VAULT_KV_HISTORY", 1),
        )
        logger.debug(
            "Loaded vault settings: nats=%s prefix=%s issuer=%s",
            settings.nats_url, settings.bucket_prefix, settings.issuer_key,
        )
        return settings
