"""
Asymmetric Identity — Ed25519 keypairs and their string forms.

An identity is the URL-safe, unpadded base64 encoding of a raw 32-byte
Ed25519 public key. The private half ("seed") uses the same encoding and is
only ever held by the party that minted or imported it.

Security Note:
    Never log seeds or signatures. Public identities are safe to log.
"""
import base64
import binascii
import logging
from typing import Optional

from cryptography.exceptions import InvalidSignature as _CryptoInvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from .exceptions import InvalidArgument

logger = logging.getLogger("xvault")

KEY_LENGTH = 32  # Ed25519 raw key size


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------

def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded URL-safe base64."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded URL-safe base64.

    Raises:
        ValueError: If ``data`` is not valid base64.
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as err:
        raise ValueError(f"invalid base64 data: {err}") from err


def _decode_key(value: str, what: str) -> bytes:
    try:
        raw = b64url_decode(value)
    except ValueError as err:
        raise InvalidArgument(f"{what} is not valid base64") from err
    if len(raw) != KEY_LENGTH:
        raise InvalidArgument(
            f"{what} must decode to exactly {KEY_LENGTH} bytes, got {len(raw)}"
        )
    return raw


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class Identity:
    """A public identity, optionally with the private key that signs for it."""

    __slots__ = ("_public", "_private", "_public_key")

    def __init__(
        self,
        public_key: Ed25519PublicKey,
        private_key: Optional[Ed25519PrivateKey] = None,
    ):
        self._public = public_key
        self._private = private_key
        self._public_key = b64url_encode(
            public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
        )

    @classmethod
    def generate(cls) -> "Identity":
        """Mint a fresh keypair from the OS random source."""
        private = Ed25519PrivateKey.generate()
        return cls(private.public_key(), private)

    @classmethod
    def from_seed(cls, seed: str) -> "Identity":
        """Import a keypair from its seed string.

        Raises:
            InvalidArgument: If the seed is malformed.
        """
        private = Ed25519PrivateKey.from_private_bytes(_decode_key(seed, "seed"))
        return cls(private.public_key(), private)

    @classmethod
    def from_public_key(cls, public_key: str) -> "Identity":
        """Import a verify-only identity from its public string.

        Raises:
            InvalidArgument: If the public key is malformed.
        """
        raw = _decode_key(public_key, "public key")
        return cls(Ed25519PublicKey.from_public_bytes(raw))

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def can_sign(self) -> bool:
        return self._private is not None

    @property
    def seed(self) -> str:
        """Private seed string. Only available on minted/imported keypairs."""
        if self._private is None:
            raise InvalidArgument(f"identity {self._public_key} has no private key")
        return b64url_encode(
            self._private.private_bytes(
                Encoding.Raw, PrivateFormat.Raw, NoEncryption()
            )
        )

    def sign(self, data: bytes) -> bytes:
        if self._private is None:
            raise InvalidArgument(f"identity {self._public_key} cannot sign")
        return self._private.sign(data)

    def verify(self, signature: bytes, data: bytes) -> bool:
        """Return True if ``signature`` is valid for ``data``."""
        try:
            self._public.verify(signature, data)
        except _CryptoInvalidSignature:
            return False
        return True

    def public(self) -> "Identity":
        """Verify-only copy of this identity."""
        return Identity(self._public)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Identity):
            return self._public_key == other._public_key
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._public_key)

    def __str__(self) -> str:
        return self._public_key

    def __repr__(self) -> str:
        return f"<Identity {self._public_key} signer={self.can_sign}>"


def mint_keypair() -> Identity:
    """Generate a new signing identity."""
    identity = Identity.generate()
    logger.debug("Minted identity %s", identity.public_key)
    return identity


def is_valid_public_key(value: str) -> bool:
    """Check that ``value`` is the string form of an Ed25519 public key."""
    if not value:
        return False
    try:
        _decode_key(value, "public key")
    except InvalidArgument:
        return False
    return True
