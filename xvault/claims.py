"""
Claims Token — signed, time-bounded permission assertions.

Tokens are JWT-shaped: ``base64url(header).base64url(payload).base64url(sig)``
where the header is ``{"typ": "JWT", "alg": "ed25519-nkey"}`` and the
signature is Ed25519 over ``header.payload``. The issuer's public identity
travels in ``iss``, so verification recovers the signer from the token
itself.

Permissions are strings of the form ``resource:action:scope``, for example
``vault:admin:orders``. They only pre-filter requests: the vault's stored
metadata is always re-checked at the moment of use, which is what makes
self-issued tokens safe.

Security Note:
    Never log token strings.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import orjson

from .exceptions import InvalidArgument, InvalidSignature, TokenExpired
from .identity import Identity, b64url_decode, b64url_encode

logger = logging.getLogger("xvault")

TOKEN_TYPE = "JWT"
TOKEN_ALGORITHM = "ed25519-nkey"
DEFAULT_TOKEN_TTL = timedelta(days=180)

VAULT_RESOURCE = "vault"
ACTION_READ = "read"
ACTION_WRITE = "write"
ACTION_ADMIN = "admin"

# Each action is implied by the actions listed for it.
_IMPLIED_BY = {
    ACTION_READ: (ACTION_READ, ACTION_WRITE, ACTION_ADMIN),
    ACTION_WRITE: (ACTION_WRITE, ACTION_ADMIN),
    ACTION_ADMIN: (ACTION_ADMIN,),
}

_HEADER = {"typ": TOKEN_TYPE, "alg": TOKEN_ALGORITHM}


@dataclass(frozen=True)
class Permission:
    """A parsed ``resource:action:scope`` permission string."""

    resource: str
    action: str
    scope: str

    @classmethod
    def parse(cls, value: str) -> "Permission":
        """Parse a permission string.

        Raises:
            InvalidArgument: If the string does not have three non-empty parts.
        """
        parts = value.split(":", 2)
        if len(parts) != 3 or not all(parts):
            raise InvalidArgument(f"Malformed permission: {value!r}")
        return cls(*parts)

    @classmethod
    def vault(cls, action: str, vault_id: str) -> "Permission":
        return cls(VAULT_RESOURCE, action, vault_id)

    def grants(self, action: str, vault_id: str) -> bool:
        """True if this permission covers ``action`` on ``vault_id``."""
        return (
            self.resource == VAULT_RESOURCE
            and self.scope == vault_id
            and self.action in _IMPLIED_BY.get(action, ())
        )

    def __str__(self) -> str:
        return f"{self.resource}:{self.action}:{self.scope}"


def parse_permissions(values: Iterable[str]) -> list[Permission]:
    """Parse permission strings, skipping entries that do not parse."""
    parsed = []
    for value in values:
        try:
            parsed.append(Permission.parse(value))
        except InvalidArgument:
            logger.debug("Ignoring malformed permission %r", value)
    return parsed


def permits(values: Iterable[str], action: str, vault_id: str) -> bool:
    """True if any of the permission strings grants ``action`` on ``vault_id``."""
    return any(p.grants(action, vault_id) for p in parse_permissions(values))


@dataclass
class Claims:
    """Token claims.

    ``issuer`` is recovered from the verified token on decode. Encoding
    ignores it: the token names whichever identity signs it.
    """

    subject: str
    expires: datetime
    permissions: list[str] = field(default_factory=list)
    issuer: Optional[str] = None
    issued_at: Optional[datetime] = None
    token_id: Optional[str] = None

    @classmethod
    def for_vault(
        cls,
        subject: str,
        vault_id: str,
        action: str = ACTION_ADMIN,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
    ) -> "Claims":
        """Claims granting ``action`` on a single vault."""
        return cls(
            subject=subject,
            expires=datetime.now(timezone.utc) + ttl,
            permissions=[str(Permission.vault(action, vault_id))],
        )

    def parsed_permissions(self) -> list[Permission]:
        return parse_permissions(self.permissions)

    def allows(self, action: str, vault_id: str) -> bool:
        return permits(self.permissions, action, vault_id)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires <= now


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def _timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def encode(claims: Claims, signer: Identity) -> str:
    """Serialize ``claims`` and sign them with ``signer``.

    Args:
        claims: Claims to sign. They are not modified. The token's issuer
            is always the signer's public identity; ``issued_at`` and
            ``token_id`` are generated when missing.
        signer: Identity holding a private key.

    Returns:
        Token string.

    Raises:
        InvalidArgument: If the subject is empty or ``signer`` cannot sign.
    """
    if not claims.subject:
        raise InvalidArgument("Token subject cannot be empty")
    if not signer.can_sign:
        raise InvalidArgument(f"identity {signer.public_key} cannot sign")

    issued_at = claims.issued_at or datetime.now(timezone.utc)
    token_id = claims.token_id or uuid.uuid4().hex

    payload = {
        "jti": token_id,
        "iat": _timestamp(issued_at),
        "iss": signer.public_key,
        "sub": claims.subject,
        "exp": _timestamp(claims.expires),
    }
    if claims.permissions:
        payload["permissions"] = list(claims.permissions)

    signing_input = (
        f"{b64url_encode(orjson.dumps(_HEADER))}."
        f"{b64url_encode(orjson.dumps(payload))}"
    )
    signature = signer.sign(signing_input.encode("ascii"))
    return f"{signing_input}.{b64url_encode(signature)}"


def decode(token: str, now: Optional[datetime] = None) -> Claims:
    """Verify a token and return its claims.

    The signature is checked before expiry so a forged token never reports
    ``TokenExpired``.

    Args:
        token: Token string produced by :func:`encode`.
        now: Reference time for the expiry check (defaults to current UTC).

    Returns:
        Parsed claims with ``issuer`` set to the recovered signer.

    Raises:
        InvalidSignature: If the token is malformed or does not verify.
        TokenExpired: If the token has expired.
    """
    parts = token.split(".") if token else []
    if len(parts) != 3:
        raise InvalidSignature("Malformed token")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = orjson.loads(b64url_decode(header_b64))
        payload = orjson.loads(b64url_decode(payload_b64))
        signature = b64url_decode(signature_b64)
    except (ValueError, orjson.JSONDecodeError) as err:
        raise InvalidSignature("Malformed token") from err

    if not isinstance(header, dict) or header.get("alg") != TOKEN_ALGORITHM:
        raise InvalidSignature("Unsupported token algorithm")
    if not isinstance(payload, dict):
        raise InvalidSignature("Malformed token payload")

    issuer_key = payload.get("iss")
    if not isinstance(issuer_key, str) or not issuer_key:
        raise InvalidSignature("Token issuer is missing")
    try:
        issuer = Identity.from_public_key(issuer_key)
    except InvalidArgument as err:
        raise InvalidSignature("Token issuer is not a valid identity") from err

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    if not issuer.verify(signature, signing_input):
        raise InvalidSignature("Token signature does not verify")

    try:
        claims = Claims(
            subject=str(payload["sub"]),
            expires=_from_timestamp(int(payload["exp"])),
            permissions=[str(p) for p in payload.get("permissions") or []],
            issuer=issuer.public_key,
            issued_at=(
                _from_timestamp(int(payload["iat"])) if "iat" in payload else None
            ),
            token_id=payload.get("jti"),
        )
    except (KeyError, TypeError, ValueError, OverflowError) as err:
        raise InvalidSignature("Malformed token claims") from err

    if claims.is_expired(now):
        raise TokenExpired("Token has expired")
    return claims
