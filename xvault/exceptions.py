"""
Vault errors.

Every failure inside the vault core is one of these kinds:

- ``InvalidArgument``: malformed or missing input (empty vault id, bad key).
- ``NotFound``: vault or key absent.
- ``AlreadyExists``: vault creation collision.
- ``Unauthorized``: signer not permitted, identity missing, token invalid or
  expired. Raised with a uniform message regardless of the cause.
- ``CorruptRecord``: stored vault metadata lacks a required field.
- ``BackendUnavailable``: transport failure talking to the key-value store.
  Callers may retry these with backoff.
"""

UNAUTHORIZED_MESSAGE = "Unauthorized"


class VaultError(Exception):
    """Base error for vault operations."""


class InvalidArgument(VaultError):
    """Malformed or missing required input."""


class NotFound(VaultError):
    """Vault or key does not exist."""


class BucketNotFound(NotFound):
    """Backend bucket does not exist."""


class KeyNotFound(NotFound):
    """Key does not exist in the bucket."""


class AlreadyExists(VaultError):
    """Vault already exists."""


class BucketExists(AlreadyExists):
    """Backend bucket already exists."""


class Unauthorized(VaultError):
    """Access denied.

    The message is always the same so that callers cannot tell a missing
    vault from a rejected signer.
    """

    def __init__(self, message: str = UNAUTHORIZED_MESSAGE):
        super().__init__(message)


class InvalidToken(Unauthorized):
    """Claims token could not be accepted."""


class InvalidSignature(InvalidToken):
    """Token is malformed or its signature does not verify."""


class TokenExpired(InvalidToken):
    """Token expiry is in the past."""


class CorruptRecord(VaultError):
    """Stored vault metadata cannot be decoded into a record."""


class BackendUnavailable(VaultError):
    """Key-value backend could not be reached or failed unexpectedly."""
