"""XVault — signer-scoped key-value vaults on a bucket store.

Each vault is a backend bucket whose metadata names an owner and a list of
signers. Requests carry a signed claims token; the recovered signer must be
the owner or a listed signer at the time of the request. New vaults can only
be bootstrapped with a token signed by the configured root authority.
"""

from .claims import Claims, Permission, decode, encode
from .config import VaultSettings
from .exceptions import (
    AlreadyExists,
    BackendUnavailable,
    CorruptRecord,
    InvalidArgument,
    InvalidSignature,
    NotFound,
    TokenExpired,
    Unauthorized,
    VaultError,
)
from .gate import AuthorizationGate, Caller
from .identity import Identity, mint_keypair
from .manager import VaultManager
from .record import VaultRecord
from .service import VaultService
from .version import __version__

__all__ = [
    "AlreadyExists",
    "AuthorizationGate",
    "BackendUnavailable",
    "Caller",
    "Claims",
    "CorruptRecord",
    "Identity",
    "InvalidArgument",
    "InvalidSignature",
    "NotFound",
    "Permission",
    "TokenExpired",
    "Unauthorized",
    "VaultError",
    "VaultManager",
    "VaultRecord",
    "VaultService",
    "VaultSettings",
    "decode",
    "encode",
    "mint_keypair",
    "__version__",
]
