"""
VaultService — the request-level vault operations.

Each operation is one authorization-gated manager call:

- ``create_or_update_vault`` — first write bootstraps the vault (root
  authority only); later writes update it (owner only)
- ``delete_vault`` — owner only
- ``get_key`` — owner or signer
- ``put_key`` / ``delete_key`` — owner or signer

Binding these to HTTP routes, RPC methods or anything else is left to the
transport layer. ``authenticate`` turns a presented token into a
:class:`~xvault.gate.Caller` for it.
"""
import logging
from typing import Optional

from . import claims as tokens
from .backend.base import KVBackend
from .backend.nats import NatsBackend
from .claims import ACTION_ADMIN, ACTION_READ, ACTION_WRITE
from .config import VaultSettings
from .exceptions import InvalidToken, Unauthorized
from .gate import AuthorizationGate, Caller
from .manager import VaultManager
from .record import VaultRecord, utcnow

logger = logging.getLogger("xvault")

BEARER_PREFIX = "bearer "


class VaultService:
    """Gated vault operations."""

    def __init__(self, manager: VaultManager, gate: AuthorizationGate):
        self.manager = manager
        self.gate = gate

    @classmethod
    def from_settings(
        cls, settings: VaultSettings, backend: Optional[KVBackend] = None
    ) -> "VaultService":
        """Wire a service from settings.

        Without an explicit ``backend`` a :class:`NatsBackend` is built from
        the NATS connection settings. It still has to be connected.
        """
        if backend is None:
            backend = NatsBackend.from_settings(settings)
        manager = VaultManager(backend, prefix=settings.bucket_prefix)
        return cls(manager, AuthorizationGate(manager, settings.issuer_key))

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, token: Optional[str]) -> Caller:
        """Verify a claims token and return the caller it identifies.

        Raises:
            Unauthorized: If the token is missing, forged or expired.
        """
        if not token:
            raise Unauthorized()
        try:
            claims = tokens.decode(token)
        except InvalidToken as err:
            logger.info("Token rejected: %s", err)
            raise Unauthorized() from None
        return Caller.from_claims(claims)

    def authenticate_header(self, authorization: Optional[str]) -> Caller:
        """Authenticate an ``Authorization: Bearer <token>`` header value."""
        if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
            raise Unauthorized()
        return self.authenticate(authorization[len(BEARER_PREFIX):].strip())

    # ------------------------------------------------------------------
    # Vault operations
    # ------------------------------------------------------------------

    async def create_or_update_vault(
        self, vault_id: str, record: VaultRecord, caller: Optional[Caller]
    ) -> VaultRecord:
        """Create the vault on first write, update it afterwards.

        On creation the owner defaults to the token subject. The id in the
        request body is ignored in favour of ``vault_id``.

        Returns:
            The stored record.
        """
        current = await self.gate.authorize_upsert(vault_id, caller)
        if current is None:
            created = record.model_copy(
                update={
                    "vault_id": vault_id,
                    "owner_key": record.owner_key or caller.subject,
                    "display_name": record.display_name or vault_id,
                    "created_at": utcnow(),
                    "updated_at": None,
                }
            )
            return await self.manager.create(created)
        return await self.manager.update(
            record.model_copy(
                update={
                    "vault_id": vault_id,
                    "display_name": record.display_name or vault_id,
                }
            )
        )

    async def delete_vault(self, vault_id: str, caller: Optional[Caller]) -> None:
        await self.gate.authorize(vault_id, caller, ACTION_ADMIN)
        await self.manager.delete(vault_id)

    async def get_key(self, vault_id: str, key: str, caller: Optional[Caller]) -> bytes:
        await self.gate.authorize(vault_id, caller, ACTION_READ)
        return await self.manager.get_value(vault_id, key)

    async def put_key(
        self, vault_id: str, key: str, value: bytes, caller: Optional[Caller]
    ) -> int:
        await self.gate.authorize(vault_id, caller, ACTION_WRITE)
        return await self.manager.put_value(vault_id, key, value)

    async def delete_key(self, vault_id: str, key: str, caller: Optional[Caller]) -> None:
        await self.gate.authorize(vault_id, caller, ACTION_WRITE)
        await self.manager.delete_value(vault_id, key)
