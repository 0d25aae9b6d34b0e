"""
Authorization Gate — the single check every vault operation passes.

Per request the gate walks::

    Unauthenticated -> IdentityExtracted -> VaultResolved -> SignerChecked
                    -> Permitted | Denied

The caller arrives already authenticated: its token signature has been
verified and the recovered signer identity is on the :class:`Caller`. The
token's permission strings only pre-filter the request; the decision is made
against the vault metadata read at that moment.

Creating a vault is the exception. The vault has no metadata yet, so the
signer must be the configured root authority instead.

Every denial raises :class:`~xvault.exceptions.Unauthorized` with the same
message. A missing vault is denied the same way, so a caller cannot
tell whether a vault exists. The real reason is logged.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .claims import ACTION_ADMIN, ACTION_READ, ACTION_WRITE, Claims, permits
from .exceptions import CorruptRecord, InvalidArgument, NotFound, Unauthorized
from .manager import VaultManager
from .record import VaultRecord

logger = logging.getLogger("xvault")

ACTIONS = (ACTION_READ, ACTION_WRITE, ACTION_ADMIN)


@dataclass(frozen=True)
class Caller:
    """An authenticated caller.

    ``subject`` is the identity the token was issued to and ``signer`` the
    identity that signed it. For self-issued tokens both are the same.
    """

    subject: str
    signer: str
    permissions: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_claims(cls, claims: Claims) -> "Caller":
        return cls(
            subject=claims.subject,
            signer=claims.issuer or "",
            permissions=tuple(claims.permissions),
        )

    def allows(self, action: str, vault_id: str) -> bool:
        return permits(self.permissions, action, vault_id)


class AuthorizationGate:
    """Checks callers against vault metadata.

    Args:
        manager: Vault manager used to read metadata.
        root_authority: Public identity trusted to bootstrap new vaults.
            Loaded once at startup and never changed.
    """

    def __init__(self, manager: VaultManager, root_authority: str):
        if not root_authority:
            raise InvalidArgument("Root authority identity cannot be empty")
        self._manager = manager
        self._root_authority = root_authority

    @property
    def root_authority(self) -> str:
        return self._root_authority

    def _deny(self, vault_id: str, caller: Optional[Caller], reason: str) -> Unauthorized:
        logger.info(
            "Access denied: vault=%s signer=%s reason=%s",
            vault_id, caller.signer if caller else None, reason,
        )
        return Unauthorized()

    def _extract_identity(self, vault_id: str, caller: Optional[Caller], action: str) -> str:
        if caller is None or not caller.signer:
            raise self._deny(vault_id, caller, "signer identity is missing")
        if not caller.allows(action, vault_id):
            raise self._deny(vault_id, caller, f"token does not grant vault:{action}")
        logger.debug("Identity extracted: vault=%s signer=%s", vault_id, caller.signer)
        return caller.signer

    async def authorize(
        self, vault_id: str, caller: Optional[Caller], action: str
    ) -> VaultRecord:
        """Permit ``action`` on an existing vault.

        ``read`` and ``write`` require the signer to be the owner or a listed
        signer of a non-expired vault. ``admin`` requires the owner.

        Returns:
            The vault record the decision was made against.

        Raises:
            Unauthorized: On any denial, including a missing vault.
        """
        if action not in ACTIONS:
            raise InvalidArgument(f"Unknown vault action: {action!r}")
        identity = self._extract_identity(vault_id, caller, action)
        try:
            if action == ACTION_ADMIN:
                record = await self._manager.validate_owner(vault_id, identity)
            else:
                record = await self._manager.validate_signer(vault_id, identity)
        except NotFound:
            raise self._deny(vault_id, caller, "vault does not exist") from None
        except CorruptRecord as err:
            logger.error("Vault %s has corrupt metadata: %s", vault_id, err)
            raise self._deny(vault_id, caller, "vault metadata is corrupt") from None
        except InvalidArgument as err:
            raise self._deny(vault_id, caller, str(err)) from None
        except Unauthorized as err:
            raise self._deny(vault_id, caller, str(err)) from None
        logger.debug("Access permitted: vault=%s signer=%s action=%s", vault_id, identity, action)
        return record

    async def authorize_upsert(
        self, vault_id: str, caller: Optional[Caller]
    ) -> Optional[VaultRecord]:
        """Permit creating or updating a vault.

        Returns:
            ``None`` if the vault does not exist and the caller may create
            it, otherwise the current record of a vault the caller owns.

        Raises:
            Unauthorized: If the caller may neither create nor update.
        """
        identity = self._extract_identity(vault_id, caller, ACTION_ADMIN)
        if await self._manager.exists(vault_id):
            return await self.authorize(vault_id, caller, ACTION_ADMIN)
        if identity != self._root_authority:
            raise self._deny(vault_id, caller, "only the root authority can create vaults")
        logger.debug("Vault creation permitted: vault=%s subject=%s", vault_id, caller.subject)
        return None
