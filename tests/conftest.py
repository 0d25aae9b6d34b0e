"""Shared fixtures for vault tests."""
import pytest
import pytest_asyncio

from xvault import claims as tokens
from xvault.backend.memory import MemoryBackend
from xvault.claims import ACTION_ADMIN, Claims
from xvault.gate import AuthorizationGate, Caller
from xvault.identity import Identity, mint_keypair
from xvault.manager import VaultManager
from xvault.record import VaultRecord
from xvault.service import VaultService


def make_caller(subject: Identity, signer: Identity, vault_id: str, action: str) -> Caller:
    """Sign a token for ``subject`` with ``signer`` and authenticate it."""
    token = tokens.encode(Claims.for_vault(subject.public_key, vault_id, action), signer)
    return Caller.from_claims(tokens.decode(token))


@pytest.fixture
def root() -> Identity:
    return mint_keypair()


@pytest.fixture
def user1() -> Identity:
    return mint_keypair()


@pytest.fixture
def user2() -> Identity:
    return mint_keypair()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def manager(backend) -> VaultManager:
    return VaultManager(backend)


@pytest.fixture
def gate(manager, root) -> AuthorizationGate:
    return AuthorizationGate(manager, root.public_key)


@pytest.fixture
def service(manager, gate) -> VaultService:
    return VaultService(manager, gate)


@pytest_asyncio.fixture
async def orders(manager, user1) -> VaultRecord:
    """Vault "orders" owned by user1 with no extra signers."""
    return await manager.create(VaultRecord(vault_id="orders", owner_key=user1.public_key))


@pytest_asyncio.fixture
async def bootstrapped(service, root, user1) -> VaultRecord:
    """Vault "orders" created through the service with a root-signed token."""
    caller = make_caller(user1, root, "orders", ACTION_ADMIN)
    return await service.create_or_update_vault("orders", VaultRecord(), caller)
