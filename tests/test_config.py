"""
Tests for VaultSettings.

Tests cover:
- Loading from environment variables
- Validation of the root authority and connection settings
- Building the NATS backend from settings
"""
import pytest
from pydantic import ValidationError

from xvault.backend.nats import NatsBackend
from xvault.config import DEFAULT_NATS_URL, VaultSettings, load_issuer_key
from xvault.service import VaultService


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "VAULT_ISSUER_KEY",
        "VAULT_NATS_URL",
        "VAULT_NATS_USER",
        "VAULT_NATS_PASSWORD",
        "VAULT_BUCKET_PREFIX",
        "VAULT_KV_HISTORY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestVaultSettings:
    """Tests for settings loading and validation."""

    def test_from_env(self, clean_env, root):
        """All settings are read from the environment."""
        clean_env.setenv("VAULT_ISSUER_KEY", root.public_key)
        clean_env.setenv("VAULT_NATS_URL", "nats://nats.internal:4222")
        clean_env.setenv("VAULT_NATS_USER", "vault")
        clean_env.setenv("VAULT_NATS_PASSWORD", "secret")
        clean_env.setenv("VAULT_BUCKET_PREFIX", "kv_")
        settings = VaultSettings.from_env()
        assert settings.issuer_key == root.public_key
        assert settings.nats_url == "nats://nats.internal:4222"
        assert settings.nats_user == "vault"
        assert settings.nats_password == "secret"
        assert settings.bucket_prefix == "kv_"

    def test_defaults(self, clean_env, root):
        """Only the issuer key is required."""
        clean_env.setenv("VAULT_ISSUER_KEY", root.public_key)
        settings = VaultSettings.from_env()
        assert settings.nats_url == DEFAULT_NATS_URL
        assert settings.nats_user is None
        assert settings.bucket_prefix == "vault_"

    def test_missing_issuer(self, clean_env):
        """A missing root authority is a startup error."""
        with pytest.raises(RuntimeError):
            load_issuer_key()

    def test_password_not_in_repr(self, root):
        """The NATS password never shows up in repr."""
        settings = VaultSettings(issuer_key=root.public_key, nats_password="hunter2")
        assert "hunter2" not in repr(settings)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"issuer_key": "not-a-key"},
            {"nats_url": "http://localhost:4222"},
            {"bucket_prefix": "bad.prefix"},
            {"kv_history": 0},
        ],
    )
    def test_invalid(self, root, overrides):
        """Invalid values are rejected."""
        values = {"issuer_key": root.public_key, **overrides}
        with pytest.raises(ValidationError):
            VaultSettings(**values)


class TestBackendSettings:
    """The NATS settings reach the backend the service is built on."""

    def test_nats_backend_from_settings(self, root):
        """Connection settings and history are carried over."""
        settings = VaultSettings(
            issuer_key=root.public_key,
            nats_url="nats://nats.internal:4222",
            nats_user="vault",
            nats_password="secret",
            kv_history=5,
        )
        backend = NatsBackend.from_settings(settings)
        assert backend._servers == "nats://nats.internal:4222"
        assert backend._user == "vault"
        assert backend._password == "secret"
        assert backend._history == 5

    def test_service_defaults_to_nats(self, clean_env, root):
        """Without an explicit backend the service runs on NATS."""
        clean_env.setenv("VAULT_ISSUER_KEY", root.public_key)
        clean_env.setenv("VAULT_NATS_URL", "nats://nats.internal:4222")
        clean_env.setenv("VAULT_KV_HISTORY", "3")
        service = VaultService.from_settings(VaultSettings.from_env())
        backend = service.manager.backend
        assert isinstance(backend, NatsBackend)
        assert backend._servers == "nats://nats.internal:4222"
        assert backend._history == 3
        assert service.gate.root_authority == root.public_key
