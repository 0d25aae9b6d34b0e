"""
Tests for VaultRecord and its bucket metadata codec.

Tests cover:
- Field normalization (display name default, signer de-duplication)
- Metadata round-trip
- Decoding old or partial metadata with defaults
"""
from datetime import datetime, timedelta, timezone

import pytest

from xvault.exceptions import CorruptRecord
from xvault.record import SCHEMA_VERSION, VaultRecord


@pytest.fixture
def full_record(user1, user2):
    created = datetime(2025, 3, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
    return VaultRecord(
        vault_id="orders",
        owner_key=user1.public_key,
        display_name="Orders",
        description="Order secrets",
        signers=[user2.public_key],
        expires_at=created + timedelta(days=30),
        created_at=created,
        updated_at=created + timedelta(hours=1),
    )


class TestVaultRecordFields:
    """Tests for record construction."""

    def test_display_name_defaults_to_vault_id(self):
        """Missing display name falls back to the vault id."""
        record = VaultRecord(vault_id="orders", owner_key="owner")
        assert record.display_name == "orders"

    def test_signers_are_deduplicated(self):
        """Duplicate and blank signers are dropped, order kept."""
        record = VaultRecord(vault_id="orders", signers=["b", "a", "b", " ", "a"])
        assert record.signers == ["b", "a"]

    def test_signers_from_delimited_string(self):
        """A comma-joined signer string is accepted."""
        record = VaultRecord(vault_id="orders", signers="a,b,,a")
        assert record.signers == ["a", "b"]

    def test_naive_timestamps_become_utc(self):
        """Naive datetimes are treated as UTC."""
        record = VaultRecord(vault_id="orders", created_at=datetime(2025, 1, 1))
        assert record.created_at.tzinfo == timezone.utc

    def test_is_signer(self, full_record, user1, user2, root):
        """Owner and listed signers are signers; others are not."""
        assert full_record.is_signer(user1.public_key)
        assert full_record.is_signer(user2.public_key)
        assert not full_record.is_signer(root.public_key)
        assert not full_record.is_signer("")

    def test_is_expired(self):
        """Expiry in the past marks the record expired."""
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert VaultRecord(vault_id="v", expires_at=past).is_expired()
        assert not VaultRecord(vault_id="v").is_expired()


class TestVaultRecordMetadata:
    """Tests for the flat metadata codec."""

    def test_round_trip(self, full_record):
        """Serialize then deserialize yields an equal record."""
        metadata = full_record.to_metadata()
        assert all(isinstance(v, str) for v in metadata.values())
        assert VaultRecord.from_metadata("orders", metadata) == full_record

    def test_metadata_layout(self, full_record, user1, user2):
        """Stored keys match the bucket metadata layout."""
        metadata = full_record.to_metadata()
        assert metadata["schemaVersion"] == str(SCHEMA_VERSION)
        assert metadata["ownerKey"] == user1.public_key
        assert metadata["displayName"] == "Orders"
        assert metadata["signers"] == user2.public_key
        assert metadata["createdAt"] == "2025-03-01T12:30:15.123456+00:00"

    def test_optional_fields_omitted(self):
        """Empty optional fields are not written."""
        metadata = VaultRecord(vault_id="orders", owner_key="owner").to_metadata()
        assert "signers" not in metadata
        assert "expires" not in metadata
        assert "updatedAt" not in metadata
        assert "description" not in metadata
        assert "createdAt" in metadata

    def test_missing_fields_use_defaults(self):
        """Partial metadata from older vaults still decodes."""
        record = VaultRecord.from_metadata("legacy", {"ownerKey": "owner"})
        assert record.owner_key == "owner"
        assert record.display_name == "legacy"
        assert record.signers == []
        assert record.created_at is None
        assert record.expires_at is None

    def test_bad_timestamp_uses_default(self):
        """Unparsable timestamps decode to None instead of failing."""
        record = VaultRecord.from_metadata(
            "orders", {"ownerKey": "owner", "expires": "next tuesday"}
        )
        assert record.expires_at is None

    def test_owner_only_metadata(self, user1):
        """Metadata with just an owner decodes with defaults."""
        record = VaultRecord.from_metadata("orders", {"ownerKey": user1.public_key})
        assert record.vault_id == "orders"
        assert record.owner_key == user1.public_key
        assert record.display_name == "orders"
        assert record.signers == []

    @pytest.mark.parametrize("metadata", [{}, {"ownerKey": ""}, {"displayName": "Orders"}])
    def test_missing_owner_is_corrupt(self, metadata):
        """Metadata without an owner is rejected."""
        with pytest.raises(CorruptRecord):
            VaultRecord.from_metadata("orders", metadata)
