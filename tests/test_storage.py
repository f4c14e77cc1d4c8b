"""
Tests for snapshot storage backends and the snapshot codec.
"""

import json

import pytest
from decimal import Decimal

from finanz.config import StorageSettings
from finanz.models.transaction import UserMode
from finanz.services.storage import (
    InMemoryStore,
    JsonFileStore,
    SerializationError,
    StorageError,
)
from finanz.services.storage import snapshots


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(settings=StorageSettings(data_dir=tmp_path, write_attempts=3))


class TestJsonFileStore:
    """Tests for the file-per-key backend."""

    def test_write_then_read(self, file_store, tmp_path):
        """Test a written blob is read back unchanged."""
        file_store.write("transactions", b"[]")
        assert file_store.read("transactions") == b"[]"
        assert (tmp_path / "transactions.json").read_bytes() == b"[]"

    def test_missing_key_reads_none(self, file_store):
        """Test an unknown key is absent, not an error."""
        assert file_store.read("userMode") is None

    def test_write_replaces_whole_blob(self, file_store):
        """Test a second write overwrites the first."""
        file_store.write("userMode", b'"basic"')
        file_store.write("userMode", b'"zzp"')
        assert file_store.read("userMode") == b'"zzp"'

    def test_no_temp_files_left(self, file_store, tmp_path):
        """Test atomic writes clean up after themselves."""
        file_store.write("transactions", b"[1]")
        assert [p.name for p in tmp_path.iterdir()] == ["transactions.json"]

    def test_creates_missing_directory(self, tmp_path):
        """Test the data directory is created on first write."""
        store = JsonFileStore(tmp_path / "nested" / "data", settings=StorageSettings())
        store.write("weeklyBudget", b'"500"')
        assert store.read("weeklyBudget") == b'"500"'

    def test_delete(self, file_store):
        """Test delete reports whether something was removed."""
        file_store.write("monthlyBudget", b'"2000"')
        assert file_store.delete("monthlyBudget") is True
        assert file_store.delete("monthlyBudget") is False
        assert file_store.read("monthlyBudget") is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "with space"])
    def test_invalid_keys_rejected(self, file_store, key):
        """Test keys cannot address files outside the data directory."""
        with pytest.raises(StorageError, match="Invalid storage key"):
            file_store.read(key)

    def test_transient_write_error_is_retried(self, file_store, monkeypatch):
        """Test an OSError on the first attempt is retried."""
        real_write = JsonFileStore._write_atomic
        calls = []

        def flaky(self, path, data):
            calls.append(path)
            if len(calls) == 1:
                raise OSError("resource busy")
            real_write(self, path, data)

        monkeypatch.setattr(JsonFileStore, "_write_atomic", flaky)
        file_store.write("transactions", b"[]")

        assert len(calls) == 2
        assert file_store.read("transactions") == b"[]"

    def test_persistent_write_error_raises_storage_error(self, tmp_path, monkeypatch):
        """Test exhausted retries surface as StorageError."""
        store = JsonFileStore(settings=StorageSettings(data_dir=tmp_path, write_attempts=2))
        calls = []

        def broken(self, path, data):
            calls.append(path)
            raise OSError("read-only file system")

        monkeypatch.setattr(JsonFileStore, "_write_atomic", broken)
        with pytest.raises(StorageError, match="read-only"):
            store.write("transactions", b"[]")
        assert len(calls) == 2


class TestInMemoryStore:
    """Tests for the dict-backed backend."""

    def test_basic_operations(self):
        """Test read, write, delete and write counting."""
        store = InMemoryStore({"userMode": b'"basic"'})
        store.write("transactions", b"[]")
        store.write("transactions", b"[1]")
        assert store.read("transactions") == b"[1]"
        assert store.write_counts == {"transactions": 2}
        assert store.keys() == ["transactions", "userMode"]
        assert store.delete("userMode") is True
        assert store.read("userMode") is None


class TestSnapshotCodec:
    """Tests for encoding and decoding snapshot blobs."""

    def test_amounts_keep_precision(self):
        """Test amounts are written as decimal strings."""
        data = snapshots.encode_amount(Decimal("1234.56"))
        assert json.loads(data) == "1234.56"
        assert snapshots.decode_amount(data) == Decimal("1234.56")

    def test_legacy_numeric_amount(self):
        """Test bare JSON numbers are accepted."""
        assert snapshots.decode_amount(b"1500.5") == Decimal("1500.5")

    @pytest.mark.parametrize("blob", [b"true", b"null", b'"abc"', b'"-1"', b"[]", b'"NaN"'])
    def test_invalid_amounts(self, blob):
        """Test unusable budget blobs are rejected."""
        with pytest.raises(SerializationError):
            snapshots.decode_amount(blob)

    def test_user_mode(self):
        """Test user mode values, including legacy ones."""
        assert snapshots.decode_user_mode(snapshots.encode_user_mode(UserMode.ZZP)) is UserMode.ZZP
        assert snapshots.decode_user_mode('"Básico"'.encode()) is UserMode.BASIC
        with pytest.raises(SerializationError, match="Unknown user mode"):
            snapshots.decode_user_mode(b'"enterprise"')

    def test_not_json(self):
        """Test garbage bytes raise SerializationError."""
        with pytest.raises(SerializationError, match="Invalid JSON"):
            snapshots.decode_transactions(b"\xff\xfe")

    def test_transactions_must_be_a_list(self):
        """Test a non-list transactions blob is rejected as a whole."""
        with pytest.raises(SerializationError, match="Expected a list"):
            snapshots.decode_transactions(b"{}")

    def test_empty_lists(self):
        """Test empty collections round-trip."""
        assert snapshots.decode_transactions(snapshots.encode_transactions([])) == []
        assert snapshots.decode_categories(snapshots.encode_categories([])) == []
