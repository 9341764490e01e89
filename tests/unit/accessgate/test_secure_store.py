"""Tests for the secure value store and its backends."""

import os
import stat

import pytest

from accessgate.errors import NotFound, StoreError
from accessgate.secrets import EncryptedFileBackend, MemoryBackend, SecureValueStore, redact

ACCOUNT = "storedVerificationToken"


class RecordingBackend(MemoryBackend):
    """Memory backend that records which primitive was used"""

    def __init__(self):
        super().__init__()
        self.calls = []

    def query(self, account):
        self.calls.append(("query", account))
        return super().query(account)

    def update(self, account, data):
        self.calls.append(("update", account))
        super().update(account, data)

    def insert(self, account, data):
        self.calls.append(("insert", account))
        super().insert(account, data)


def _file_store(tmp_path):
    backend = EncryptedFileBackend(tmp_path / "secrets.json", tmp_path / "secrets.key")
    return SecureValueStore(backend), backend


class TestSecureValueStore:
    def test_read_missing_raises_not_found(self):
        store = SecureValueStore(MemoryBackend())

        with pytest.raises(NotFound):
            store.read(ACCOUNT)

    def test_save_inserts_then_updates(self):
        backend = RecordingBackend()
        store = SecureValueStore(backend)

        store.save(ACCOUNT, "first")
        store.save(ACCOUNT, "second")

        assert backend.calls == [
            ("query", ACCOUNT),
            ("insert", ACCOUNT),
            ("query", ACCOUNT),
            ("update", ACCOUNT),
        ]
        assert store.read(ACCOUNT) == "second"

    def test_round_trip_is_exact(self):
        store = SecureValueStore(MemoryBackend())
        value = "GJDFHDFHFDJGSDAGKGHK ünïcødé #\n"

        store.save(ACCOUNT, value)

        assert store.read(ACCOUNT) == value

    def test_every_read_hits_the_backend(self):
        backend = RecordingBackend()
        store = SecureValueStore(backend)
        store.save(ACCOUNT, "value")
        backend.calls.clear()

        store.read(ACCOUNT)
        store.read(ACCOUNT)

        assert backend.calls == [("query", ACCOUNT), ("query", ACCOUNT)]

    def test_non_utf8_entry_raises_store_error(self):
        backend = MemoryBackend()
        backend.insert(ACCOUNT, b"\xff\xfe")

        with pytest.raises(StoreError):
            SecureValueStore(backend).read(ACCOUNT)


class TestMemoryBackend:
    def test_update_missing_is_rejected(self):
        with pytest.raises(StoreError):
            MemoryBackend().update(ACCOUNT, b"x")

    def test_duplicate_insert_is_rejected(self):
        backend = MemoryBackend()
        backend.insert(ACCOUNT, b"x")

        with pytest.raises(StoreError):
            backend.insert(ACCOUNT, b"y")


class TestEncryptedFileBackend:
    def test_round_trip(self, tmp_path):
        store, _ = _file_store(tmp_path)

        store.save(ACCOUNT, "GJDFHDFHFDJGSDAGKGHK")

        assert store.read(ACCOUNT) == "GJDFHDFHFDJGSDAGKGHK"

    def test_value_survives_a_new_instance(self, tmp_path):
        store, _ = _file_store(tmp_path)
        store.save(ACCOUNT, "persisted")

        reopened, _ = _file_store(tmp_path)

        assert reopened.read(ACCOUNT) == "persisted"

    def test_value_is_encrypted_at_rest(self, tmp_path):
        store, backend = _file_store(tmp_path)

        store.save(ACCOUNT, "GJDFHDFHFDJGSDAGKGHK")

        raw = backend.secrets_file.read_text(encoding="utf-8")
        assert ACCOUNT in raw
        assert "GJDFHDFHFDJGSDAGKGHK" not in raw

    def test_missing_entry_raises_not_found(self, tmp_path):
        store, _ = _file_store(tmp_path)

        with pytest.raises(NotFound):
            store.read(ACCOUNT)

    def test_corrupted_file_raises_store_error(self, tmp_path):
        store, backend = _file_store(tmp_path)
        backend.secrets_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            store.read(ACCOUNT)

    def test_foreign_key_cannot_decrypt(self, tmp_path):
        store, _ = _file_store(tmp_path)
        store.save(ACCOUNT, "secret-value")

        other = SecureValueStore(EncryptedFileBackend(tmp_path / "secrets.json", tmp_path / "other.key"))

        with pytest.raises(StoreError):
            other.read(ACCOUNT)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions only")
    def test_files_are_owner_only(self, tmp_path):
        store, backend = _file_store(tmp_path)
        store.save(ACCOUNT, "value")

        assert stat.S_IMODE(backend.secrets_file.stat().st_mode) == 0o600
        assert stat.S_IMODE(backend.key_file.stat().st_mode) == 0o600

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions only")
    def test_loose_permissions_are_fixed_on_read(self, tmp_path):
        store, backend = _file_store(tmp_path)
        store.save(ACCOUNT, "value")
        backend.secrets_file.chmod(0o644)

        assert store.read(ACCOUNT) == "value"
        assert stat.S_IMODE(backend.secrets_file.stat().st_mode) == 0o600


def test_redact_keeps_last_four_characters():
    assert redact("GJDFHDFHFDJGSDAGKGHK") == "***KGHK"
    assert redact("abc") == "***"
    assert redact("") == "<empty>"


def test_corrupt_key_file_raises_store_error(tmp_path):
    (tmp_path / "secrets.key").write_bytes(b"not-a-fernet-key")

    with pytest.raises(StoreError):
        EncryptedFileBackend(tmp_path / "secrets.json", tmp_path / "secrets.key")


def test_non_object_entry_raises_store_error(tmp_path):
    store, backend = _file_store(tmp_path)
    backend.secrets_file.write_text('{"%s": "oops"}' % ACCOUNT, encoding="utf-8")

    with pytest.raises(StoreError):
        store.read(ACCOUNT)


def test_invalid_utf8_secrets_file_raises_store_error(tmp_path):
    store, backend = _file_store(tmp_path)
    backend.secrets_file.write_bytes(b'{"x": "\xff\xfe"}')

    with pytest.raises(StoreError):
        store.read(ACCOUNT)
