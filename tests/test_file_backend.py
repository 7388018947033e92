"""Tests for the encrypted file backend."""

import base64
import json
import os
from datetime import timedelta

import pytest

from avp_vault import (
    BackendUnavailableError,
    EncryptionError,
    FileBackend,
    IntegrityError,
    SecretNotFoundError,
)
from avp_vault.crypto import (
    HEADER_SIZE,
    IV_SIZE,
    decrypt_envelope,
    derive_key,
    encrypt_envelope,
)
from avp_vault.types import BackendType, utcnow

PASSWORD = "test_password"


def _read_document(path, password=PASSWORD):
    return json.loads(decrypt_envelope(derive_key(password), path.read_bytes()))


class TestEnvelope:

    def test_layout(self):
        key = derive_key("pw")
        blob = encrypt_envelope(key, b"hello")
        assert len(blob) == HEADER_SIZE + len(b"hello")
        assert decrypt_envelope(key, blob) == b"hello"

    def test_fresh_iv_per_call(self):
        key = derive_key("pw")
        first = encrypt_envelope(key, b"same")
        second = encrypt_envelope(key, b"same")
        assert first[:IV_SIZE] != second[:IV_SIZE]

    def test_key_derivation_is_deterministic(self):
        assert derive_key("pw") == derive_key("pw")
        assert derive_key("pw") != derive_key("other")
        assert len(derive_key("pw")) == 32

    def test_tampered_ciphertext(self):
        key = derive_key("pw")
        blob = bytearray(encrypt_envelope(key, b"payload"))
        blob[-1] ^= 0x01
        with pytest.raises(IntegrityError):
            decrypt_envelope(key, bytes(blob))

    def test_tampered_tag(self):
        key = derive_key("pw")
        blob = bytearray(encrypt_envelope(key, b"payload"))
        blob[IV_SIZE] ^= 0x01
        with pytest.raises(IntegrityError):
            decrypt_envelope(key, bytes(blob))

    def test_truncated_envelope(self):
        with pytest.raises(IntegrityError):
            decrypt_envelope(derive_key("pw"), b"\x00" * (HEADER_SIZE - 1))


class TestLoad:

    def test_missing_file_is_not_created_until_mutation(self, vault_path):
        backend = FileBackend(vault_path, password=PASSWORD)
        assert backend.list_secrets("default") == ([], None)
        assert not vault_path.exists()

        backend.store("default", "key", b"value")
        assert vault_path.exists()

    def test_empty_file_is_an_empty_vault(self, vault_path):
        vault_path.write_bytes(b"")
        backend = FileBackend(vault_path, password=PASSWORD)
        assert backend.list_secrets("default") == ([], None)
        assert vault_path.stat().st_size == 0

    def test_wrong_password(self, vault_path):
        backend = FileBackend(vault_path, password="correct")
        backend.store("default", "key", b"value")
        backend.close()

        with pytest.raises(IntegrityError):
            FileBackend(vault_path, password="wrong")

    def test_corrupted_file(self, vault_path):
        backend = FileBackend(vault_path, password=PASSWORD)
        backend.store("default", "key", b"value")
        backend.close()

        blob = bytearray(vault_path.read_bytes())
        blob[HEADER_SIZE + 2] ^= 0xFF
        vault_path.write_bytes(bytes(blob))

        with pytest.raises(IntegrityError):
            FileBackend(vault_path, password=PASSWORD)

    def test_garbage_file(self, vault_path):
        vault_path.write_bytes(b"not a vault")
        with pytest.raises(IntegrityError):
            FileBackend(vault_path, password=PASSWORD)

    def test_authentic_but_not_json(self, vault_path):
        vault_path.write_bytes(encrypt_envelope(derive_key(PASSWORD), b"{nope"))
        with pytest.raises(EncryptionError):
            FileBackend(vault_path, password=PASSWORD)

    def test_authentic_but_not_a_vault_document(self, vault_path):
        vault_path.write_bytes(encrypt_envelope(derive_key(PASSWORD), b"[1, 2]"))
        with pytest.raises(EncryptionError):
            FileBackend(vault_path, password=PASSWORD)


class TestPersistence:

    def test_reopen_reproduces_values_and_metadata(self, vault_path):
        expires = utcnow() + timedelta(days=1)
        backend1 = FileBackend(vault_path, password=PASSWORD)
        backend1.store("default", "key1", b"persistent_value", labels={"env": "prod"})
        backend1.store("default", "key1", b"\x00\xffbinary", labels={"env": "prod"})
        backend1.store("team/a", "key2", b"other", expires_at=expires)
        meta1 = backend1.get_metadata("default", "key1")
        backend1.close()

        backend2 = FileBackend(vault_path, password=PASSWORD)
        assert backend2.retrieve("default", "key1") == (b"\x00\xffbinary", 2)
        assert backend2.retrieve("team/a", "key2") == (b"other", 1)
        assert backend2.get_metadata("default", "key1") == meta1
        assert backend2.get_metadata("team/a", "key2").expires_at == expires
        backend2.close()

    def test_on_disk_document(self, file_backend, vault_path):
        file_backend.store("default", "key", b"value", labels={"a": "b"})
        data = _read_document(vault_path)

        assert data["version"] == 1
        record = data["workspaces"]["default"]["key"]
        assert base64.b64decode(record["value"]) == b"value"
        assert record["metadata"]["version"] == 1
        assert record["metadata"]["backend"] == "file"
        assert record["metadata"]["labels"] == {"a": "b"}
        assert record["metadata"]["expires_at"] is None

    def test_plaintext_not_on_disk(self, file_backend, vault_path):
        file_backend.store("default", "key", b"very-secret-marker")
        assert b"very-secret-marker" not in vault_path.read_bytes()

    def test_every_mutation_rewrites_with_fresh_iv(self, file_backend, vault_path):
        file_backend.store("default", "key", b"value")
        first = vault_path.read_bytes()
        file_backend.store("default", "key", b"value")
        second = vault_path.read_bytes()
        assert first[:IV_SIZE] != second[:IV_SIZE]

    def test_delete_is_persisted(self, file_backend, vault_path):
        file_backend.store("default", "key", b"value")
        file_backend.delete("default", "key")
        assert "key" not in _read_document(vault_path)["workspaces"]["default"]

    def test_expiry_eviction_is_persisted(self, file_backend, vault_path):
        past = utcnow() - timedelta(minutes=1)
        file_backend.store("default", "old", b"value", expires_at=past)
        file_backend.list_secrets("default")
        assert _read_document(vault_path)["workspaces"]["default"] == {}


class TestSave:

    def test_file_permissions(self, file_backend, vault_path):
        file_backend.store("default", "key", b"value")
        assert os.stat(vault_path).st_mode & 0o777 == 0o600

    def test_no_temp_files_left_behind(self, file_backend, vault_path):
        for i in range(3):
            file_backend.store("default", f"key{i}", b"value")
        file_backend.delete("default", "key0")
        assert os.listdir(vault_path.parent) == [vault_path.name]

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "vault.enc"
        backend = FileBackend(path, password=PASSWORD)
        backend.store("default", "key", b"value")
        assert path.exists()

    def test_save_failure_raises_encryption_error(self, tmp_path, monkeypatch):
        backend = FileBackend(tmp_path / "vault.enc", password=PASSWORD)

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", fail)
        with pytest.raises(EncryptionError):
            backend.store("default", "key", b"value")
        assert os.listdir(tmp_path) == []

        monkeypatch.undo()
        with pytest.raises(SecretNotFoundError):
            backend.retrieve("default", "key")
        assert backend.store("default", "key", b"value") == (True, 1)

    def test_failed_save_keeps_previous_state(self, file_backend, vault_path, monkeypatch):
        file_backend.store("default", "keep", b"v1")
        file_backend.store("default", "gone", b"v1")
        on_disk = vault_path.read_bytes()

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", fail)
        with pytest.raises(EncryptionError):
            file_backend.store("default", "keep", b"v2")
        with pytest.raises(EncryptionError):
            file_backend.delete("default", "gone")
        monkeypatch.undo()

        assert vault_path.read_bytes() == on_disk
        assert file_backend.retrieve("default", "keep") == (b"v1", 1)
        assert file_backend.retrieve("default", "gone") == (b"v1", 1)

        file_backend.close()
        reopened = FileBackend(vault_path, password=PASSWORD)
        assert reopened.retrieve("default", "keep") == (b"v1", 1)
        assert reopened.retrieve("default", "gone") == (b"v1", 1)


class TestFileBackend:

    def test_backend_type(self, file_backend):
        assert file_backend.backend_type == BackendType.FILE
        assert file_backend.backend_id == "file-0"

    def test_info(self, file_backend, vault_path):
        info = file_backend.get_info()
        assert info["path"] == str(vault_path)
        assert info["encryption"] == "AES-256-GCM"

    def test_close_saves_and_blocks_further_use(self, vault_path):
        backend = FileBackend(vault_path, password=PASSWORD)
        backend.close()
        assert vault_path.exists()
        assert _read_document(vault_path) == {"version": 1, "workspaces": {}}

        with pytest.raises(BackendUnavailableError):
            backend.store("default", "key", b"value")
        backend.close()

    def test_same_password_same_key_across_vaults(self, tmp_path):
        a = FileBackend(tmp_path / "a.enc", password=PASSWORD)
        a.store("default", "key", b"value")
        a.close()

        # Fixed salt: a vault's file can be opened by any store with the same password
        (tmp_path / "b.enc").write_bytes((tmp_path / "a.enc").read_bytes())
        b = FileBackend(tmp_path / "b.enc", password=PASSWORD)
        assert b.retrieve("default", "key")[0] == b"value"
