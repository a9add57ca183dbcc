"""
Tests for the secret store backends.
"""

import json
import os
import stat

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from availabilityfinder.adapters import secret_store
from availabilityfinder.adapters.base import TokenPair
from availabilityfinder.adapters.secret_store import (
    FileSecretStore,
    InMemorySecretStore,
    KeyringSecretStore,
)
from availabilityfinder.config import AppConfig
from availabilityfinder.domain.exceptions import CredentialNotFoundError, SecretStoreError
from availabilityfinder.services.factory import build_secret_store


class FakeKeyring:
    """Dictionary-backed replacement for the keyring module functions."""

    def __init__(self, fail=False):
        self.entries = {}
        self.fail = fail

    def get_password(self, service, username):
        if self.fail:
            raise KeyringError("locked")
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        if self.fail:
            raise KeyringError("locked")
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        if (service, username) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, username)]


class TestTokenPair:
    def test_json_shape(self):
        data = json.loads(TokenPair("a", "r").to_json())

        assert data["accessToken"] == "a"
        assert data["refreshToken"] == "r"
        assert "updatedAt" in data

    def test_malformed_json(self):
        with pytest.raises(SecretStoreError):
            TokenPair.from_json("{not json")

    def test_missing_access_token_key(self):
        with pytest.raises(SecretStoreError):
            TokenPair.from_mapping({"refreshToken": "r"})


class TestKeyringSecretStore:
    """Tests for the OS keyring backend."""

    @pytest.fixture
    def fake_keyring(self, monkeypatch):
        fake = FakeKeyring()
        monkeypatch.setattr(secret_store, "keyring", fake)
        return fake

    def test_write_then_read(self, fake_keyring):
        store = KeyringSecretStore()

        store.write_credentials("alice", TokenPair("a1", "r1"))

        assert store.read_credentials("alice") == TokenPair("a1", "r1")
        assert ("availabilityfinder", "alice") in fake_keyring.entries

    def test_missing_entry(self, fake_keyring):
        with pytest.raises(CredentialNotFoundError):
            KeyringSecretStore().read_credentials("bob")

    def test_empty_access_token(self, fake_keyring):
        fake_keyring.entries[("availabilityfinder", "alice")] = json.dumps(
            {"accessToken": "", "refreshToken": "r1"}
        )

        with pytest.raises(CredentialNotFoundError):
            KeyringSecretStore().read_credentials("alice")

    def test_backend_failure(self, monkeypatch):
        monkeypatch.setattr(secret_store, "keyring", FakeKeyring(fail=True))

        with pytest.raises(SecretStoreError):
            KeyringSecretStore().read_credentials("alice")

    def test_delete_missing_is_logged(self, fake_keyring):
        KeyringSecretStore().delete_credentials("nobody")


class TestFileSecretStore:
    """Tests for the JSON file backend."""

    def test_write_then_read(self, tmp_path):
        store = FileSecretStore(tmp_path / "secrets.json")

        store.write_credentials("alice", TokenPair("a1", "r1"))
        store.write_credentials("bob", TokenPair("b1"))

        assert store.read_credentials("alice") == TokenPair("a1", "r1")
        assert store.read_credentials("bob") == TokenPair("b1", None)

    def test_file_is_private(self, tmp_path):
        path = tmp_path / "secrets.json"

        FileSecretStore(path).write_credentials("alice", TokenPair("a1", "r1"))

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_overwrite_replaces_pair(self, tmp_path):
        store = FileSecretStore(tmp_path / "secrets.json")
        store.write_credentials("alice", TokenPair("a1", "r1"))

        store.write_credentials("alice", TokenPair("a2", "r2"))

        assert store.read_credentials("alice") == TokenPair("a2", "r2")

    def test_missing_file(self, tmp_path):
        with pytest.raises(CredentialNotFoundError):
            FileSecretStore(tmp_path / "nothing.json").read_credentials("alice")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("[1, 2", encoding="utf-8")

        with pytest.raises(SecretStoreError):
            FileSecretStore(path).read_credentials("alice")

    def test_home_relative_path(self, tmp_path, monkeypatch):
        """A configured ~ path lands in the home directory, not a literal ~ folder."""
        home = tmp_path / "home"
        workdir = tmp_path / "work"
        home.mkdir()
        workdir.mkdir()
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.chdir(workdir)
        config = AppConfig(secret_store={"backend": "file", "path": "~/.af_credentials.json"})

        build_secret_store(config).write_credentials("alice", TokenPair("a1", "r1"))

        assert (home / ".af_credentials.json").exists()
        assert not (workdir / "~").exists()

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        def refuse_chmod(path, mode):
            raise OSError("read-only")

        monkeypatch.setattr(os, "chmod", refuse_chmod)
        store = FileSecretStore(tmp_path / "secrets.json")

        with pytest.raises(SecretStoreError):
            store.write_credentials("alice", TokenPair("a1", "r1"))

        assert list(tmp_path.iterdir()) == []

    def test_delete(self, tmp_path):
        store = FileSecretStore(tmp_path / "secrets.json")
        store.write_credentials("alice", TokenPair("a1", "r1"))

        store.delete_credentials("alice")

        with pytest.raises(CredentialNotFoundError):
            store.read_credentials("alice")


class TestInMemorySecretStore:
    def test_counts_writes(self):
        store = InMemorySecretStore({"alice": TokenPair("a1", "r1")})

        store.write_credentials("alice", TokenPair("a2", "r1"))

        assert store.writes == 1
        assert store.read_credentials("alice").access_token == "a2"

    def test_missing(self):
        with pytest.raises(CredentialNotFoundError):
            InMemorySecretStore().read_credentials("alice")
