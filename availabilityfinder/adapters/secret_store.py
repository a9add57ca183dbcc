"""
Secret stores holding per-person OAuth credential pairs.

Each write replaces the whole pair at once. Concurrent refreshes for the
same person are last-write-wins; no cross-process lock is taken.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict

import keyring
from keyring.errors import KeyringError

from ..domain.exceptions import CredentialNotFoundError, SecretStoreError
from .base import TokenPair

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "availabilityfinder"
DEFAULT_SECRETS_FILE = Path.home() / ".availabilityfinder_credentials.json"


def _require_access_token(person_id: str, pair: TokenPair) -> TokenPair:
    if not pair.access_token:
        raise CredentialNotFoundError(f"No access token stored for {person_id}")
    return pair


class KeyringSecretStore:
    """Stores each person's pair as one JSON entry in the OS keyring."""

    def __init__(self, service_name: str = KEYRING_SERVICE_NAME):
        self.service_name = service_name

    def read_credentials(self, person_id: str) -> TokenPair:
        try:
            raw = keyring.get_password(self.service_name, person_id)
        except KeyringError as exc:
            raise SecretStoreError(f"Reading credentials for {person_id} failed: {exc}") from exc

        if raw is None:
            raise CredentialNotFoundError(f"No credentials stored for {person_id}")

        return _require_access_token(person_id, TokenPair.from_json(raw))

    def write_credentials(self, person_id: str, pair: TokenPair) -> None:
        try:
            keyring.set_password(self.service_name, person_id, pair.to_json())
        except KeyringError as exc:
            raise SecretStoreError(f"Writing credentials for {person_id} failed: {exc}") from exc

    def delete_credentials(self, person_id: str) -> None:
        try:
            keyring.delete_password(self.service_name, person_id)
        except KeyringError as exc:
            logger.warning("Could not remove credentials for %s from keyring: %s", person_id, exc)


class FileSecretStore:
    """
    Plaintext JSON file keyed by person id, readable by the owner only.

    Writes go to a temporary file that atomically replaces the original.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path or DEFAULT_SECRETS_FILE).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as file_handle:
                data = json.load(file_handle)
        except (OSError, ValueError) as exc:
            raise SecretStoreError(f"Could not load secrets file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise SecretStoreError(f"Secrets file {self.path} must contain a mapping")
        return data

    def read_credentials(self, person_id: str) -> TokenPair:
        with self._lock:
            entry = self._load().get(person_id)

        if entry is None:
            raise CredentialNotFoundError(f"No credentials stored for {person_id}")

        return _require_access_token(person_id, TokenPair.from_mapping(entry))

    def write_credentials(self, person_id: str, pair: TokenPair) -> None:
        with self._lock:
            data = self._load()
            data[person_id] = json.loads(pair.to_json())
            self._save(data)

    def delete_credentials(self, person_id: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(person_id, None) is not None:
                self._save(data)

    def _save(self, data: Dict[str, Dict[str, str]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".secrets-")
        except OSError as exc:
            raise SecretStoreError(f"Could not save secrets to {self.path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_handle:
                json.dump(data, file_handle, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            # The temporary file must not outlive a failed write
            Path(tmp_name).unlink(missing_ok=True)
            raise SecretStoreError(f"Could not save secrets to {self.path}: {exc}") from exc


class InMemorySecretStore:
    """Process-local store for tests and mock mode."""

    def __init__(self, initial: Dict[str, TokenPair] | None = None):
        self._pairs: Dict[str, TokenPair] = dict(initial or {})
        self._lock = threading.Lock()
        self.writes = 0

    def read_credentials(self, person_id: str) -> TokenPair:
        with self._lock:
            pair = self._pairs.get(person_id)

        if pair is None:
            raise CredentialNotFoundError(f"No credentials stored for {person_id}")

        return _require_access_token(person_id, pair)

    def write_credentials(self, person_id: str, pair: TokenPair) -> None:
        with self._lock:
            self._pairs[person_id] = pair
            self.writes += 1

    def delete_credentials(self, person_id: str) -> None:
        with self._lock:
            self._pairs.pop(person_id, None)
