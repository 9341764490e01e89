"""
Secure Value Store - at-rest protected storage for the verification token

Security Requirements:
1. Values encrypted at rest with Fernet (AES-128-CBC + HMAC)
2. Secrets file and key file permissions must be 0600 (owner read/write only)
3. Secret values never appear in logs or errors (only last-4 redaction)
4. Atomic write operations (tmp file + rename)
5. No in-memory caching: every read/write touches the backing file
"""

import json
import logging
import os
import stat
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from accessgate.errors import NotFound, StoreError
from accessgate.reasons import ReasonCode

logger = logging.getLogger(__name__)

_OWNER_RW = stat.S_IRUSR | stat.S_IWUSR


def redact(value: str) -> str:
    """Redact a secret for log output, keeping the last 4 characters"""
    if not value:
        return "<empty>"
    if len(value) <= 4:
        return "***"
    return f"***{value[-4:]}"


class SecretBackend(ABC):
    """
    Platform secret storage primitives.

    Mirrors the query/update/insert operations of an OS credential vault.
    Every method raises StoreError when the backend rejects the operation.
    """

    @abstractmethod
    def query(self, account: str) -> Optional[bytes]:
        """Return the stored bytes for account, or None if absent"""

    @abstractmethod
    def update(self, account: str, data: bytes) -> None:
        """Replace an existing entry (StoreError if absent)"""

    @abstractmethod
    def insert(self, account: str, data: bytes) -> None:
        """Create a new entry (StoreError if already present)"""


class MemoryBackend(SecretBackend):
    """Process-local backend for tests and ephemeral runs"""

    def __init__(self):
        self._items: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def query(self, account: str) -> Optional[bytes]:
        with self._lock:
            return self._items.get(account)

    def update(self, account: str, data: bytes) -> None:
        with self._lock:
            if account not in self._items:
                raise StoreError(f"No entry to update for account {account!r}")
            self._items[account] = bytes(data)

    def insert(self, account: str, data: bytes) -> None:
        with self._lock:
            if account in self._items:
                raise StoreError(f"Duplicate entry for account {account!r}")
            self._items[account] = bytes(data)


class EncryptedFileBackend(SecretBackend):
    """
    Encrypted-file backend for platforms without a usable credential vault

    Architecture:
    - Single JSON file mapping account -> {value, updated_at}
    - Values are Fernet tokens; the key lives in a separate 0600 key file
    - Atomic writes via tmp file
    """

    def __init__(self, secrets_file: Path, key_file: Optional[Path] = None):
        self.secrets_file = Path(secrets_file)
        self.key_file = Path(key_file) if key_file else self.secrets_file.with_suffix(".key")
        self._lock = threading.Lock()

        try:
            self.secrets_file.parent.mkdir(parents=True, exist_ok=True)
            self._fernet = Fernet(self._load_or_create_key())
            if not self.secrets_file.exists():
                self._write_entries({})
                logger.info(f"Initialized secrets file: {self.secrets_file}")
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot initialize secrets file {self.secrets_file}: {e}") from e

    def _load_or_create_key(self) -> bytes:
        """Initialize or load encryption key"""
        if self.key_file.exists():
            self._verify_permissions(self.key_file)
            return self.key_file.read_bytes()

        key = Fernet.generate_key()
        self.key_file.write_bytes(key)
        # Secure the key file (Unix only)
        if os.name != 'nt':
            os.chmod(self.key_file, _OWNER_RW)
        return key

    def _verify_permissions(self, path: Path) -> None:
        """
        Verify file has 0600 permissions, fixing them when possible

        Raises:
            StoreError: If permissions are too open and cannot be fixed
        """
        if os.name == 'nt' or not path.exists():
            return

        file_mode = stat.S_IMODE(path.stat().st_mode)
        if file_mode == _OWNER_RW:
            return

        try:
            path.chmod(_OWNER_RW)
            logger.warning(f"Fixed secrets file permissions: {path} -> {oct(_OWNER_RW)}")
        except OSError as e:
            raise StoreError(
                f"Secrets file has insecure permissions: {oct(file_mode)}. Fix with: chmod 600 {path}",
                ReasonCode.PERMISSION_NOT_600,
            ) from e

    def _read_entries(self) -> Dict[str, Dict[str, str]]:
        try:
            self._verify_permissions(self.secrets_file)
            with open(self.secrets_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            raise StoreError(f"Failed to read secrets file: {e}") from e

        if not isinstance(data, dict):
            raise StoreError("Corrupted secrets file: top level is not an object")
        return data

    def _write_entries(self, entries: Dict[str, Dict[str, str]]) -> None:
        """Write entries to file (atomic operation)"""
        tmp_file = self.secrets_file.with_suffix('.tmp')
        try:
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump(entries, f, indent=2)
            if os.name != 'nt':
                tmp_file.chmod(_OWNER_RW)
            os.replace(tmp_file, self.secrets_file)
        except OSError as e:
            raise StoreError(f"Failed to write secrets file: {e}") from e

        logger.debug(f"Saved secrets for accounts: {list(entries.keys())}")

    def query(self, account: str) -> Optional[bytes]:
        with self._lock:
            entry = self._read_entries().get(account)
        if entry is None:
            return None
        if not isinstance(entry, dict):
            raise StoreError(f"Stored entry for account {account!r} is malformed")
        try:
            return self._fernet.decrypt(entry["value"].encode("ascii"))
        except (InvalidToken, KeyError, TypeError, AttributeError, UnicodeEncodeError) as e:
            raise StoreError(f"Stored entry for account {account!r} cannot be decrypted") from e

    def _put(self, account: str, data: bytes, must_exist: bool) -> None:
        with self._lock:
            entries = self._read_entries()
            if must_exist and account not in entries:
                raise StoreError(f"No entry to update for account {account!r}")
            if not must_exist and account in entries:
                raise StoreError(f"Duplicate entry for account {account!r}")
            entries[account] = {
                "value": self._fernet.encrypt(data).decode("ascii"),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self._write_entries(entries)

    def update(self, account: str, data: bytes) -> None:
        self._put(account, data, must_exist=True)

    def insert(self, account: str, data: bytes) -> None:
        self._put(account, data, must_exist=False)


class SecureValueStore:
    """
    Key/value secret store with upsert semantics

    save() queries the backend, updates an existing entry or inserts a new
    one. read() raises NotFound for an absent entry. Nothing is cached.
    """

    def __init__(self, backend: SecretBackend):
        self.backend = backend

    def save(self, key: str, value: str) -> None:
        """
        Save or update a secret value

        Raises:
            StoreError: If the backend rejects the operation
        """
        data = value.encode("utf-8")
        if self.backend.query(key) is not None:
            self.backend.update(key, data)
        else:
            self.backend.insert(key, data)
        logger.info(f"Saved secret for account: {key} (value: {redact(value)})")

    def read(self, key: str) -> str:
        """
        Read a secret value

        Raises:
            NotFound: If no entry exists for key
            StoreError: If the backend rejects the operation
        """
        data = self.backend.query(key)
        if data is None:
            raise NotFound(f"No secret stored for account {key!r}")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StoreError(f"Secret for account {key!r} is not valid UTF-8") from e
