"""Encrypted file backend for AVP."""

import base64
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from avp_vault.crypto import decrypt_envelope, derive_key, encrypt_envelope
from avp_vault.types import (
    DEFAULT_LIST_LIMIT,
    BackendType,
    Capabilities,
    Limits,
    Secret,
    SecretMetadata,
    as_utc,
    utcnow,
)
from avp_vault.backends.base import (
    BackendBase,
    is_expired,
    matches_labels,
    paginate,
)
from avp_vault.errors import (
    BackendUnavailableError,
    EncryptionError,
    SecretNotFoundError,
)

logger = logging.getLogger("avp_vault.backends.file")

STORED_DATA_VERSION = 1


def _empty_data() -> Dict[str, Any]:
    return {"version": STORED_DATA_VERSION, "workspaces": {}}


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


def _record_metadata(record: Dict[str, Any]) -> SecretMetadata:
    """Build SecretMetadata from a stored record."""
    meta = record["metadata"]
    return SecretMetadata(
        created_at=_parse_time(meta["created_at"]),
        updated_at=_parse_time(meta["updated_at"]),
        backend=BackendType.FILE,
        version=meta["version"],
        labels=dict(meta.get("labels") or {}),
        expires_at=_parse_time(meta.get("expires_at")),
    )


def _record_expired(record: Dict[str, Any], now: datetime) -> bool:
    return is_expired(_parse_time(record["metadata"].get("expires_at")), now)


class FileBackend(BackendBase):
    """
    Encrypted file-based backend.

    The whole vault is held in memory as one document of the form
    ``{"version": 1, "workspaces": {ws: {name: record}}}`` and rewritten
    to disk as a single AES-256-GCM envelope after every mutation. The
    encryption key is derived from a password using scrypt.

    There is no cross-process locking: two processes writing the same
    vault file will overwrite each other's changes.
    """

    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        password: str,
        backend_id: str = "file-0",
    ):
        """
        Initialize the file backend.

        Args:
            path: Path to the secrets file
            password: Encryption password
            backend_id: Unique backend identifier

        Raises:
            IntegrityError: The file does not authenticate under this password
            EncryptionError: The file cannot be read or decoded
        """
        self._path = Path(path)
        self._backend_id = backend_id
        self._lock = threading.RLock()
        self._closed = False

        # Derive encryption key from password
        self._key = derive_key(password)

        # Load or create the secrets file
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load secrets from file."""
        if not self._path.exists() or self._path.stat().st_size == 0:
            logger.debug("No vault at %s, starting empty", self._path)
            return _empty_data()

        try:
            blob = self._path.read_bytes()
        except OSError as e:
            raise EncryptionError(f"Failed to read secrets file: {e}") from e

        plaintext = decrypt_envelope(self._key, blob)

        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise EncryptionError(f"Failed to decode secrets file: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("workspaces"), dict):
            raise EncryptionError("Secrets file is not a vault document")

        logger.debug(
            "Loaded vault %s (%d workspace(s))", self._path, len(data["workspaces"])
        )
        return data

    def _save(self, data: Optional[Dict[str, Any]] = None) -> None:
        """Encrypt the whole vault and swap it into place."""
        if data is None:
            data = self._data
        payload = json.dumps(data, separators=(",", ":")).encode("utf-8")
        blob = encrypt_envelope(self._key, payload)

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(blob)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(temp_path, self._path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise

            # Set restrictive permissions
            os.chmod(self._path, 0o600)
        except OSError as e:
            raise EncryptionError(f"Failed to save secrets file: {e}") from e

        logger.debug("Saved vault %s (%d bytes)", self._path, len(blob))

    def _ensure_open(self) -> None:
        if self._closed:
            raise BackendUnavailableError(f"Backend '{self._backend_id}' is closed")

    def _workspace(self, workspace: str) -> Dict[str, Any]:
        return self._data["workspaces"].get(workspace, {})

    def _commit(self, workspace: str, ws: Dict[str, Any]) -> None:
        """
        Persist a changed copy of one workspace, then adopt it.

        ``self._data`` is left untouched if the save fails.
        """
        data = dict(self._data)
        data["workspaces"] = dict(self._data["workspaces"])
        data["workspaces"][workspace] = ws
        self._save(data)
        self._data = data

    def _live_record(self, workspace: str, name: str) -> Dict[str, Any]:
        """Look up a record, evicting and persisting if it has expired."""
        ws = self._workspace(workspace)
        if name not in ws:
            raise SecretNotFoundError(f"Secret '{name}' not found")

        record = ws[name]
        if _record_expired(record, utcnow()):
            remaining = dict(ws)
            del remaining[name]
            self._commit(workspace, remaining)
            raise SecretNotFoundError(f"Secret '{name}' not found")
        return record

    @property
    def path(self) -> Path:
        return self._path

    @property
    def backend_type(self) -> BackendType:
        return BackendType.FILE

    @property
    def backend_id(self) -> str:
        return self._backend_id

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(
            attestation=False,
            rotation=True,
            injection=False,
            audit=True,
            migration=True,
            implicit_sessions=True,
            expiration=True,
            versioning=True,
        )

    @property
    def limits(self) -> Limits:
        return Limits(max_secrets_per_workspace=10000)

    def get_info(self) -> Dict[str, str]:
        return {
            "path": str(self._path),
            "encryption": "AES-256-GCM",
            "kdf": "scrypt",
        }

    def store(
        self,
        workspace: str,
        name: str,
        value: bytes,
        labels: Optional[Dict[str, str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[bool, int]:
        with self._lock:
            self._ensure_open()
            ws = dict(self._workspace(workspace))

            now = utcnow()
            created = name not in ws

            if created:
                version = 1
                created_at = now.isoformat()
            else:
                version = ws[name]["metadata"]["version"] + 1
                created_at = ws[name]["metadata"]["created_at"]

            # Store value as base64
            ws[name] = {
                "value": base64.b64encode(value).decode("ascii"),
                "metadata": {
                    "created_at": created_at,
                    "updated_at": now.isoformat(),
                    "backend": BackendType.FILE.value,
                    "version": version,
                    "labels": dict(labels or {}),
                    "expires_at": as_utc(expires_at).isoformat() if expires_at else None,
                },
            }

            self._commit(workspace, ws)
            return created, version

    def retrieve(
        self,
        workspace: str,
        name: str,
        version: Optional[int] = None,
    ) -> Tuple[bytes, int]:
        with self._lock:
            self._ensure_open()
            record = self._live_record(workspace, name)
            current = record["metadata"]["version"]

            if version is not None and version != current:
                raise SecretNotFoundError(
                    f"Secret '{name}' version {version} not found"
                )

            return base64.b64decode(record["value"]), current

    def delete(self, workspace: str, name: str) -> bool:
        """
        Remove a secret from the vault.

        Decoded values are never cached and the record strings are
        immutable, so there is nothing in memory to zero. The at-rest copy
        is gone once the rewritten vault replaces the old file.
        """
        with self._lock:
            self._ensure_open()
            ws = self._workspace(workspace)
            if name not in ws:
                return False

            remaining = dict(ws)
            del remaining[name]
            self._commit(workspace, remaining)
            return True

    def list_secrets(
        self,
        workspace: str,
        filter_labels: Optional[Dict[str, str]] = None,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Tuple[List[Secret], Optional[str]]:
        with self._lock:
            self._ensure_open()
            ws = self._workspace(workspace)

            now = utcnow()
            live = {
                n: record for n, record in ws.items()
                if not _record_expired(record, now)
            }
            if len(live) != len(ws):
                self._commit(workspace, live)
            ws = live

            secrets = []
            for name, record in ws.items():
                metadata = _record_metadata(record)
                if not matches_labels(metadata.labels, filter_labels):
                    continue
                secrets.append(Secret(
                    name=name,
                    workspace=workspace,
                    metadata=metadata,
                    value=None,
                ))

            secrets.sort(key=lambda s: s.name)
            return paginate(secrets, cursor, limit)

    def get_metadata(self, workspace: str, name: str) -> SecretMetadata:
        with self._lock:
            self._ensure_open()
            return _record_metadata(self._live_record(workspace, name))

    def close(self) -> None:
        """Save once more and refuse further use. Safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._save()
            self._closed = True
