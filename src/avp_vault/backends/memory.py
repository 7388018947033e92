"""In-memory backend for AVP (useful for testing)."""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple
import threading

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
from avp_vault.backends.base import BackendBase, matches_labels, paginate
from avp_vault.errors import SecretNotFoundError


def _scrub(buffer: bytearray) -> None:
    buffer[:] = b"\x00" * len(buffer)


class MemoryBackend(BackendBase):
    """
    In-memory backend for testing and development.

    WARNING: Secrets are stored in plaintext in memory.
    Do not use in production.
    """

    def __init__(self, backend_id: str = "memory-0"):
        self._backend_id = backend_id
        self._secrets: Dict[str, Dict[str, Tuple[bytearray, SecretMetadata]]] = {}
        self._lock = threading.RLock()

    @property
    def backend_type(self) -> BackendType:
        return BackendType.MEMORY

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
            migration=False,
            implicit_sessions=True,
            expiration=True,
            versioning=True,
        )

    @property
    def limits(self) -> Limits:
        return Limits(max_secrets_per_workspace=10000)

    def get_info(self) -> Dict[str, str]:
        return {
            "type": "memory",
            "warning": "In-memory storage - data lost on restart",
        }

    def _live_entry(
        self, workspace: str, name: str
    ) -> Tuple[bytearray, SecretMetadata]:
        """Look up an entry, evicting it if it has expired."""
        ws = self._secrets.get(workspace, {})
        if name not in ws:
            raise SecretNotFoundError(f"Secret '{name}' not found")

        value, metadata = ws[name]
        if metadata.is_expired():
            _scrub(value)
            del ws[name]
            raise SecretNotFoundError(f"Secret '{name}' not found")
        return value, metadata

    def store(
        self,
        workspace: str,
        name: str,
        value: bytes,
        labels: Optional[Dict[str, str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[bool, int]:
        with self._lock:
            ws = self._secrets.setdefault(workspace, {})

            now = utcnow()
            existing = ws.get(name)
            created = existing is None

            if created:
                version = 1
                created_at = now
            else:
                old_value, existing_meta = existing
                version = existing_meta.version + 1
                created_at = existing_meta.created_at
                _scrub(old_value)

            metadata = SecretMetadata(
                created_at=created_at,
                updated_at=now,
                backend=BackendType.MEMORY,
                version=version,
                labels=dict(labels or {}),
                expires_at=as_utc(expires_at) if expires_at else None,
            )

            ws[name] = (bytearray(value), metadata)
            return created, version

    def retrieve(
        self,
        workspace: str,
        name: str,
        version: Optional[int] = None,
    ) -> Tuple[bytes, int]:
        with self._lock:
            value, metadata = self._live_entry(workspace, name)

            # No version history is kept
            if version is not None and version != metadata.version:
                raise SecretNotFoundError(
                    f"Secret '{name}' version {version} not found"
                )

            return bytes(value), metadata.version

    def delete(self, workspace: str, name: str) -> bool:
        with self._lock:
            ws = self._secrets.get(workspace)
            if not ws or name not in ws:
                return False

            value, _ = ws.pop(name)
            _scrub(value)
            return True

    def list_secrets(
        self,
        workspace: str,
        filter_labels: Optional[Dict[str, str]] = None,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Tuple[List[Secret], Optional[str]]:
        with self._lock:
            ws = self._secrets.get(workspace)
            if not ws:
                return [], None

            now = utcnow()
            for name in [n for n, (_, m) in ws.items() if m.is_expired(now)]:
                value, _ = ws.pop(name)
                _scrub(value)

            secrets = [
                Secret(
                    name=name,
                    workspace=workspace,
                    metadata=replace(metadata, labels=dict(metadata.labels)),
                    value=None,  # Never include value in LIST
                )
                for name, (_, metadata) in ws.items()
                if matches_labels(metadata.labels, filter_labels)
            ]
            secrets.sort(key=lambda s: s.name)

            return paginate(secrets, cursor, limit)

    def get_metadata(self, workspace: str, name: str) -> SecretMetadata:
        with self._lock:
            _, metadata = self._live_entry(workspace, name)
            return replace(metadata, labels=dict(metadata.labels))

    def clear(self) -> None:
        """Clear all secrets (for testing)."""
        with self._lock:
            for ws in self._secrets.values():
                for value, _ in ws.values():
                    _scrub(value)
            self._secrets.clear()
