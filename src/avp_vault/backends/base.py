"""Base backend interface for AVP."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from avp_vault.types import (
    DEFAULT_LIST_LIMIT,
    Backend,
    BackendType,
    Capabilities,
    Limits,
    Secret,
    SecretMetadata,
    as_utc,
    default_capabilities,
    default_limits,
)

T = TypeVar("T")


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """True when ``expires_at`` is set and lies before ``now``."""
    return expires_at is not None and as_utc(now) > as_utc(expires_at)


def matches_labels(
    labels: Dict[str, str],
    filter_labels: Optional[Dict[str, str]],
) -> bool:
    """Exact-match conjunction over every key in ``filter_labels``."""
    if not filter_labels:
        return True
    return all(
        k in labels and labels[k] == v for k, v in filter_labels.items()
    )


def paginate(
    items: Sequence[T],
    cursor: Optional[str] = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> Tuple[List[T], Optional[str]]:
    """
    Slice one page out of an already sorted sequence.

    The cursor is the index of the next unread item. Unparseable or
    negative cursors start from the beginning.

    Returns:
        Tuple of (page, next_cursor); next_cursor is None on the last page
    """
    start = 0
    if cursor:
        try:
            start = max(int(cursor), 0)
        except ValueError:
            start = 0

    end = start + limit
    page = list(items[start:end])
    next_cursor = str(end) if end < len(items) else None
    return page, next_cursor


class BackendBase(ABC):
    """Abstract base class for AVP backends."""

    @property
    @abstractmethod
    def backend_type(self) -> BackendType:
        """Return the backend type."""

    @property
    @abstractmethod
    def backend_id(self) -> str:
        """Return a unique backend identifier."""

    @property
    def capabilities(self) -> Capabilities:
        """Return backend capabilities."""
        return default_capabilities()

    @property
    def limits(self) -> Limits:
        """Return backend limits."""
        return default_limits()

    def get_descriptor(self) -> Backend:
        """Get the backend descriptor."""
        return Backend(
            type=self.backend_type,
            id=self.backend_id,
            status="available",
            info=self.get_info(),
        )

    def get_info(self) -> Dict[str, str]:
        """Get backend-specific information."""
        return {}

    @abstractmethod
    def store(
        self,
        workspace: str,
        name: str,
        value: bytes,
        labels: Optional[Dict[str, str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[bool, int]:
        """
        Store a secret.

        Creates version 1 when the name is new, otherwise bumps the
        existing version by one and keeps the original ``created_at``.

        Args:
            workspace: Workspace identifier
            name: Secret name
            value: Secret value (bytes)
            labels: Optional key-value labels
            expires_at: Optional expiration timestamp

        Returns:
            Tuple of (created, version) where created is True if new secret
        """

    @abstractmethod
    def retrieve(
        self,
        workspace: str,
        name: str,
        version: Optional[int] = None,
    ) -> Tuple[bytes, int]:
        """
        Retrieve a secret value.

        Only the current version is retained, so an explicit ``version``
        other than the current one is reported as not found.

        Args:
            workspace: Workspace identifier
            name: Secret name
            version: Optional specific version

        Returns:
            Tuple of (value, version)

        Raises:
            SecretNotFoundError: If secret is missing, expired or the
                version does not match
        """

    @abstractmethod
    def delete(self, workspace: str, name: str) -> bool:
        """
        Delete a secret, scrubbing its value first.

        Args:
            workspace: Workspace identifier
            name: Secret name

        Returns:
            True if secret existed and was deleted, False otherwise
        """

    @abstractmethod
    def list_secrets(
        self,
        workspace: str,
        filter_labels: Optional[Dict[str, str]] = None,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Tuple[List[Secret], Optional[str]]:
        """
        List secrets in a workspace, sorted by name, without values.

        Args:
            workspace: Workspace identifier
            filter_labels: Optional label filter
            cursor: Pagination cursor
            limit: Maximum number of results

        Returns:
            Tuple of (secrets, next_cursor)
        """

    @abstractmethod
    def get_metadata(self, workspace: str, name: str) -> SecretMetadata:
        """
        Get secret metadata without the value.

        Raises:
            SecretNotFoundError: If secret doesn't exist or has expired
        """

    def rotate(
        self,
        workspace: str,
        name: str,
        new_value: bytes,
    ) -> int:
        """
        Rotate a secret value.

        Returns:
            New version number

        Raises:
            SecretNotFoundError: If secret doesn't exist
        """
        return rotate_secret(self, workspace, name, new_value)

    def close(self) -> None:
        """Close the backend and release resources."""


def rotate_secret(
    backend: BackendBase,
    workspace: str,
    name: str,
    new_value: bytes,
) -> int:
    """
    Replace the value of an existing secret.

    The existence check goes through ``get_metadata`` so a missing secret
    raises SecretNotFoundError and nothing is written. Labels and
    expiration of the current version carry over to the new one.
    """
    metadata = backend.get_metadata(workspace, name)
    _, version = backend.store(
        workspace,
        name,
        new_value,
        labels=dict(metadata.labels),
        expires_at=metadata.expires_at,
    )
    return version
