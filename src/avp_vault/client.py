"""AVP Client - Main entry point for the protocol."""

import logging
from datetime import datetime
from typing import Dict, Optional

from avp_vault.types import (
    AuthMethod,
    ConformanceLevel,
    DeleteResponse,
    DiscoverResponse,
    ListResponse,
    RetrieveResponse,
    RotateResponse,
    SecretMetadata,
    Session,
    StoreResponse,
    utcnow,
)
from avp_vault.backends.base import BackendBase
from avp_vault.config import ClientSettings
from avp_vault.errors import (
    AuthenticationError,
    CapacityExceededError,
    InvalidNameError,
    InvalidWorkspaceError,
    ValueTooLargeError,
)
from avp_vault.session import SessionManager
from avp_vault.validation import validate_secret_name, validate_workspace_id

logger = logging.getLogger("avp_vault.client")


class AVPClient:
    """
    AVP Protocol Client.

    This is the main entry point for interacting with the AVP protocol.
    It manages sessions and delegates operations to the configured backend.
    Every secret operation is scoped to the workspace of its session.
    """

    VERSION = "0.1.0"
    AUTH_METHODS = (AuthMethod.NONE, AuthMethod.TOKEN)

    def __init__(
        self,
        backend: BackendBase,
        settings: Optional[ClientSettings] = None,
    ):
        """
        Initialize the AVP client.

        Args:
            backend: The backend to use for storing secrets
            settings: Defaults for workspace, agent id, TTL and page size
        """
        self._backend = backend
        self._settings = settings or ClientSettings()
        self._sessions = SessionManager(
            default_ttl=self._settings.default_ttl_seconds
        )

    @classmethod
    def from_env(cls, backend: BackendBase) -> "AVPClient":
        """Build a client with settings read from AVP_* environment variables."""
        return cls(backend, ClientSettings.from_env())

    @property
    def backend(self) -> BackendBase:
        return self._backend

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def discover(self) -> DiscoverResponse:
        """
        Query vault capabilities (DISCOVER operation).

        Returns:
            DiscoverResponse with vault information
        """
        return DiscoverResponse(
            version=self.VERSION,
            conformance=ConformanceLevel.FULL,
            backends=[self._backend.get_descriptor()],
            active_backend=self._backend.backend_id,
            capabilities=self._backend.capabilities,
            auth_methods=list(self.AUTH_METHODS),
            limits=self._backend.limits,
        )

    def authenticate(
        self,
        workspace: Optional[str] = None,
        agent_id: Optional[str] = None,
        auth_method: AuthMethod = AuthMethod.NONE,
        auth_data: Optional[Dict[str, str]] = None,
        requested_ttl: Optional[int] = None,
    ) -> Session:
        """
        Establish a session (AUTHENTICATE operation).

        ``AuthMethod.TERMINATE`` ends the session named by
        ``auth_data["session_id"]`` instead of opening a new one.

        Args:
            workspace: Target workspace
            agent_id: Agent identifier
            auth_method: Authentication method
            auth_data: Authentication credentials
            requested_ttl: Desired session TTL in seconds

        Returns:
            Session object

        Raises:
            AuthenticationError: If authentication fails
            InvalidWorkspaceError: If workspace is invalid
        """
        if workspace is None:
            workspace = self._settings.default_workspace
        if agent_id is None:
            agent_id = self._settings.agent_id

        if not validate_workspace_id(workspace):
            raise InvalidWorkspaceError(f"Invalid workspace: {workspace}")

        if auth_method == AuthMethod.TERMINATE:
            session_id = (auth_data or {}).get("session_id")
            if not session_id:
                raise AuthenticationError("session_id required for termination")
            return self._sessions.terminate(
                session_id,
                workspace=workspace,
                agent_id=agent_id,
                backend_id=self._backend.backend_id,
            )

        return self._sessions.authenticate(
            workspace=workspace,
            agent_id=agent_id,
            backend_id=self._backend.backend_id,
            max_ttl=self._backend.limits.max_session_ttl_seconds,
            requested_ttl=requested_ttl,
        )

    def _validate_session(self, session_id: str) -> Session:
        """Validate and return a session."""
        return self._sessions.validate(session_id)

    def store(
        self,
        session_id: str,
        name: str,
        value: bytes,
        labels: Optional[Dict[str, str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> StoreResponse:
        """
        Store a secret (STORE operation).

        Args:
            session_id: Active session identifier
            name: Secret name
            value: Secret value (bytes)
            labels: Optional key-value labels
            expires_at: Optional expiration timestamp

        Returns:
            StoreResponse

        Raises:
            SessionError: If session is invalid
            InvalidNameError: If name is invalid
            ValueTooLargeError: If value exceeds limit
            CapacityExceededError: If there are too many labels
        """
        session = self._validate_session(session_id)
        limits = self._backend.limits

        if not validate_secret_name(name) or len(name) > limits.max_secret_name_length:
            raise InvalidNameError(f"Invalid secret name: {name}")

        if len(value) > limits.max_secret_value_length:
            raise ValueTooLargeError(
                f"Value exceeds maximum size of "
                f"{limits.max_secret_value_length} bytes",
                detail={
                    "size": len(value),
                    "limit": limits.max_secret_value_length,
                },
            )

        if labels and len(labels) > limits.max_labels_per_secret:
            raise CapacityExceededError(
                f"Too many labels: {len(labels)} > {limits.max_labels_per_secret}",
                detail={"labels": len(labels), "limit": limits.max_labels_per_secret},
            )

        created, version = self._backend.store(
            workspace=session.workspace,
            name=name,
            value=value,
            labels=labels,
            expires_at=expires_at,
        )
        logger.debug(
            "Stored %r in workspace %r (version %d)", name, session.workspace, version
        )

        return StoreResponse(
            name=name,
            backend=self._backend.backend_id,
            created=created,
            version=version,
        )

    def retrieve(
        self,
        session_id: str,
        name: str,
        version: Optional[int] = None,
    ) -> RetrieveResponse:
        """
        Retrieve a secret (RETRIEVE operation).

        Raises:
            SessionError: If session is invalid
            SecretNotFoundError: If secret doesn't exist
        """
        session = self._validate_session(session_id)

        value, ver = self._backend.retrieve(
            workspace=session.workspace,
            name=name,
            version=version,
        )

        return RetrieveResponse(
            name=name,
            value=value,
            encoding="utf8",
            backend=self._backend.backend_id,
            version=ver,
        )

    def delete(
        self,
        session_id: str,
        name: str,
    ) -> DeleteResponse:
        """Delete a secret (DELETE operation)."""
        session = self._validate_session(session_id)

        deleted = self._backend.delete(
            workspace=session.workspace,
            name=name,
        )
        if deleted:
            logger.debug("Deleted %r from workspace %r", name, session.workspace)

        return DeleteResponse(name=name, deleted=deleted)

    def list_secrets(
        self,
        session_id: str,
        filter_labels: Optional[Dict[str, str]] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ListResponse:
        """
        List secrets (LIST operation).

        Args:
            session_id: Active session identifier
            filter_labels: Optional label filter
            cursor: Pagination cursor
            limit: Maximum results, defaults to 100

        Returns:
            ListResponse with secrets (no values)

        Raises:
            SessionError: If session is invalid
        """
        session = self._validate_session(session_id)

        if limit is None or limit <= 0:
            limit = self._settings.default_list_limit

        secrets_list, next_cursor = self._backend.list_secrets(
            workspace=session.workspace,
            filter_labels=filter_labels,
            cursor=cursor,
            limit=limit,
        )

        return ListResponse(
            secrets=secrets_list,
            cursor=next_cursor,
            has_more=next_cursor is not None,
        )

    def get_metadata(self, session_id: str, name: str) -> SecretMetadata:
        """Return a secret's metadata without its value."""
        session = self._validate_session(session_id)
        return self._backend.get_metadata(session.workspace, name)

    def rotate(
        self,
        session_id: str,
        name: str,
        new_value: bytes,
    ) -> RotateResponse:
        """
        Rotate a secret (ROTATE operation).

        Raises:
            SessionError: If session is invalid
            SecretNotFoundError: If secret doesn't exist
            ValueTooLargeError: If the new value exceeds the limit
        """
        session = self._validate_session(session_id)
        limit = self._backend.limits.max_secret_value_length

        if len(new_value) > limit:
            raise ValueTooLargeError(
                f"Value exceeds maximum size of {limit} bytes",
                detail={"size": len(new_value), "limit": limit},
            )

        version = self._backend.rotate(
            workspace=session.workspace,
            name=name,
            new_value=new_value,
        )
        logger.info(
            "Rotated %r in workspace %r (version %d)", name, session.workspace, version
        )

        return RotateResponse(
            name=name,
            backend=self._backend.backend_id,
            version=version,
            rotated_at=utcnow(),
        )

    def close(self) -> None:
        """Close the client and release resources."""
        self._backend.close()
        self._sessions.clear()

    def __enter__(self) -> "AVPClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
