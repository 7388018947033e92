"""Session table for the AVP client."""

import logging
import secrets
import threading
from datetime import timedelta
from typing import Dict, Optional

from avp_vault.errors import (
    InvalidWorkspaceError,
    SessionExpiredError,
    SessionNotFoundError,
)
from avp_vault.types import (
    DEFAULT_MAX_SESSION_TTL,
    DEFAULT_SESSION_TTL,
    SESSION_ID_PREFIX,
    Session,
    utcnow,
)
from avp_vault.validation import validate_workspace_id

logger = logging.getLogger("avp_vault.session")


def _short(session_id: str) -> str:
    return session_id[: len(SESSION_ID_PREFIX) + 6] + "..."


class SessionManager:
    """
    Issues, validates and terminates sessions.

    The manager owns its session table. Expired sessions are only evicted
    when they are looked up again; there is no background sweep.
    """

    def __init__(self, default_ttl: int = DEFAULT_SESSION_TTL):
        self.default_ttl = default_ttl
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

    def authenticate(
        self,
        workspace: str,
        agent_id: str,
        backend_id: str,
        max_ttl: int = DEFAULT_MAX_SESSION_TTL,
        requested_ttl: Optional[int] = None,
    ) -> Session:
        """
        Mint a new session.

        Args:
            workspace: Workspace the session is scoped to
            agent_id: Agent identifier
            backend_id: Identifier of the active backend
            max_ttl: Upper bound advertised by the backend limits
            requested_ttl: Desired TTL in seconds, defaults to ``default_ttl``

        Returns:
            The stored Session

        Raises:
            InvalidWorkspaceError: If the workspace id is malformed
        """
        if not validate_workspace_id(workspace):
            raise InvalidWorkspaceError(f"Invalid workspace: {workspace}")

        if requested_ttl is None:
            requested_ttl = self.default_ttl
        ttl = min(requested_ttl, max_ttl)

        now = utcnow()
        session = Session(
            session_id=f"{SESSION_ID_PREFIX}{secrets.token_urlsafe(24)}",
            workspace=workspace,
            backend=backend_id,
            agent_id=agent_id,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
            ttl_seconds=ttl,
        )

        with self._lock:
            self._sessions[session.session_id] = session

        logger.debug(
            "Session %s opened for workspace %r (ttl=%ds)",
            _short(session.session_id), workspace, ttl,
        )
        return session

    def terminate(
        self,
        session_id: str,
        workspace: str,
        agent_id: str,
        backend_id: str,
    ) -> Session:
        """Drop a session if present and return an already-expired echo."""
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None

        if existed:
            logger.debug("Session %s terminated", _short(session_id))

        now = utcnow()
        return Session(
            session_id=session_id,
            workspace=workspace,
            backend=backend_id,
            agent_id=agent_id,
            created_at=now,
            expires_at=now,
            ttl_seconds=0,
        )

    def validate(self, session_id: str) -> Session:
        """
        Return the live session for ``session_id``.

        Raises:
            SessionNotFoundError: Unknown session id
            SessionExpiredError: Session expired; it is evicted as well
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session not found: {session_id}")

            if session.is_expired():
                del self._sessions[session_id]
                logger.debug("Session %s expired", _short(session_id))
                raise SessionExpiredError("Session has expired")

            return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
