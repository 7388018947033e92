"""Tests for the session manager."""

from dataclasses import replace
from datetime import timedelta

import pytest

from avp_vault import (
    DEFAULT_MAX_SESSION_TTL,
    DEFAULT_SESSION_TTL,
    InvalidWorkspaceError,
    SessionExpiredError,
    SessionManager,
    SessionNotFoundError,
)
from avp_vault.types import utcnow


@pytest.fixture
def manager():
    return SessionManager()


def _open(manager, **kwargs):
    kwargs.setdefault("workspace", "default")
    kwargs.setdefault("agent_id", "agent")
    kwargs.setdefault("backend_id", "memory-0")
    return manager.authenticate(**kwargs)


class TestAuthenticate:

    def test_defaults(self, manager):
        session = _open(manager)
        assert session.session_id.startswith("avp_sess_")
        assert session.ttl_seconds == DEFAULT_SESSION_TTL == 3600
        assert session.expires_at - session.created_at == timedelta(seconds=3600)
        assert session.session_id in manager

    def test_session_ids_are_unique(self, manager):
        ids = {_open(manager).session_id for _ in range(20)}
        assert len(ids) == 20
        assert len(manager) == 20

    def test_requested_ttl(self, manager):
        assert _open(manager, requested_ttl=300).ttl_seconds == 300

    def test_ttl_clamped_to_backend_maximum(self, manager):
        session = _open(manager, requested_ttl=999999)
        assert session.ttl_seconds == DEFAULT_MAX_SESSION_TTL == 86400

    def test_ttl_clamped_to_custom_maximum(self, manager):
        assert _open(manager, max_ttl=60).ttl_seconds == 60

    def test_custom_default_ttl(self):
        assert _open(SessionManager(default_ttl=120)).ttl_seconds == 120

    def test_invalid_workspace(self, manager):
        with pytest.raises(InvalidWorkspaceError):
            _open(manager, workspace="/bad")
        assert len(manager) == 0


class TestValidate:

    def test_returns_live_session(self, manager):
        session = _open(manager)
        assert manager.validate(session.session_id) == session

    def test_unknown_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.validate("avp_sess_missing")

    def test_expired_session_is_evicted(self, manager):
        session = _open(manager)
        manager._sessions[session.session_id] = replace(
            session, expires_at=utcnow() - timedelta(seconds=1)
        )

        with pytest.raises(SessionExpiredError):
            manager.validate(session.session_id)
        assert session.session_id not in manager
        with pytest.raises(SessionNotFoundError):
            manager.validate(session.session_id)


class TestTerminate:

    def test_terminate_removes_session(self, manager):
        session = _open(manager)
        echo = manager.terminate(
            session.session_id, workspace="default", agent_id="agent",
            backend_id="memory-0",
        )
        assert echo.session_id == session.session_id
        assert echo.ttl_seconds == 0
        assert echo.expires_at == echo.created_at
        with pytest.raises(SessionNotFoundError):
            manager.validate(session.session_id)

    def test_terminate_unknown_is_idempotent(self, manager):
        for _ in range(2):
            echo = manager.terminate(
                "avp_sess_unknown", workspace="default", agent_id="agent",
                backend_id="memory-0",
            )
            assert echo.ttl_seconds == 0

    def test_clear(self, manager):
        _open(manager)
        _open(manager)
        manager.clear()
        assert len(manager) == 0
