"""
Agent Vault Protocol (AVP) - credential vault client.

A secure credential management protocol for AI agents.
"""

from avp_vault.types import (
    Secret,
    SecretMetadata,
    Session,
    Workspace,
    Backend,
    BackendType,
    Capabilities,
    Limits,
    RotationPolicy,
    AuthMethod,
    ConformanceLevel,
    DEFAULT_SESSION_TTL,
    DEFAULT_MAX_SESSION_TTL,
    DEFAULT_MAX_SECRET_VALUE_LENGTH,
    DEFAULT_MAX_NAME_LENGTH,
    DEFAULT_LIST_LIMIT,
)
from avp_vault.errors import (
    AVPError,
    AuthenticationError,
    SessionError,
    SessionExpiredError,
    SessionTerminatedError,
    SessionNotFoundError,
    SecretNotFoundError,
    InvalidNameError,
    InvalidWorkspaceError,
    CapacityExceededError,
    BackendError,
    BackendUnavailableError,
    RateLimitError,
    ValueTooLargeError,
    EncryptionError,
    IntegrityError,
    from_error_response,
    register_error,
)
from avp_vault.validation import validate_secret_name, validate_workspace_id
from avp_vault.session import SessionManager
from avp_vault.config import ClientSettings, FileBackendSettings
from avp_vault.client import AVPClient
from avp_vault.backends.base import BackendBase, rotate_secret
from avp_vault.backends.file import FileBackend
from avp_vault.backends.memory import MemoryBackend

__version__ = "0.1.0"
__all__ = [
    # Types
    "Secret",
    "SecretMetadata",
    "Session",
    "Workspace",
    "Backend",
    "BackendType",
    "Capabilities",
    "Limits",
    "RotationPolicy",
    "AuthMethod",
    "ConformanceLevel",
    "DEFAULT_SESSION_TTL",
    "DEFAULT_MAX_SESSION_TTL",
    "DEFAULT_MAX_SECRET_VALUE_LENGTH",
    "DEFAULT_MAX_NAME_LENGTH",
    "DEFAULT_LIST_LIMIT",
    # Errors
    "AVPError",
    "AuthenticationError",
    "SessionError",
    "SessionExpiredError",
    "SessionTerminatedError",
    "SessionNotFoundError",
    "SecretNotFoundError",
    "InvalidNameError",
    "InvalidWorkspaceError",
    "CapacityExceededError",
    "BackendError",
    "BackendUnavailableError",
    "RateLimitError",
    "ValueTooLargeError",
    "EncryptionError",
    "IntegrityError",
    "from_error_response",
    "register_error",
    # Validation
    "validate_secret_name",
    "validate_workspace_id",
    # Client
    "AVPClient",
    "SessionManager",
    "ClientSettings",
    "FileBackendSettings",
    # Backends
    "BackendBase",
    "rotate_secret",
    "FileBackend",
    "MemoryBackend",
]
