"""AVP Protocol Types"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from avp_vault.validation import (
    MAX_NAME_LENGTH,
    validate_secret_name,
    validate_workspace_id,
)

SESSION_ID_PREFIX = "avp_sess_"

DEFAULT_SESSION_TTL = 3600  # 1 hour
DEFAULT_MAX_SESSION_TTL = 86400  # 24 hours
DEFAULT_MAX_SECRET_VALUE_LENGTH = 65536
DEFAULT_MAX_NAME_LENGTH = MAX_NAME_LENGTH
DEFAULT_MAX_LABELS_PER_SECRET = 64
DEFAULT_MAX_SECRETS_PER_WORKSPACE = 1000
DEFAULT_LIST_LIMIT = 100


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BackendType(Enum):
    """Backend storage types."""
    FILE = "file"
    KEYCHAIN = "keychain"
    HARDWARE = "hardware"
    REMOTE = "remote"
    MEMORY = "memory"


class AuthMethod(Enum):
    """Authentication methods."""
    NONE = "none"
    PIN = "pin"
    TOKEN = "token"
    MTLS = "mtls"
    OS = "os"
    TERMINATE = "terminate"


class ConformanceLevel(Enum):
    """Protocol conformance levels."""
    CORE = "core"
    FULL = "full"
    HARDWARE = "hardware"


@dataclass
class RotationPolicy:
    """Secret rotation configuration."""
    interval_seconds: int
    strategy: str  # "generate" or "notify"
    last_rotated_at: Optional[datetime] = None


@dataclass
class SecretMetadata:
    """Non-sensitive metadata about a secret."""
    created_at: datetime
    updated_at: datetime
    backend: BackendType
    version: int = 1
    labels: Dict[str, str] = field(default_factory=dict)
    expires_at: Optional[datetime] = None
    rotation_policy: Optional[RotationPolicy] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once ``expires_at`` lies in the past."""
        if self.expires_at is None:
            return False
        return as_utc(now or utcnow()) > as_utc(self.expires_at)


@dataclass
class Secret:
    """A credential stored in the vault."""
    name: str
    workspace: str
    metadata: SecretMetadata
    value: Optional[bytes] = None  # Only populated on RETRIEVE

    @classmethod
    def validate_name(cls, name: str) -> bool:
        """Validate a secret name according to AVP naming rules."""
        return validate_secret_name(name)


@dataclass
class Workspace:
    """A logical isolation boundary for secrets."""
    id: str
    secrets_count: int = 0

    @classmethod
    def validate_id(cls, workspace_id: str) -> bool:
        """Validate a workspace ID according to AVP naming rules."""
        return validate_workspace_id(workspace_id)


@dataclass
class Session:
    """An authenticated context for AVP operations."""
    session_id: str
    workspace: str
    backend: str
    agent_id: str
    created_at: datetime
    expires_at: datetime
    ttl_seconds: int

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the session has expired."""
        return as_utc(now or utcnow()) > as_utc(self.expires_at)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Check if the session is still valid."""
        return not self.is_expired(now)


@dataclass
class Backend:
    """Backend descriptor."""
    type: BackendType
    id: str
    status: str  # "available", "unavailable", "locked"
    info: Dict[str, str] = field(default_factory=dict)


@dataclass
class Capabilities:
    """Vault capability flags."""
    attestation: bool = False
    rotation: bool = False
    injection: bool = False
    audit: bool = True
    migration: bool = False
    implicit_sessions: bool = False
    expiration: bool = True
    versioning: bool = False


@dataclass
class Limits:
    """Operational limits."""
    max_secret_name_length: int = DEFAULT_MAX_NAME_LENGTH
    max_secret_value_length: int = DEFAULT_MAX_SECRET_VALUE_LENGTH
    max_labels_per_secret: int = DEFAULT_MAX_LABELS_PER_SECRET
    max_secrets_per_workspace: int = DEFAULT_MAX_SECRETS_PER_WORKSPACE
    max_session_ttl_seconds: int = DEFAULT_MAX_SESSION_TTL


def default_capabilities() -> Capabilities:
    return Capabilities()


def default_limits() -> Limits:
    return Limits()


@dataclass
class DiscoverResponse:
    """Response from DISCOVER operation."""
    version: str
    conformance: ConformanceLevel
    backends: List[Backend]
    active_backend: str
    capabilities: Capabilities
    auth_methods: List[AuthMethod]
    limits: Limits


@dataclass
class StoreResponse:
    """Response from STORE operation."""
    name: str
    backend: str
    created: bool
    version: int


@dataclass
class RetrieveResponse:
    """Response from RETRIEVE operation."""
    name: str
    value: bytes
    encoding: str
    backend: str
    version: int


@dataclass
class DeleteResponse:
    """Response from DELETE operation."""
    name: str
    deleted: bool


@dataclass
class ListResponse:
    """Response from LIST operation."""
    secrets: List[Secret]
    cursor: Optional[str] = None
    has_more: bool = False


@dataclass
class RotateResponse:
    """Response from ROTATE operation."""
    name: str
    backend: str
    version: int
    rotated_at: datetime
