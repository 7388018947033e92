"""
Client and backend settings.

Settings can be built directly or read from environment variables:

    AVP_WORKSPACE, AVP_AGENT_ID, AVP_SESSION_TTL, AVP_LIST_LIMIT
    AVP_VAULT_PATH, AVP_VAULT_PASSWORD, AVP_VAULT_BACKEND_ID

Security Note:
    The vault password is held as a SecretStr and never logged.
"""
import os
import logging
from typing import Mapping, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from avp_vault.backends.file import FileBackend
from avp_vault.types import DEFAULT_LIST_LIMIT, DEFAULT_SESSION_TTL
from avp_vault.validation import validate_workspace_id

logger = logging.getLogger("avp_vault.config")


def _pick(environ: Mapping[str, str], mapping: Mapping[str, str]) -> dict:
    """Collect the env vars present in ``mapping`` (env name -> field)."""
    return {
        field_name: environ[env_name]
        for env_name, field_name in mapping.items()
        if environ.get(env_name)
    }


class ClientSettings(BaseModel):
    """Defaults applied by AVPClient when callers omit them."""

    default_workspace: str = "default"
    agent_id: str = "avp-py"
    default_ttl_seconds: int = Field(default=DEFAULT_SESSION_TTL, gt=0)
    default_list_limit: int = Field(default=DEFAULT_LIST_LIMIT, gt=0)

    @field_validator("default_workspace")
    @classmethod
    def _check_workspace(cls, v: str) -> str:
        if not validate_workspace_id(v):
            raise ValueError(f"invalid workspace id: {v!r}")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        environ = os.environ if environ is None else environ
        values = _pick(environ, {
            "AVP_WORKSPACE": "default_workspace",
            "AVP_AGENT_ID": "agent_id",
            "AVP_SESSION_TTL": "default_ttl_seconds",
            "AVP_LIST_LIMIT": "default_list_limit",
        })
        logger.debug("Client settings from env: %s", sorted(values))
        return cls(**values)


class FileBackendSettings(BaseModel):
    """Location and password of an encrypted vault file."""

    path: str = Field(min_length=1)
    password: SecretStr
    backend_id: str = "file-0"

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "FileBackendSettings":
        environ = os.environ if environ is None else environ
        values = _pick(environ, {
            "AVP_VAULT_PATH": "path",
            "AVP_VAULT_PASSWORD": "password",
            "AVP_VAULT_BACKEND_ID": "backend_id",
        })
        return cls(**values)

    def open_backend(self) -> FileBackend:
        """Open the FileBackend these settings describe."""
        return FileBackend(
            self.path,
            password=self.password.get_secret_value(),
            backend_id=self.backend_id,
        )
