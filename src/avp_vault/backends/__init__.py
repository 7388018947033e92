"""AVP Backend implementations."""

from avp_vault.backends.base import BackendBase, rotate_secret
from avp_vault.backends.file import FileBackend
from avp_vault.backends.memory import MemoryBackend

__all__ = ["BackendBase", "rotate_secret", "FileBackend", "MemoryBackend"]
