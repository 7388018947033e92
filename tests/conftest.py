"""Shared fixtures for the AVP test suite."""

import pytest

from avp_vault import AVPClient, FileBackend, MemoryBackend

PASSWORD = "test_password"


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault.enc"


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def file_backend(vault_path):
    backend = FileBackend(vault_path, password=PASSWORD)
    yield backend
    backend.close()


@pytest.fixture(params=["memory", "file"])
def backend(request, vault_path):
    """Every backend that must honour the shared contract."""
    if request.param == "memory":
        yield MemoryBackend()
    else:
        backend = FileBackend(vault_path, password=PASSWORD)
        yield backend
        backend.close()


@pytest.fixture
def client(memory_backend):
    """Create an AVP client with memory backend."""
    return AVPClient(memory_backend)
