"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from pydantic import BaseModel

from regstore.backends import JsonFileBackend, MemoryBackend, PhysicalBackend
from regstore.core.config import UpdateMode
from regstore.store import RegisteredStore

ENV_VARS = (
    "REGSTORE_ROOT",
    "REGSTORE_HMAC_KEY",
    "REGSTORE_UPDATE_MODE",
    "REGSTORE_DIR_MODE",
    "REGSTORE_FSYNC",
)


class UserProfile(BaseModel):
    """Structured record used across tests."""

    name: str
    age: int = 0
    tags: list[str] = []


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's REGSTORE_* settings out of the tests."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store_root(temp_dir: Path) -> Path:
    """Storage root that does not exist yet."""
    return temp_dir / "store"


@pytest.fixture(params=["file", "memory"])
def backend(request: pytest.FixtureRequest, store_root: Path) -> PhysicalBackend:
    """Each physical backend, fresh."""
    if request.param == "file":
        return JsonFileBackend(store_root, fsync=False)
    return MemoryBackend()


@pytest.fixture
def store(backend: PhysicalBackend) -> RegisteredStore:
    """Registered store in the default (swap) update mode."""
    return RegisteredStore(backend)


@pytest.fixture
def legacy_store(backend: PhysicalBackend) -> RegisteredStore:
    """Registered store updating by delete-then-create."""
    return RegisteredStore(backend, update_mode=UpdateMode.DELETE_CREATE)


@pytest.fixture
def file_store(store_root: Path) -> RegisteredStore:
    """Registered store on the JSON file backend."""
    return RegisteredStore(JsonFileBackend(store_root, fsync=False))
