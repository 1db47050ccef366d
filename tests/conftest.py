"""Shared fixtures: every test gets its own shared directory."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sharedrop.file_store import FileStore
from sharedrop.main import app
from sharedrop.message_store import MessageStore
from sharedrop.storage import StorageService, get_storage


@pytest.fixture
def shared_dir(tmp_path: Path) -> Path:
    return tmp_path / "shared"


@pytest.fixture
def ledger_path(shared_dir: Path) -> Path:
    return shared_dir / "messages.json"


@pytest.fixture
def file_store(shared_dir: Path) -> FileStore:
    return FileStore(shared_dir)


@pytest.fixture
def message_store(ledger_path: Path) -> MessageStore:
    return MessageStore(ledger_path)


@pytest.fixture
def storage(file_store: FileStore, message_store: MessageStore) -> StorageService:
    return StorageService(file_store, message_store)


@pytest.fixture
def client(storage: StorageService):
    """Create FastAPI test client bound to the per-test storage."""
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()
