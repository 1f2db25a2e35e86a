from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from instoredealz.api.deps import get_storage_scope
from instoredealz.db.memory_storage import MemoryStorage
from instoredealz.main import app
from tests.api.api_fixtures import _memory_scope


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def client(storage: MemoryStorage):
    app.dependency_overrides[get_storage_scope] = lambda: _memory_scope(storage)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_storage_scope, None)
