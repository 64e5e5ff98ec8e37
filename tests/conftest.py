import pytest
from fastapi.testclient import TestClient

from database import MemoryDocumentStore
from main import app, get_store


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
