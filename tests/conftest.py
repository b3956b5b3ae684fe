import pytest
from fastapi.testclient import TestClient

from database import JsonFileStore, set_store


@pytest.fixture
def store(tmp_path):
    s = JsonFileStore(str(tmp_path))
    set_store(s)
    yield s
    set_store(None)


@pytest.fixture
def storefront(store):
    from main import app
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin(store):
    from backend.main import app
    with TestClient(app) as client:
        yield client
