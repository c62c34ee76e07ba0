"""Common test fixtures for the notes backend."""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from sqlite_db import NotesDatabase

# Short enough to keep tests fast, long enough that two back-to-back
# requests always land inside it.
GRACE_PERIOD = 0.5


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database file."""
    return Settings(
        _env_file=None,
        database_path=tmp_path / "notes.db",
        image_grace_period_seconds=GRACE_PERIOD,
        max_image_bytes=1024 * 1024,
    )


@pytest.fixture
def client(settings):
    """TestClient with the lifespan running (store open, reaper live)."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
async def db(tmp_path):
    """A connected store for direct persistence-API tests."""
    database = NotesDatabase(tmp_path / "store.db")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def make_folder(client):
    def _make(name="Folder", **extra):
        resp = client.post("/api/folders", json={"name": name, **extra})
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make


@pytest.fixture
def make_note(client):
    def _make(title="Note", **extra):
        resp = client.post("/api/notes", json={"title": title, **extra})
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make
