"""Pytest configuration and fixtures."""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Set test environment variables before the app is imported
os.environ["BG_LOG_LEVEL"] = "ERROR"
os.environ.setdefault("BG_SQLITE_PATH", os.path.join(os.path.dirname(__file__), ".pytest-branchguard.db"))

from branchguard.app import db
from branchguard.app import storage as storage_manager
from branchguard.app.services.permissions import Permission


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Point the app at a fresh SQLite file for every test."""
    path = str(tmp_path / "branchguard.db")
    monkeypatch.setenv("BG_SQLITE_PATH", path)
    db.reload_db_path(path)
    storage_manager.reset_storage()
    db.init_db()
    yield path
    storage_manager.reset_storage()


@pytest.fixture
def storage(temp_db):
    return storage_manager.get_storage()


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(name: str = "user") -> dict:
        counter["n"] += 1
        return db.create_api_key(f"{name}{counter['n']}@example.test")

    return _make


@pytest.fixture
def make_repo(storage):
    def _make(owner_id: str, name: str = "repo", is_private: bool = False) -> dict:
        repo = {
            "id": db.new_id(),
            "owner_id": owner_id,
            "name": f"{name}-{db.new_id()[:8]}",
            "description": None,
            "is_private": is_private,
            "created_at": db.iso_z(db.now_utc()),
        }
        storage.insert_repository(repo)
        return storage.get_repository(repo["id"])

    return _make


@pytest.fixture
def add_collaborator():
    def _add(repo_id: str, user_id: str, permission: Permission) -> None:
        db.upsert_collaborator(repo_id, user_id, Permission(permission).value)

    return _add


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def repo(owner, make_repo):
    return make_repo(owner["user_id"])


@pytest.fixture
def client():
    """Test client for the FastAPI app (lifespan not triggered; temp_db already initialised)."""
    from fastapi.testclient import TestClient
    from branchguard.app import main

    return TestClient(main.app)


@pytest.fixture
def auth():
    """Build the X-API-Key header for a user created by make_user."""
    def _headers(user: dict) -> dict:
        return {"X-API-Key": user["api_key"]}

    return _headers
