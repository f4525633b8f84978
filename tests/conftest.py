import os
os.environ.setdefault("ENV_FILE", ".env.test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("TEST_MODE", "true")
from dotenv import load_dotenv
load_dotenv(os.environ["ENV_FILE"])

import pytest
from uuid import uuid4
from fastapi.testclient import TestClient

from config import get_settings
from database_adapter import DatabaseAdapter
from main import app
from services.database import get_db


class _AuthClient:
    """TestClient wrapper that sends a dev-token Authorization header."""

    def __init__(self, base, user):
        self._base = base
        self._headers = {"Authorization": f"dev-token-{user['id']}"}

    def request(self, method, url, **kwargs):
        headers = kwargs.pop("headers", {}) or {}
        merged = {**self._headers, **headers}
        return self._base.request(method, url, headers=merged, **kwargs)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url, **kwargs):
        return self.request("DELETE", url, **kwargs)


@pytest.fixture
def client(clean_database):
    """Test client using SQLite. Auth is driven by Authorization headers."""
    app.dependency_overrides[get_db] = lambda: clean_database
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(clean_database, test_user):
    """Test client authenticated as the regular test user."""
    app.dependency_overrides[get_db] = lambda: clean_database
    try:
        yield _AuthClient(TestClient(app), test_user)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_client_2(clean_database, test_user_2):
    """Test client authenticated as the second test user."""
    app.dependency_overrides[get_db] = lambda: clean_database
    try:
        yield _AuthClient(TestClient(app), test_user_2)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def test_settings():
    """Load test environment settings from ENV_FILE (defaults to .env.test)."""
    return get_settings(os.environ.get("ENV_FILE", ".env.test"))


@pytest.fixture(scope="session")
def test_db(test_settings):
    """SQLite database for testing (no Supabase required)"""
    db = DatabaseAdapter(test_settings)
    db.init()
    yield db
    db.close()


@pytest.fixture
def clean_database(test_db):
    """Clean database before each test"""
    test_db.cleanup()  # Drop and recreate tables
    yield test_db


def _insert_user(db, name, email, role="user"):
    user_data = {
        "id": str(uuid4()),
        "name": name,
        "email": email,
        "role": role,
    }
    return db.table("users").insert(user_data).execute().data[0]


@pytest.fixture
def test_user(clean_database):
    """Create a test user in the test database"""
    return _insert_user(clean_database, "Test User", "test@example.com")


@pytest.fixture
def test_user_2(clean_database):
    """Create a second test user in the test database"""
    return _insert_user(clean_database, "Test User 2", "test2@example.com")


@pytest.fixture
def make_tool(clean_database):
    """Return a factory that inserts a tool for the given author."""
    def _make(author: dict, name: str = "Test Tool", tags=None, **fields):
        tool_data = {
            "id": str(uuid4()),
            "name": name,
            "short_description": f"{name} in a sentence",
            "description": f"A longer description of {name}",
            "deployed_url": "https://example.com/tool",
            "image": "https://example.com/tool.png",
            "author_id": author["id"],
            "views": 0,
            "shares": 0,
            **fields,
        }
        tool = clean_database.table("tools").insert(tool_data).execute().data[0]
        for position, tag in enumerate(tags or []):
            clean_database.table("tool_tags").insert({
                "tool_id": tool["id"],
                "tag": tag,
                "position": position,
            }).execute()
        return tool
    return _make


@pytest.fixture
def test_tool(make_tool, test_user):
    """Create a test tool authored by the test user"""
    return make_tool(test_user, tags=["AI", "Productivity"])


@pytest.fixture
def auth_headers():
    """Return a factory that builds dev-token Authorization headers for a given user dict."""
    def _make(user: dict):
        return {"Authorization": f"dev-token-{user['id']}"}
    return _make
