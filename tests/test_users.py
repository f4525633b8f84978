"""Test user account and profile endpoints against SQLite"""
import pytest


def test_create_user_account(client, clean_database):
    response = client.put("/api/users/new-user-1", json={
        "name": "Ada Lovelace",
        "email": "Ada@Example.com",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "new-user-1"
    assert data["email"] == "ada@example.com"
    assert data["role"] == "user"


def test_update_user_account_preserves_role(client, clean_database, test_user):
    clean_database.table("users").update({"role": "admin"}).eq("id", test_user["id"]).execute()

    response = client.post(f"/api/users/{test_user['id']}", json={
        "name": "Renamed User",
        "email": "test@example.com",
        "bio": "Builds things",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Renamed User"
    assert data["bio"] == "Builds things"
    assert data["role"] == "admin"


def test_create_user_account_duplicate_email(client, test_user):
    response = client.put("/api/users/someone-else", json={"name": "Copy", "email": "test@example.com"})
    assert response.status_code == 409


def test_create_user_account_invalid_email(client):
    response = client.put("/api/users/bad-email", json={"name": "Bad", "email": "not-an-email"})
    assert response.status_code == 422


def test_update_account_requires_owner_outside_test_mode(client, test_user, monkeypatch):
    monkeypatch.setenv("TEST_MODE", "false")
    response = client.put(f"/api/users/{test_user['id']}", json={"name": "Nope", "email": "test@example.com"})
    assert response.status_code == 401


def test_get_user_account_hides_email_from_others(client, auth_client, test_user, test_user_2):
    public = client.get(f"/api/users/{test_user_2['id']}")
    assert public.status_code == 200
    assert public.json()["email"] is None

    own = auth_client.get(f"/api/users/{test_user['id']}")
    assert own.json()["email"] == "test@example.com"


def test_get_user_account_not_found(client):
    response = client.get("/api/users/missing")
    assert response.status_code == 404


def test_profile_requires_auth(client):
    assert client.get("/api/users/profile").status_code == 401


def test_profile_includes_tools_and_favorites(auth_client, test_user, test_user_2, make_tool):
    make_tool(test_user, name="My Tool")
    favorite = make_tool(test_user_2, name="Their Tool")
    auth_client.post(f"/api/tools/{favorite['id']}/favorites")

    response = auth_client.get("/api/users/profile")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == test_user["id"]
    assert [tool["name"] for tool in data["tools"]] == ["My Tool"]
    assert [tool["name"] for tool in data["favorites"]] == ["Their Tool"]


def test_update_profile(auth_client):
    response = auth_client.put("/api/users/profile", json={"name": "New Name", "bio": "Hello"})
    assert response.status_code == 200
    assert response.json()["name"] == "New Name"
    assert response.json()["bio"] == "Hello"


@pytest.mark.parametrize("payload", [{"bio": "x" * 501}, {"name": ""}])
def test_update_profile_validation(auth_client, payload):
    response = auth_client.put("/api/users/profile", json=payload)
    assert response.status_code == 422


def test_favorites_list(auth_client, test_user_2, make_tool):
    tool = make_tool(test_user_2, name="Saved Tool")
    auth_client.post(f"/api/tools/{tool['id']}/favorites")

    response = auth_client.get("/api/users/favorites")
    assert response.status_code == 200
    favorites = response.json()["favorites"]
    assert [item["name"] for item in favorites] == ["Saved Tool"]
    assert favorites[0]["author"]["name"] == "Test User 2"


def test_favorites_skip_deleted_tools(auth_client, auth_client_2, test_user_2, make_tool):
    tool = make_tool(test_user_2, name="Short Lived")
    auth_client.post(f"/api/tools/{tool['id']}/favorites")
    auth_client_2.delete(f"/api/tools/{tool['id']}")

    assert auth_client.get("/api/users/favorites").json()["favorites"] == []


def test_delete_account_removes_tools_keeps_activity(auth_client, clean_database, test_user, test_tool):
    auth_client.get(f"/api/tools/{test_tool['id']}")

    response = auth_client.delete("/api/users/profile")
    assert response.status_code == 200
    assert response.json()["message"] == "Account deleted successfully"

    assert clean_database.table("users").select("*").eq("id", test_user["id"]).execute().data == []
    assert clean_database.table("tools").select("*").execute().data == []
    assert len(clean_database.table("activities").select("*").execute().data) == 1
