"""Test tool endpoints against SQLite"""
from datetime import datetime, timedelta, UTC


TOOL_PAYLOAD = {
    "name": "Regex Buddy",
    "short_description": "Build and test regular expressions",
    "description": "An interactive regular expression workbench.",
    "deployed_url": "https://regex.example.com",
    "repository_url": "https://github.com/example/regex-buddy",
    "technology": "TypeScript",
    "image": "https://regex.example.com/logo.png",
    "tags": ["Developer Tools", "Text"],
}


def _created(days_ago: int) -> str:
    return (datetime(2024, 6, 15, tzinfo=UTC) - timedelta(days=days_ago)).isoformat()


def test_list_tools_empty(client):
    response = client.get("/api/tools")
    assert response.status_code == 200
    assert response.json() == {"tools": [], "total": 0, "page": 1, "total_pages": 0}


def test_list_tools_newest_first_with_pagination(client, test_user, make_tool):
    for index in range(3):
        make_tool(test_user, name=f"Tool {index}", created_at=_created(10 - index))

    response = client.get("/api/tools", params={"page": 1, "limit": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert [tool["name"] for tool in data["tools"]] == ["Tool 2", "Tool 1"]
    assert data["tools"][0]["author"]["name"] == "Test User"

    second = client.get("/api/tools", params={"page": 2, "limit": 2}).json()
    assert [tool["name"] for tool in second["tools"]] == ["Tool 0"]


def test_list_tools_by_tag_and_search(client, test_user, make_tool):
    make_tool(test_user, name="Lint Helper", tags=["Developer Tools"])
    make_tool(test_user, name="Color Picker", tags=["Design"])
    make_tool(test_user, name="Palette", tags=["Design"], description="Generates color schemes")

    by_tag = client.get("/api/tools", params={"tag": "Design"}).json()
    assert {tool["name"] for tool in by_tag["tools"]} == {"Color Picker", "Palette"}

    by_search = client.get("/api/tools", params={"search": "COLOR"}).json()
    assert {tool["name"] for tool in by_search["tools"]} == {"Color Picker", "Palette"}

    both = client.get("/api/tools", params={"tag": "Developer Tools", "search": "color"}).json()
    assert both["total"] == 0


def test_search_treats_wildcards_literally(client, test_user, make_tool):
    make_tool(test_user, name="Coverage 100%")
    make_tool(test_user, name="Coverage 1000 lines")
    make_tool(test_user, name="snake_case linter")
    make_tool(test_user, name="snakecase converter")

    percent = client.get("/api/tools", params={"search": "100%"}).json()
    assert [tool["name"] for tool in percent["tools"]] == ["Coverage 100%"]

    underscore = client.get("/api/tools", params={"search": "e_c"}).json()
    assert [tool["name"] for tool in underscore["tools"]] == ["snake_case linter"]


def test_create_tool_requires_auth(client):
    response = client.post("/api/tools", json=TOOL_PAYLOAD)
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_create_tool_validates_required_fields(auth_client):
    payload = {**TOOL_PAYLOAD}
    del payload["deployed_url"]
    response = auth_client.post("/api/tools", json=payload)
    assert response.status_code == 422


def test_create_tool_success(auth_client, test_user):
    response = auth_client.post("/api/tools", json=TOOL_PAYLOAD)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Regex Buddy"
    assert data["author_id"] == test_user["id"]
    assert data["tags"] == ["Developer Tools", "Text"]
    assert data["views"] == 0
    assert data["loves"] == []


def test_get_user_tools(auth_client, test_user, test_user_2, make_tool):
    make_tool(test_user, name="Mine")
    make_tool(test_user_2, name="Theirs")

    response = auth_client.get("/api/tools/user")
    assert response.status_code == 200
    assert [tool["name"] for tool in response.json()["tools"]] == ["Mine"]


def test_get_tool_not_found(client):
    response = client.get("/api/tools/does-not-exist")
    assert response.status_code == 404
    assert response.json()["detail"] == "Tool not found"


def test_get_tool_anonymous_counts_view_without_activity(client, clean_database, test_tool):
    response = client.get(f"/api/tools/{test_tool['id']}")
    assert response.status_code == 200
    data = response.json()
    assert data["views"] == 1
    assert data["tags"] == ["AI", "Productivity"]
    assert len(data["view_history"]) == 1
    assert data["view_history"][0]["count"] == 1
    assert clean_database.table("activities").select("*").execute().data == []


def test_get_tool_authenticated_tracks_view(auth_client, clean_database, test_user, test_tool):
    response = auth_client.get(f"/api/tools/{test_tool['id']}")
    assert response.status_code == 200
    assert response.json()["views"] == 1

    activities = clean_database.table("activities").select("*").execute().data
    assert len(activities) == 1
    assert activities[0]["type"] == "view"
    assert activities[0]["user_id"] == test_user["id"]


def test_get_tool_with_invalid_token_is_anonymous(client, clean_database, test_tool):
    response = client.get(f"/api/tools/{test_tool['id']}", headers={"Authorization": "Bearer not-a-real-token"})
    assert response.status_code == 200
    assert response.json()["views"] == 1
    assert clean_database.table("activities").select("*").execute().data == []


def test_get_tool_by_caller_without_users_row_counts_view(client, clean_database, test_tool):
    response = client.get(f"/api/tools/{test_tool['id']}", headers={"Authorization": "Bearer dev-token-nobody"})
    assert response.status_code == 200
    assert response.json()["views"] == 1

    history = clean_database.table("tool_view_history").select("*").eq("tool_id", test_tool["id"]).execute().data
    assert [row["count"] for row in history] == [1]
    assert clean_database.table("activities").select("*").execute().data == []


def test_update_tool_by_author(auth_client, clean_database, test_tool):
    response = auth_client.put(f"/api/tools/{test_tool['id']}", json={"name": "Renamed", "tags": ["CLI"]})
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Renamed"
    assert data["tags"] == ["CLI"]
    assert data["description"] == test_tool["description"]

    activities = clean_database.table("activities").select("*").eq("type", "update").execute().data
    assert len(activities) == 1
    assert activities[0]["message"] == 'Test User updated the tool "Test Tool"'


def test_update_tool_by_other_user_forbidden(auth_client_2, test_tool):
    response = auth_client_2.put(f"/api/tools/{test_tool['id']}", json={"name": "Hijacked"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Not authorized to update this tool"


def test_delete_tool_keeps_activity_history(auth_client, clean_database, test_user, test_tool):
    auth_client.get(f"/api/tools/{test_tool['id']}")

    response = auth_client.delete(f"/api/tools/{test_tool['id']}")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Tool deleted successfully"}

    assert clean_database.table("tools").select("*").execute().data == []
    assert clean_database.table("tool_tags").select("*").execute().data == []
    assert clean_database.table("tool_view_history").select("*").execute().data == []
    assert len(clean_database.table("activities").select("*").execute().data) == 1


def test_delete_tool_by_other_user_forbidden(auth_client_2, test_tool):
    response = auth_client_2.delete(f"/api/tools/{test_tool['id']}")
    assert response.status_code == 403
    assert response.json()["detail"] == "Not authorized to delete this tool"
