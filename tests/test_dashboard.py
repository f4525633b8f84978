"""Test the dashboard statistics endpoint"""
from datetime import timedelta

from services.activity_tracker import ActivityTracker
from services.formatting import day_key, utcnow
from services import statistics


def test_dashboard_requires_auth(client):
    response = client.get("/api/dashboard/stats")
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_dashboard_unknown_user(client, clean_database, test_user, auth_headers):
    clean_database.table("users").delete().eq("id", test_user["id"]).execute()

    response = client.get("/api/dashboard/stats", headers=auth_headers(test_user))
    assert response.status_code == 404
    assert response.json()["detail"] == "User not found in database"


def test_dashboard_invalid_token_is_unauthenticated(client):
    response = client.get("/api/dashboard/stats", headers={"Authorization": "Bearer not-a-real-token"})
    assert response.status_code == 401


def test_dashboard_empty(auth_client):
    response = auth_client.get("/api/dashboard/stats")
    assert response.status_code == 200
    data = response.json()
    for metric in ("views", "likes", "shares"):
        assert data[metric] == {"total": 0, "trend": 0, "current": 0, "previous": 0}
    assert data["activities"] == []
    assert data["trending_tools"] == []


def test_dashboard_reflects_tracked_activity(auth_client, auth_client_2, clean_database, test_user, test_tool):
    auth_client_2.get(f"/api/tools/{test_tool['id']}")
    auth_client_2.get(f"/api/tools/{test_tool['id']}")
    auth_client_2.post(f"/api/tools/{test_tool['id']}/likes")
    auth_client_2.post(f"/api/tools/{test_tool['id']}/share", json={"platform": "Reddit"})

    # A view from before the current window, recorded in the previous one
    earlier = utcnow() - timedelta(days=45)
    clean_database.table("tool_view_history").insert({
        "tool_id": test_tool["id"],
        "date": day_key(earlier),
        "count": 1,
    }).execute()

    response = auth_client.get("/api/dashboard/stats")
    assert response.status_code == 200
    data = response.json()

    assert data["views"]["total"] == 2
    assert data["views"]["current"] == 2
    assert data["views"]["trend"] == 100
    assert data["likes"]["total"] == 1
    assert data["shares"]["total"] == 1

    feed = data["activities"]
    assert sorted(item["type"] for item in feed) == ["like", "share", "view", "view"]
    share = next(item for item in feed if item["type"] == "share")
    assert share["message"] == 'Test User 2 shared the tool "Test Tool" on Reddit'
    assert share["time"] == "Just now"
    assert share["tool_name"] == "Test Tool"

    assert data["trending_tools"] == [{
        "id": test_tool["id"],
        "name": "Test Tool",
        "views": 2,
        "likes": 1,
        "category": "AI",
        "trend": 100,
    }]


def test_dashboard_unexpected_error_is_generic_500(auth_client, monkeypatch):
    def _fail(self, *args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(statistics.StatisticsAggregator, "trending_tools", _fail)

    response = auth_client.get("/api/dashboard/stats")
    assert response.status_code == 500
    assert response.json()["detail"] == "Error retrieving dashboard statistics"


def test_feed_includes_user_activity_on_other_tools(auth_client, clean_database, test_user, test_user_2, make_tool):
    other = make_tool(test_user_2, name="Elsewhere")
    ActivityTracker(clean_database).track(test_user["id"], other["id"], "favorite")

    feed = auth_client.get("/api/dashboard/stats").json()["activities"]
    assert len(feed) == 1
    assert feed[0]["tool_name"] == "Elsewhere"
