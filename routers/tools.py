"""Tool listing endpoints.

Handles CRUD for tools with tags stored in the tool_tags relationship table.
Viewing a tool counts a view through the activity tracker (or the anonymous path).
Security: Mutations require authentication; updates/deletes are limited to the tool's author.
"""
import logging
import math
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from database_adapter import DatabaseAdapter
from models.activities import ActivityType
from models.tools import ToolCreate, ToolListResponse, ToolResponse, ToolUpdate
from services.activity_tracker import ActivityTracker
from services.auth import ensure_tool_author, get_current_user, get_current_user_optional
from services.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools", tags=["tools"])

# Tables keyed by tool_id that go away with the tool. Activities stay.
TOOL_RELATION_TABLES = ("tool_tags", "tool_loves", "tool_view_history", "tool_ratings", "tool_comments", "user_favorites")


# ------------------------------
# Tool helpers (shared with tool_interactions and users)
# ------------------------------

def get_tool_or_404(db: DatabaseAdapter, tool_id: str) -> dict:
    response = db.table("tools").select("*").eq("id", tool_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Tool not found")
    return response.data[0]


def get_tool_tags(db: DatabaseAdapter, tool_ids: list[str]) -> dict[str, list[str]]:
    """Map tool id -> tags in position order"""
    tags_by_tool: dict[str, list[str]] = {tool_id: [] for tool_id in tool_ids}
    if not tool_ids:
        return tags_by_tool
    rows = db.table("tool_tags").select("*").in_("tool_id", tool_ids).order("position").execute().data or []
    for row in rows:
        tags_by_tool.setdefault(row["tool_id"], []).append(row["tag"])
    return tags_by_tool


def set_tool_tags(db: DatabaseAdapter, tool_id: str, tags: list[str]) -> None:
    """Replace a tool's tags; the first tag becomes its category."""
    db.table("tool_tags").delete().eq("tool_id", tool_id).execute()
    cleaned = [tag.strip() for tag in tags if tag and tag.strip()]
    if not cleaned:
        return
    payload = [
        {"id": str(uuid.uuid4()), "tool_id": tool_id, "tag": tag, "position": position}
        for position, tag in enumerate(dict.fromkeys(cleaned))
    ]
    db.table("tool_tags").insert(payload).execute()


def get_tool_ids_for_tag(db: DatabaseAdapter, tag: str) -> set[str]:
    rows = db.table("tool_tags").select("tool_id").eq("tag", tag).execute().data or []
    return {row["tool_id"] for row in rows}


def get_tool_ids_for_search(db: DatabaseAdapter, search: str) -> set[str]:
    """Case-insensitive match over name, short description and description."""
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    ids: set[str] = set()
    for column in ("name", "short_description", "description"):
        rows = db.table("tools").select("id").ilike(column, pattern).execute().data or []
        ids.update(row["id"] for row in rows)
    return ids


def _author_summaries(db: DatabaseAdapter, author_ids: list[str]) -> dict[str, dict]:
    if not author_ids:
        return {}
    rows = db.table("users").select("*").in_("id", author_ids).execute().data or []
    return {
        row["id"]: {"id": row["id"], "name": row.get("name"), "email": row.get("email"), "avatar": row.get("avatar")}
        for row in rows
    }


def build_tool_responses(db: DatabaseAdapter, tools: list[dict], detail: bool = False) -> list[dict]:
    """Attach author, tags and loves to tool rows; comments and view history too when `detail`."""
    tool_ids = [tool["id"] for tool in tools]
    if not tool_ids:
        return []

    tags_by_tool = get_tool_tags(db, tool_ids)
    authors = _author_summaries(db, list({tool["author_id"] for tool in tools}))

    loves_by_tool: dict[str, list[str]] = {tool_id: [] for tool_id in tool_ids}
    for row in db.table("tool_loves").select("*").in_("tool_id", tool_ids).execute().data or []:
        loves_by_tool[row["tool_id"]].append(row["user_id"])

    comments_by_tool: dict[str, list[dict]] = {tool_id: [] for tool_id in tool_ids}
    history_by_tool: dict[str, list[dict]] = {tool_id: [] for tool_id in tool_ids}
    if detail:
        comments = db.table("tool_comments").select("*").in_("tool_id", tool_ids).order("created_at").execute()
        for row in comments.data or []:
            comments_by_tool[row["tool_id"]].append(row)
        history = db.table("tool_view_history").select("*").in_("tool_id", tool_ids).order("date").execute()
        for row in history.data or []:
            history_by_tool[row["tool_id"]].append({"date": row["date"], "count": row["count"]})

    result = []
    for tool in tools:
        item = dict(tool)
        item["tags"] = tags_by_tool.get(tool["id"], [])
        item["author"] = authors.get(tool["author_id"])
        item["loves"] = loves_by_tool[tool["id"]]
        item["like_count"] = len(item["loves"])
        item["views"] = tool.get("views") or 0
        item["shares"] = tool.get("shares") or 0
        item["average_rating"] = tool.get("average_rating") or 0
        item["comments"] = comments_by_tool[tool["id"]]
        item["view_history"] = history_by_tool[tool["id"]]
        result.append(item)
    return result


def build_tool_response(db: DatabaseAdapter, tool: dict) -> dict:
    return build_tool_responses(db, [tool], detail=True)[0]


def delete_tool_rows(db: DatabaseAdapter, tool_id: str) -> None:
    """Remove a tool and its relation rows. Activity records are kept."""
    for table in TOOL_RELATION_TABLES:
        db.table(table).delete().eq("tool_id", tool_id).execute()
    db.table("tools").delete().eq("id", tool_id).execute()


# ------------------------------
# Routes
# ------------------------------

@router.get("", response_model=ToolListResponse)
async def get_tools(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tag: Optional[str] = None,
    search: Optional[str] = None,
    db = Depends(get_db),
):
    """List tools newest first, optionally filtered by tag and text search."""
    matching: Optional[set[str]] = None
    if tag:
        matching = get_tool_ids_for_tag(db, tag)
    if search:
        found = get_tool_ids_for_search(db, search)
        matching = found if matching is None else matching & found

    if matching is not None and not matching:
        return {"tools": [], "total": 0, "page": page, "total_pages": 0}

    count_query = db.table("tools").select("id")
    query = db.table("tools").select("*")
    if matching is not None:
        count_query = count_query.in_("id", list(matching))
        query = query.in_("id", list(matching))

    total = len(count_query.execute().data or [])
    offset = (page - 1) * limit
    rows = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute().data or []

    return {
        "tools": build_tool_responses(db, rows),
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit),
    }


@router.post("", response_model=ToolResponse, status_code=201)
async def create_tool(
    tool: ToolCreate,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Create a new tool authored by the caller."""
    tool_data = tool.model_dump(exclude={"tags"})
    tool_data["id"] = str(uuid.uuid4())
    tool_data["author_id"] = current_user["id"]
    tool_data["views"] = 0
    tool_data["shares"] = 0

    response = db.table("tools").insert(tool_data).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Error creating tool")

    created = response.data[0]
    if tool.tags:
        set_tool_tags(db, created["id"], tool.tags)

    logger.info(f"Tool {created['id']} created by user {current_user['id']}")
    return build_tool_response(db, created)


@router.get("/user")
async def get_user_tools(
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Tools authored by the caller, newest first."""
    rows = (
        db.table("tools")
        .select("*")
        .eq("author_id", current_user["id"])
        .order("created_at", desc=True)
        .execute()
        .data
        or []
    )
    return {"tools": [ToolResponse(**item) for item in build_tool_responses(db, rows)]}


@router.get("/{tool_id}", response_model=ToolResponse)
async def get_tool(
    tool_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    db = Depends(get_db),
):
    """Get a single tool and count the view.

    Tracking never fails the request; the response reflects the counted view.
    """
    get_tool_or_404(db, tool_id)

    try:
        tracker = ActivityTracker(db)
        if not current_user or tracker.track(current_user["id"], tool_id, ActivityType.VIEW) is None:
            tracker.record_anonymous_view(tool_id)
    except Exception as e:
        logger.error(f"Failed to track view for tool {tool_id}: {e}")

    return build_tool_response(db, get_tool_or_404(db, tool_id))


@router.put("/{tool_id}", response_model=ToolResponse)
async def update_tool(
    tool_id: str,
    tool: ToolUpdate,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Update a tool (author only)."""
    existing = get_tool_or_404(db, tool_id)
    ensure_tool_author(current_user, existing, "update")

    update_data = tool.model_dump(exclude_unset=True)
    tags = update_data.pop("tags", None)
    if update_data:
        db.table("tools").update(update_data).eq("id", tool_id).execute()
    if tags is not None:
        set_tool_tags(db, tool_id, tags)

    # Logged under the name the tool had before this update
    ActivityTracker(db).track(
        current_user["id"],
        tool_id,
        ActivityType.UPDATE,
        f'{current_user.get("name") or "Someone"} updated the tool "{existing["name"]}"',
    )

    return build_tool_response(db, get_tool_or_404(db, tool_id))


@router.delete("/{tool_id}")
async def delete_tool(
    tool_id: str,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Delete a tool (author only). Its activity history is kept."""
    existing = get_tool_or_404(db, tool_id)
    ensure_tool_author(current_user, existing, "delete")

    try:
        delete_tool_rows(db, tool_id)
    except Exception as e:
        logger.error(f"Failed to delete tool {tool_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting tool")

    logger.info(f"Tool {tool_id} deleted by user {current_user['id']}")
    return {"success": True, "message": "Tool deleted successfully"}
