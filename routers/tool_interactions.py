"""Tool interaction endpoints: likes, favorites, shares, ratings and comments.

Every interaction goes through the activity tracker so counters and the activity
log stay in step. When tracking is not possible (e.g. the caller has no users row)
the primary change is still applied directly.
"""
import logging
import uuid
from datetime import datetime, UTC
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from typing import Optional

from database_adapter import DatabaseAdapter
from models.activities import ActivityType
from models.tools import ShareRequest, ToolInteraction, ToolResponse
from routers.tools import build_tool_response, get_tool_or_404
from services import activity_tracker
from services.activity_tracker import ActivityTracker
from services.auth import get_current_user, get_current_user_optional
from services.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools", tags=["tool interactions"])


def _like(db: DatabaseAdapter, tool_id: str, user_id: str) -> None:
    if ActivityTracker(db).track(user_id, tool_id, ActivityType.LIKE) is None:
        logger.warning(f"Like by {user_id} on {tool_id} not tracked; applying directly")
        activity_tracker.add_love(db, tool_id, user_id)


def _unlike(db: DatabaseAdapter, tool_id: str, user_id: str) -> None:
    if ActivityTracker(db).untrack(user_id, tool_id, ActivityType.LIKE) is None:
        logger.warning(f"Unlike by {user_id} on {tool_id} not tracked; applying directly")
        activity_tracker.remove_love(db, tool_id, user_id)


def _refresh_average_rating(db: DatabaseAdapter, tool_id: str) -> float:
    rows = db.table("tool_ratings").select("rating").eq("tool_id", tool_id).execute().data or []
    average = round(sum(row["rating"] for row in rows) / len(rows), 2) if rows else 0
    db.table("tools").update({"average_rating": average}).eq("id", tool_id).execute()
    return average


@router.post("/{tool_id}/likes")
async def like_tool(
    tool_id: str,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Like a tool. Liking twice is reported, not repeated."""
    get_tool_or_404(db, tool_id)

    if activity_tracker.has_loved(db, tool_id, current_user["id"]):
        return {"success": True, "message": "Tool already liked", "already_liked": True}

    _like(db, tool_id, current_user["id"])
    return {"success": True, "message": "Tool liked successfully"}


@router.delete("/{tool_id}/likes")
async def unlike_tool(
    tool_id: str,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    get_tool_or_404(db, tool_id)
    _unlike(db, tool_id, current_user["id"])
    return {"success": True, "message": "Tool unliked successfully"}


@router.post("/{tool_id}/favorites")
async def favorite_tool(
    tool_id: str,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    get_tool_or_404(db, tool_id)
    if ActivityTracker(db).track(current_user["id"], tool_id, ActivityType.FAVORITE) is None:
        activity_tracker.add_favorite(db, current_user["id"], tool_id)
    return {"success": True, "message": "Tool added to favorites"}


@router.delete("/{tool_id}/favorites")
async def unfavorite_tool(
    tool_id: str,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    get_tool_or_404(db, tool_id)
    if ActivityTracker(db).untrack(current_user["id"], tool_id, ActivityType.FAVORITE) is None:
        activity_tracker.remove_favorite(db, current_user["id"], tool_id)
    return {"success": True, "message": "Tool removed from favorites"}


async def _share_platform(request: Request) -> Optional[str]:
    try:
        share = ShareRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.info(f"Ignoring share body: {e}")
        return None
    return share.platform.strip() if share.platform and share.platform.strip() else None


@router.post("/{tool_id}/share")
async def share_tool(
    tool_id: str,
    request: Request,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    db = Depends(get_db),
):
    """Record a share. Anonymous shares only bump the counter.

    The body is optional; an unparseable one is treated as no platform.
    """
    tool = get_tool_or_404(db, tool_id)
    platform = await _share_platform(request)
    tracker = ActivityTracker(db)

    if current_user:
        message = f'{current_user.get("name") or "Someone"} shared the tool "{tool["name"]}"'
        if platform:
            message += f" on {platform}"
        if tracker.track(current_user["id"], tool_id, ActivityType.SHARE, message) is None:
            activity_tracker.increment_share_count(db, tool_id)
    else:
        tracker.record_anonymous_share(tool_id)

    return {"success": True, "message": "Share recorded successfully"}


@router.post("/{tool_id}/interactions", response_model=ToolResponse)
async def interact_with_tool(
    tool_id: str,
    interaction: ToolInteraction,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Rate, toggle love, or comment on a tool. Returns the updated tool."""
    get_tool_or_404(db, tool_id)
    user_id = current_user["id"]

    if interaction.action == "rate":
        if interaction.rating is None or not 1 <= interaction.rating <= 5:
            raise HTTPException(status_code=400, detail="Invalid rating value")
        db.table("tool_ratings").upsert(
            {"tool_id": tool_id, "user_id": user_id, "rating": interaction.rating},
            on_conflict="tool_id,user_id",
        ).execute()
        _refresh_average_rating(db, tool_id)

    elif interaction.action == "love":
        if activity_tracker.has_loved(db, tool_id, user_id):
            _unlike(db, tool_id, user_id)
        else:
            _like(db, tool_id, user_id)

    elif interaction.action == "comment":
        content = (interaction.comment or "").strip()
        if not content:
            raise HTTPException(status_code=400, detail="Comment cannot be empty")
        now = datetime.now(UTC)
        db.table("tool_comments").insert({
            "id": str(uuid.uuid4()),
            "tool_id": tool_id,
            "user_id": user_id,
            "content": content,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }).execute()
        ActivityTracker(db).track(user_id, tool_id, ActivityType.COMMENT)

    else:
        raise HTTPException(status_code=400, detail="Invalid action")

    return build_tool_response(db, get_tool_or_404(db, tool_id))
