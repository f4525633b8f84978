"""
Activity log routes.

The log is append-only and written by the activity tracker; these routes only read it.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from models.activities import ActivityResponse, ActivityType
from services.database import get_db

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("", response_model=list[ActivityResponse])
async def get_activities(
    user_id: Optional[str] = None,
    tool_id: Optional[str] = None,
    activity_type: Optional[ActivityType] = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db = Depends(get_db),
):
    """Get activities with optional filters, newest first"""
    query = db.table("activities").select("*")

    if user_id:
        query = query.eq("user_id", user_id)

    if tool_id:
        query = query.eq("tool_id", tool_id)

    if activity_type:
        query = query.eq("type", activity_type.value)

    query = query.range(offset, offset + limit - 1).order("timestamp", desc=True)

    response = query.execute()
    return response.data or []


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: str,
    db = Depends(get_db),
):
    """Get a specific activity by ID"""
    response = db.table("activities").select("*").eq("id", activity_id).execute()

    if not response.data:
        raise HTTPException(status_code=404, detail="Activity not found")

    return response.data[0]
