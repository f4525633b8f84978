"""
Activity log models for tracking user actions on tools.
"""
from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import Optional


class ActivityType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    FAVORITE = "favorite"
    SHARE = "share"
    COMMENT = "comment"
    UPDATE = "update"


class ActivityResponse(BaseModel):
    """Response model for an activity record"""
    id: str
    user_id: str
    tool_id: str
    type: ActivityType
    message: str
    timestamp: int  # milliseconds since epoch
    created_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
