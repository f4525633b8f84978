"""Dashboard statistics response models."""
from pydantic import BaseModel, Field
from typing import Optional

from models.activities import ActivityType


class MetricSummary(BaseModel):
    """Lifetime total plus the 30-day window counts behind the trend"""
    total: int = 0
    trend: int = 0
    current: int = 0
    previous: int = 0


class ActivityFeedItem(BaseModel):
    id: str
    type: ActivityType
    message: str
    time: str  # relative, e.g. "2 hours ago"
    timestamp: int  # milliseconds since epoch
    tool_id: Optional[str] = None
    tool_name: Optional[str] = None


class TrendingTool(BaseModel):
    id: str
    name: str
    views: int
    likes: int
    category: str
    trend: int


class DashboardStats(BaseModel):
    views: MetricSummary = Field(default_factory=MetricSummary)
    likes: MetricSummary = Field(default_factory=MetricSummary)
    shares: MetricSummary = Field(default_factory=MetricSummary)
    activities: list[ActivityFeedItem] = Field(default_factory=list)
    trending_tools: list[TrendingTool] = Field(default_factory=list)
