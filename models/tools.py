from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Union
from datetime import datetime


class ToolBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    short_description: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    deployed_url: str = Field(..., min_length=1)
    repository_url: Optional[str] = None
    technology: Optional[str] = None
    image: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)


class ToolCreate(ToolBase):
    pass


class ToolUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    short_description: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    deployed_url: Optional[str] = None
    repository_url: Optional[str] = None
    technology: Optional[str] = None
    image: Optional[str] = None
    tags: Optional[list[str]] = None


class AuthorSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None


class ViewHistoryEntry(BaseModel):
    date: str  # YYYY-MM-DD
    count: int


class CommentResponse(BaseModel):
    id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ToolResponse(ToolBase):
    id: str
    author_id: str
    author: Optional[AuthorSummary] = None
    views: int = 0
    shares: int = 0
    loves: list[str] = Field(default_factory=list)
    like_count: int = 0
    average_rating: float = 0
    comments: list[CommentResponse] = Field(default_factory=list)
    view_history: list[ViewHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ToolListResponse(BaseModel):
    tools: list[ToolResponse]
    total: int
    page: int
    total_pages: int


class ToolSummary(BaseModel):
    """A tool reference resolved to its display fields"""
    id: str
    name: str


# A tool reference is either a bare id or a resolved summary
ToolRef = Union[str, ToolSummary]


class ShareRequest(BaseModel):
    platform: Optional[str] = None


class ToolInteraction(BaseModel):
    action: str  # "rate" | "love" | "comment"
    rating: Optional[int] = None
    comment: Optional[str] = None
