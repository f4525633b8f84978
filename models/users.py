"""User account Pydantic models for request/response validation.

Email validation enforced via EmailStr.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from models.tools import ToolResponse


class UserAccountCreate(BaseModel):
    """Request model for creating/updating a user account record"""
    name: str = Field(..., min_length=1)
    email: EmailStr
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None


class UserAccountResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    role: str = "user"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserProfile(UserAccountResponse):
    """Own profile with authored and favorite tools"""
    tools: list[ToolResponse] = Field(default_factory=list)
    favorites: list[ToolResponse] = Field(default_factory=list)


class FavoritesResponse(BaseModel):
    favorites: list[ToolResponse]
