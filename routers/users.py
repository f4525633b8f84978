"""User account endpoints.

Handles the caller's own profile, favorites, and account records created by the
identity provider's sign-up hook.
Privacy: Public account lookup excludes email.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional

from config import load_settings_from_env
from database_adapter import DatabaseAdapter
from models.users import FavoritesResponse, ProfileUpdate, UserAccountCreate, UserAccountResponse, UserProfile
from routers.tools import build_tool_responses, delete_tool_rows
from services.auth import get_current_user, get_current_user_optional
from services.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _get_user_row(db: DatabaseAdapter, user_id: str) -> Optional[dict]:
    response = db.table("users").select("*").eq("id", user_id).execute()
    return response.data[0] if response.data else None


def _favorite_tools(db: DatabaseAdapter, user_id: str) -> list[dict]:
    rows = db.table("user_favorites").select("*").eq("user_id", user_id).order("created_at", desc=True).execute().data or []
    tool_ids = [row["tool_id"] for row in rows]
    if not tool_ids:
        return []
    tools = {tool["id"]: tool for tool in db.table("tools").select("*").in_("id", tool_ids).execute().data or []}
    # Favorites of deleted tools are skipped
    ordered = [tools[tool_id] for tool_id in tool_ids if tool_id in tools]
    return build_tool_responses(db, ordered)


def _authored_tools(db: DatabaseAdapter, user_id: str) -> list[dict]:
    rows = db.table("tools").select("*").eq("author_id", user_id).order("created_at", desc=True).execute().data or []
    return build_tool_responses(db, rows)


@router.get("/profile", response_model=UserProfile)
async def get_profile(
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """The caller's own account with authored and favorite tools."""
    user = _get_user_row(db, current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        **user,
        "tools": _authored_tools(db, user["id"]),
        "favorites": _favorite_tools(db, user["id"]),
    }


@router.put("/profile", response_model=UserAccountResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Update name, bio and avatar of the caller's account."""
    if not _get_user_row(db, current_user["id"]):
        raise HTTPException(status_code=404, detail="User not found")

    update_data = profile.model_dump(exclude_unset=True)
    if update_data:
        db.table("users").update(update_data).eq("id", current_user["id"]).execute()
    return _get_user_row(db, current_user["id"])


@router.delete("/profile")
async def delete_profile(
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Delete the caller's account and the tools they authored.

    Activity records of the user and of their tools are kept.
    """
    user_id = current_user["id"]
    try:
        for tool in db.table("tools").select("id").eq("author_id", user_id).execute().data or []:
            delete_tool_rows(db, tool["id"])
        db.table("user_favorites").delete().eq("user_id", user_id).execute()
        db.table("tool_loves").delete().eq("user_id", user_id).execute()
        db.table("users").delete().eq("id", user_id).execute()
    except Exception as e:
        logger.error(f"Failed to delete account {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting account")

    logger.info(f"Account {user_id} deleted")
    return {"message": "Account deleted successfully"}


@router.get("/favorites", response_model=FavoritesResponse)
async def get_favorites(
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    if not _get_user_row(db, current_user["id"]):
        raise HTTPException(status_code=404, detail="User not found")
    return {"favorites": _favorite_tools(db, current_user["id"])}


@router.get("/{user_id}", response_model=UserAccountResponse)
async def get_user_account(
    user_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    db = Depends(get_db),
):
    """Get a user account; email is only shown to its owner."""
    user = _get_user_row(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not current_user or current_user.get("id") != user_id:
        user["email"] = None
    return user


@router.put("/{user_id}", response_model=UserAccountResponse)
@router.post("/{user_id}", response_model=UserAccountResponse)
async def create_or_update_user_account(
    user_id: str,
    account_data: UserAccountCreate,
    request: Request,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    db = Depends(get_db),
):
    """Create or update a user account (used by the sign-up hook and test user creation).

    Outside TEST_MODE, updating an existing account requires the owner's identity.
    """
    settings = load_settings_from_env()
    existing = _get_user_row(db, user_id)

    if existing and not settings.TEST_MODE and (not current_user or current_user.get("id") != user_id):
        raise HTTPException(status_code=401, detail="Authentication required")

    email = str(account_data.email).strip().lower()
    same_email = db.table("users").select("id").eq("email", email).neq("id", user_id).limit(1).execute()
    if same_email.data:
        raise HTTPException(status_code=409, detail="Email already in use")

    user_data = account_data.model_dump(exclude_unset=True)
    user_data["email"] = email
    user_data["name"] = account_data.name.strip()

    try:
        if existing:
            # Role is preserved on update
            db.table("users").update(user_data).eq("id", user_id).execute()
            logger.info(f"Updated user {user_id}")
        else:
            db.table("users").insert({**user_data, "id": user_id, "role": "user"}).execute()
            logger.info(f"Created user {user_id} (via {request.method})")
    except Exception as e:
        logger.error(f"Error creating/updating user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error saving user account")

    return _get_user_row(db, user_id)
