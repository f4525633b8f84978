"""
Activity tracking: record a user action on a tool, keep the tool's counters
consistent, and append an immutable row to the activity log.

Every counter change is one storage operation (increment or membership
upsert/delete). The view path makes two of them, total then today's bucket,
so concurrent views can briefly leave `views` ahead of the history sum.
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Union

from database_adapter import DatabaseAdapter
from models.activities import ActivityType
from services.errors import ActivityValidationError, NotFoundError
from services.formatting import day_key, to_millis, utcnow

logger = logging.getLogger(__name__)


DEFAULT_MESSAGES = {
    ActivityType.VIEW: '{user} viewed the tool "{tool}"',
    ActivityType.LIKE: '{user} liked the tool "{tool}"',
    ActivityType.FAVORITE: '{user} added "{tool}" to favorites',
    ActivityType.SHARE: '{user} shared the tool "{tool}"',
    ActivityType.COMMENT: '{user} commented on "{tool}"',
    ActivityType.UPDATE: '{user} updated the tool "{tool}"',
}

REMOVAL_MESSAGES = {
    ActivityType.LIKE: '{user} unliked the tool "{tool}"',
    ActivityType.FAVORITE: '{user} removed "{tool}" from favorites',
}


def default_message(activity_type: ActivityType, user_name: str, tool_name: str, removal: bool = False) -> str:
    templates = REMOVAL_MESSAGES if removal else DEFAULT_MESSAGES
    template = templates.get(activity_type, '{user} interacted with "{tool}"')
    return template.format(user=user_name, tool=tool_name)


# ----- Single-operation store mutations -----

def increment_view_count(db: DatabaseAdapter, tool_id: str, now: Optional[datetime] = None) -> None:
    """Add one view to the tool total and to today's view history bucket."""
    today = day_key(now)
    db.increment("tools", "views", {"id": tool_id})

    match = {"tool_id": tool_id, "date": today}
    if db.increment("tool_view_history", "count", match):
        return

    created = db.table("tool_view_history").upsert(
        {"id": str(uuid.uuid4()), **match, "count": 1},
        on_conflict="tool_id,date",
        ignore_duplicates=True,
    ).execute()
    if not created.data:
        # Another request created today's bucket first
        db.increment("tool_view_history", "count", match)


def increment_share_count(db: DatabaseAdapter, tool_id: str) -> None:
    db.increment("tools", "shares", {"id": tool_id})


def has_loved(db: DatabaseAdapter, tool_id: str, user_id: str) -> bool:
    response = db.table("tool_loves").select("id").eq("tool_id", tool_id).eq("user_id", user_id).limit(1).execute()
    return bool(response.data)


def add_love(db: DatabaseAdapter, tool_id: str, user_id: str) -> None:
    db.table("tool_loves").upsert(
        {"id": str(uuid.uuid4()), "tool_id": tool_id, "user_id": user_id},
        on_conflict="tool_id,user_id",
        ignore_duplicates=True,
    ).execute()


def remove_love(db: DatabaseAdapter, tool_id: str, user_id: str) -> None:
    db.table("tool_loves").delete().eq("tool_id", tool_id).eq("user_id", user_id).execute()


def add_favorite(db: DatabaseAdapter, user_id: str, tool_id: str) -> None:
    db.table("user_favorites").upsert(
        {"id": str(uuid.uuid4()), "user_id": user_id, "tool_id": tool_id},
        on_conflict="user_id,tool_id",
        ignore_duplicates=True,
    ).execute()


def remove_favorite(db: DatabaseAdapter, user_id: str, tool_id: str) -> None:
    db.table("user_favorites").delete().eq("user_id", user_id).eq("tool_id", tool_id).execute()


def parse_activity_type(value: Union[str, ActivityType, None]) -> ActivityType:
    if isinstance(value, ActivityType):
        return value
    try:
        return ActivityType(value)
    except ValueError:
        raise ActivityValidationError(f"Unknown activity type: {value!r}")


class ActivityTracker:
    """Single entry point for recording user actions on tools."""

    def __init__(self, db: DatabaseAdapter):
        self.db = db
        self._handlers: dict[ActivityType, Callable[[str, str, datetime], None]] = {
            ActivityType.VIEW: self._apply_view,
            ActivityType.SHARE: self._apply_share,
            ActivityType.LIKE: self._apply_like,
            ActivityType.FAVORITE: self._apply_favorite,
            ActivityType.COMMENT: self._apply_nothing,
            ActivityType.UPDATE: self._apply_nothing,
        }
        self._removal_handlers: dict[ActivityType, Callable[[str, str, datetime], None]] = {
            ActivityType.LIKE: self._remove_like,
            ActivityType.FAVORITE: self._remove_favorite,
        }

    def track(
        self,
        user_id: Optional[str],
        tool_id: Optional[str],
        activity_type: Union[str, ActivityType, None],
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[dict]:
        """
        Apply the side effect for `activity_type` and append an activity record.

        Returns the stored record, or None when inputs are invalid, the user or
        tool does not exist, or storage fails. Failures are logged, never raised,
        so the caller's own work (e.g. serving a tool page) is not affected.
        """
        return self._record(user_id, tool_id, activity_type, message, now, removal=False)

    def untrack(
        self,
        user_id: Optional[str],
        tool_id: Optional[str],
        activity_type: Union[str, ActivityType, None],
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[dict]:
        """
        Reverse a like or favorite and record it under the same activity type.

        Removing a membership that does not exist changes nothing but is still recorded.
        """
        return self._record(user_id, tool_id, activity_type, message, now, removal=True)

    def record_anonymous_view(self, tool_id: str, now: Optional[datetime] = None) -> bool:
        """Count a view without a caller identity: no activity row, no dedup."""
        if not self._tool_exists(tool_id):
            logger.warning(f"Anonymous view for unknown tool {tool_id}")
            return False
        increment_view_count(self.db, tool_id, now)
        return True

    def record_anonymous_share(self, tool_id: str) -> bool:
        """Count a share without a caller identity: no activity row, no dedup."""
        if not self._tool_exists(tool_id):
            logger.warning(f"Anonymous share for unknown tool {tool_id}")
            return False
        increment_share_count(self.db, tool_id)
        return True

    def _record(self, user_id, tool_id, activity_type, message, now, removal: bool) -> Optional[dict]:
        now = now or utcnow()
        try:
            if not user_id or not tool_id or not activity_type:
                raise ActivityValidationError(
                    f"Missing activity fields: user_id={user_id!r} tool_id={tool_id!r} type={activity_type!r}"
                )
            kind = parse_activity_type(activity_type)
            handlers = self._removal_handlers if removal else self._handlers
            handler = handlers.get(kind)
            if handler is None:
                raise ActivityValidationError(f"Activity type {kind.value!r} cannot be removed")

            tool = self._get_row("tools", tool_id)
            user = self._get_row("users", user_id)
            if tool is None or user is None:
                raise NotFoundError(
                    f"Tool or user not found: tool_id={tool_id} (found={tool is not None}) "
                    f"user_id={user_id} (found={user is not None})"
                )

            text = message or default_message(kind, user.get("name") or "Someone", tool.get("name") or "", removal)

            handler(user_id, tool_id, now)

            response = self.db.table("activities").insert({
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "tool_id": tool_id,
                "type": kind.value,
                "message": text,
                "timestamp": to_millis(now),
            }).execute()
        except (ActivityValidationError, NotFoundError) as e:
            logger.warning(f"Activity not tracked: {e.detail}")
            return None
        except Exception as e:
            logger.error(f"Error tracking activity {activity_type} for tool {tool_id}: {e}", exc_info=True)
            return None

        if not response.data:
            logger.error(f"Activity insert returned no data for tool {tool_id}")
            return None

        logger.info(f"Activity tracked: {kind.value}{' (removed)' if removal else ''} for tool {tool_id} by user {user_id}")
        return response.data[0]

    def _get_row(self, table: str, row_id: str) -> Optional[dict]:
        response = self.db.table(table).select("*").eq("id", row_id).limit(1).execute()
        return response.data[0] if response.data else None

    def _tool_exists(self, tool_id: str) -> bool:
        return bool(tool_id) and self._get_row("tools", tool_id) is not None

    # ----- Side effect handlers, one per activity type -----

    def _apply_view(self, user_id: str, tool_id: str, now: datetime) -> None:
        increment_view_count(self.db, tool_id, now)

    def _apply_share(self, user_id: str, tool_id: str, now: datetime) -> None:
        increment_share_count(self.db, tool_id)

    def _apply_like(self, user_id: str, tool_id: str, now: datetime) -> None:
        if has_loved(self.db, tool_id, user_id):
            logger.debug(f"User {user_id} already loves tool {tool_id}")
            return
        add_love(self.db, tool_id, user_id)

    def _apply_favorite(self, user_id: str, tool_id: str, now: datetime) -> None:
        add_favorite(self.db, user_id, tool_id)

    def _apply_nothing(self, user_id: str, tool_id: str, now: datetime) -> None:
        pass

    def _remove_like(self, user_id: str, tool_id: str, now: datetime) -> None:
        remove_love(self.db, tool_id, user_id)

    def _remove_favorite(self, user_id: str, tool_id: str, now: datetime) -> None:
        remove_favorite(self.db, user_id, tool_id)
