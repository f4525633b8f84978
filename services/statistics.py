"""
Dashboard statistics for a tool author.

Reads the activity log and the per-tool aggregates; never writes. Activity
counts are bucketed into a current and a previous window of
STATS_WINDOW_DAYS each, both inclusive at their ends.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple, Optional

from config import Settings, get_settings
from database_adapter import DatabaseAdapter
from models.activities import ActivityType
from models.dashboard import ActivityFeedItem, DashboardStats, MetricSummary, TrendingTool
from models.tools import ToolRef, ToolSummary
from services.errors import AuthenticationRequired, NotFoundError
from services.formatting import as_utc, format_relative_time, from_millis, parse_day_key, to_millis, utcnow

logger = logging.getLogger(__name__)


class DateWindow(NamedTuple):
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) <= self.end

    def millis(self) -> tuple[int, int]:
        return to_millis(self.start), to_millis(self.end)


class DateRanges(NamedTuple):
    current: DateWindow
    previous: DateWindow


def get_date_ranges(now: Optional[datetime] = None, days: int = 30) -> DateRanges:
    """Current window `[now-days, now]` and the one before it `[now-2*days, now-days]`."""
    now = as_utc(now or utcnow())
    boundary = now - timedelta(days=days)
    return DateRanges(
        current=DateWindow(boundary, now),
        previous=DateWindow(boundary - timedelta(days=days), boundary),
    )


def calculate_trend(current: int, previous: int) -> int:
    """Percentage change from previous to current, halves rounded up."""
    if previous == 0:
        return 100 if current > 0 else 0
    return math.floor(100 * (current - previous) / previous + 0.5)


def rank_trending(entries: Iterable[TrendingTool], limit: int = 5) -> list[TrendingTool]:
    """Drop flat tools, order by trend (highest first), keep `limit`."""
    moving = [entry for entry in entries if entry.trend != 0]
    moving.sort(key=lambda entry: entry.trend, reverse=True)
    return moving[:limit]


def sum_view_history(history: Iterable[dict], window: DateWindow) -> int:
    """Total bucket counts whose day (UTC midnight) falls inside `window`."""
    total = 0
    for bucket in history:
        try:
            day = parse_day_key(bucket.get("date") or "")
        except ValueError:
            logger.warning(f"Skipping malformed view history date {bucket.get('date')!r} for tool {bucket.get('tool_id')}")
            continue
        if window.contains(day):
            total += bucket.get("count") or 0
    return total


class StatisticsAggregator:
    """Computes the figures shown on an author's dashboard."""

    def __init__(self, db: DatabaseAdapter, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def compute_dashboard(self, user_id: Optional[str], now: Optional[datetime] = None) -> DashboardStats:
        if not user_id:
            raise AuthenticationRequired()

        user = self.db.table("users").select("id").eq("id", user_id).execute()
        if not user.data:
            raise NotFoundError("User not found in database")

        now = as_utc(now or utcnow())
        ranges = get_date_ranges(now, self.settings.STATS_WINDOW_DAYS)

        tools = self.db.table("tools").select("*").eq("author_id", user_id).execute().data or []
        tool_ids = [tool["id"] for tool in tools]
        love_counts = self._love_counts(tool_ids)
        logger.debug(f"Found {len(tools)} tools for user {user_id}")

        stats = DashboardStats(
            views=self._metric(
                ActivityType.VIEW, tool_ids, ranges,
                total=sum(tool.get("views") or 0 for tool in tools),
            ),
            likes=self._metric(
                ActivityType.LIKE, tool_ids, ranges,
                total=sum(love_counts.values()),
            ),
            shares=self._metric(
                ActivityType.SHARE, tool_ids, ranges,
                total=sum(tool.get("shares") or 0 for tool in tools),
            ),
            activities=self.recent_activity(user_id, tool_ids, now),
            trending_tools=self.trending_tools(ranges),
        )
        logger.debug(
            f"Dashboard stats for {user_id}: views={stats.views.total} likes={stats.likes.total} "
            f"shares={stats.shares.total} activities={len(stats.activities)} trending={len(stats.trending_tools)}"
        )
        return stats

    def count_activities(self, activity_type: ActivityType, tool_ids: list[str], window: DateWindow) -> int:
        if not tool_ids:
            return 0
        start, end = window.millis()
        response = (
            self.db.table("activities")
            .select("id")
            .eq("type", activity_type.value)
            .in_("tool_id", tool_ids)
            .gte("timestamp", start)
            .lte("timestamp", end)
            .execute()
        )
        return len(response.data or [])

    def _metric(self, activity_type: ActivityType, tool_ids: list[str], ranges: DateRanges, total: int) -> MetricSummary:
        current = self.count_activities(activity_type, tool_ids, ranges.current)
        previous = self.count_activities(activity_type, tool_ids, ranges.previous)
        return MetricSummary(
            total=total,
            trend=calculate_trend(current, previous),
            current=current,
            previous=previous,
        )

    def _love_counts(self, tool_ids: list[str]) -> dict[str, int]:
        counts = {tool_id: 0 for tool_id in tool_ids}
        if not tool_ids:
            return counts
        loves = self.db.table("tool_loves").select("tool_id").in_("tool_id", tool_ids).execute()
        for row in loves.data or []:
            counts[row["tool_id"]] = counts.get(row["tool_id"], 0) + 1
        return counts

    def resolve_tools(self, tool_ids: Iterable[str]) -> dict[str, ToolRef]:
        """Map each id to a summary when the tool exists, else leave the bare id."""
        ids = list(dict.fromkeys(tool_ids))
        refs: dict[str, ToolRef] = {tool_id: tool_id for tool_id in ids}
        if not ids:
            return refs
        response = self.db.table("tools").select("id,name").in_("id", ids).execute()
        for row in response.data or []:
            refs[row["id"]] = ToolSummary(id=row["id"], name=row["name"])
        return refs

    def recent_activity(self, user_id: str, tool_ids: list[str], now: datetime) -> list[ActivityFeedItem]:
        """The newest activities by the user or on the user's tools."""
        limit = self.settings.RECENT_ACTIVITY_LIMIT
        rows = {}

        own = self.db.table("activities").select("*").eq("user_id", user_id).order("timestamp", desc=True).limit(limit).execute()
        for row in own.data or []:
            rows[row["id"]] = row
        if tool_ids:
            on_tools = (
                self.db.table("activities")
                .select("*")
                .in_("tool_id", tool_ids)
                .order("timestamp", desc=True)
                .limit(limit)
                .execute()
            )
            for row in on_tools.data or []:
                rows[row["id"]] = row

        newest = sorted(rows.values(), key=lambda row: row["timestamp"], reverse=True)[:limit]
        refs = self.resolve_tools(row["tool_id"] for row in newest)

        feed = []
        for row in newest:
            ref = refs.get(row["tool_id"])
            summary = ref if isinstance(ref, ToolSummary) else None
            feed.append(ActivityFeedItem(
                id=row["id"],
                type=row["type"],
                message=row["message"],
                time=format_relative_time(from_millis(row["timestamp"]), now),
                timestamp=row["timestamp"],
                tool_id=summary.id if summary else None,
                tool_name=summary.name if summary else None,
            ))
        return feed

    def trending_tools(self, ranges: DateRanges) -> list[TrendingTool]:
        """Rank the most viewed tools by their view-history trend."""
        candidates = (
            self.db.table("tools")
            .select("*")
            .order("views", desc=True)
            .limit(self.settings.TRENDING_CANDIDATES)
            .execute()
            .data
            or []
        )
        if not candidates:
            return []

        ids = [tool["id"] for tool in candidates]
        history: dict[str, list[dict]] = {tool_id: [] for tool_id in ids}
        for bucket in self.db.table("tool_view_history").select("*").in_("tool_id", ids).execute().data or []:
            history[bucket["tool_id"]].append(bucket)

        categories: dict[str, str] = {}
        tags = self.db.table("tool_tags").select("*").in_("tool_id", ids).order("position").execute()
        for row in tags.data or []:
            categories.setdefault(row["tool_id"], row["tag"])

        love_counts = self._love_counts(ids)

        entries = []
        for tool in candidates:
            buckets = history[tool["id"]]
            if not buckets:
                logger.debug(f"No view history for tool {tool['id']}")
            trend = calculate_trend(
                sum_view_history(buckets, ranges.current),
                sum_view_history(buckets, ranges.previous),
            )
            entries.append(TrendingTool(
                id=tool["id"],
                name=tool["name"],
                views=tool.get("views") or 0,
                likes=love_counts.get(tool["id"], 0),
                category=categories.get(tool["id"], "Other"),
                trend=trend,
            ))
        return rank_trending(entries, self.settings.TRENDING_LIMIT)
