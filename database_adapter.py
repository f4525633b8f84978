"""
Database adapter that works with both Supabase and SQLite

This allows tests to use SQLite (fast, local) while production uses Supabase.
The adapter provides a unified interface that works with both backends.
"""
from typing import Optional, Dict, List, Any, Union
from sqlalchemy import create_engine, Column, String, Integer, BigInteger, DateTime, Text, Float, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime, UTC
import uuid

Base = declarative_base()


def utcnow_naive():
    """
    Return current UTC time as a naive datetime (tzinfo=None).
    Avoids deprecated datetime.utcnow() while keeping existing schema semantics.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


# SQLAlchemy models for SQLite
class Tool(Base):
    __tablename__ = "tools"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    short_description = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    deployed_url = Column(String, nullable=False)
    repository_url = Column(String)
    technology = Column(String)
    image = Column(String, nullable=False)
    author_id = Column(String, nullable=False, index=True)
    views = Column(Integer, default=0, nullable=False)
    shares = Column(Integer, default=0, nullable=False)
    average_rating = Column(Float, default=0)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    email = Column(String, unique=True)
    avatar = Column(String, default="")
    bio = Column(String(500), default="")
    role = Column(String, default="user")
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    tool_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)  # 'view' | 'like' | 'favorite' | 'share' | 'comment' | 'update'
    message = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)  # milliseconds since epoch
    created_at = Column(DateTime, default=utcnow_naive)


class ToolTag(Base):
    __tablename__ = "tool_tags"

    id = Column(String, primary_key=True, default=_uuid)
    tool_id = Column(String, nullable=False, index=True)
    tag = Column(String, nullable=False)
    position = Column(Integer, default=0)  # position 0 is the tool's category


class ToolLove(Base):
    __tablename__ = "tool_loves"
    __table_args__ = (UniqueConstraint("tool_id", "user_id"),)

    id = Column(String, primary_key=True, default=_uuid)
    tool_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow_naive)


class ToolViewHistory(Base):
    __tablename__ = "tool_view_history"
    __table_args__ = (UniqueConstraint("tool_id", "date"),)

    id = Column(String, primary_key=True, default=_uuid)
    tool_id = Column(String, nullable=False, index=True)
    date = Column(String, nullable=False)  # YYYY-MM-DD (UTC)
    count = Column(Integer, default=0, nullable=False)


class ToolRating(Base):
    __tablename__ = "tool_ratings"
    __table_args__ = (UniqueConstraint("tool_id", "user_id"),)

    id = Column(String, primary_key=True, default=_uuid)
    tool_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class ToolComment(Base):
    __tablename__ = "tool_comments"

    id = Column(String, primary_key=True, default=_uuid)
    tool_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class UserFavorite(Base):
    __tablename__ = "user_favorites"
    __table_args__ = (UniqueConstraint("user_id", "tool_id"),)

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    tool_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow_naive)


def _result(data: List[Dict[str, Any]], count: Optional[int] = None):
    """Build a Supabase-shaped response object (`.data`, `.count`)."""
    return type('Result', (), {'data': data, 'count': len(data) if count is None else count})()


# Counters DatabaseAdapter.increment() may touch; mirrors sql/increment_counter.sql
COUNTER_COLUMNS = {
    ("tools", "views"),
    ("tools", "shares"),
    ("tool_view_history", "count"),
}


class DatabaseAdapter:
    """
    Database adapter that works with both Supabase and SQLite

    Usage:
        # Automatically uses SQLite if DATABASE_URL is set (tests)
        # Otherwise uses Supabase (production)

        db = DatabaseAdapter(settings)
        db.init()

        # Same API for both backends
        result = db.table("tools").select("*").eq("id", "123").execute()
    """

    def __init__(self, settings=None):
        from config import get_settings
        self.settings = settings or get_settings()
        self.engine = None
        self.Session = None
        self.supabase = None
        self._initialized = False

        # Determine which backend to use
        if self.settings.DATABASE_URL:
            self.backend = "sqlite"
            # Remove aiosqlite:// prefix for synchronous engine
            db_url = self.settings.DATABASE_URL.replace("sqlite+aiosqlite://", "sqlite://")
            self.engine = create_engine(db_url, echo=False)
            self.Session = sessionmaker(bind=self.engine)
        elif self.settings.SUPABASE_URL:
            self.backend = "supabase"
            from supabase import create_client
            self.supabase = create_client(
                self.settings.SUPABASE_URL,
                self.settings.SUPABASE_KEY
            )
        else:
            raise ValueError("Must provide either DATABASE_URL or SUPABASE_URL")

    def init(self):
        """Initialize database (create tables for SQLite)"""
        if self.backend == "sqlite" and not self._initialized:
            Base.metadata.create_all(self.engine)
            self._initialized = True

    def cleanup(self):
        """Clean up database (for testing)"""
        if self.backend == "sqlite":
            Base.metadata.drop_all(self.engine)
            Base.metadata.create_all(self.engine)

    def close(self):
        """Release engine connections on shutdown."""
        if self.engine is not None:
            self.engine.dispose()

    def table(self, table_name: str):
        """Get table interface (compatible with Supabase API)"""
        if self.backend == "sqlite":
            return SQLiteTable(table_name, self.Session)
        else:
            return self.supabase.table(table_name)

    def increment(self, table_name: str, column: str, match: Dict[str, Any], amount: int = 1) -> int:
        """
        Atomically add `amount` to `column` on every row matching `match`.

        Returns the number of rows updated, so callers can tell a missing row
        apart from a successful increment. Supabase runs this through the
        `increment_counter` SQL function (see sql/increment_counter.sql).
        Only the columns in COUNTER_COLUMNS may be incremented.
        """
        if (table_name, column) not in COUNTER_COLUMNS:
            raise ValueError(f"{table_name}.{column} is not an allowed counter")

        if self.backend == "sqlite":
            query = SQLiteTable(table_name, self.Session)
            for key, value in match.items():
                query = query.eq(key, value)
            return query.increment(column, amount).execute().count

        response = self.supabase.rpc(
            "increment_counter",
            {
                "table_name": table_name,
                "column_name": column,
                "match": match,
                "amount": amount,
            },
        ).execute()
        return int(response.data or 0)


class SQLiteTable:
    """
    SQLite table interface that mimics Supabase table API

    Provides a similar interface to Supabase for compatibility.
    """

    # Map table names to SQLAlchemy models
    MODELS = {
        "tools": Tool,
        "users": User,
        "activities": Activity,
        "tool_tags": ToolTag,
        "tool_loves": ToolLove,
        "tool_view_history": ToolViewHistory,
        "tool_ratings": ToolRating,
        "tool_comments": ToolComment,
        "user_favorites": UserFavorite,
    }

    def __init__(self, table_name: str, Session):
        self.table_name = table_name
        self.Session = Session
        self.model = self.MODELS.get(table_name)
        self._select_cols = "*"
        self._filters = []
        self._insert_data = None
        self._update_data = None
        self._upsert_data = None
        self._on_conflict = None
        self._ignore_duplicates = False
        self._increment = None
        self._delete = False
        self._limit_val = None
        self._offset_val = None
        self._order_col = None
        self._order_desc = False

        if not self.model:
            raise ValueError(f"Unknown table: {table_name}")

    def select(self, columns: str = "*"):
        """Select columns"""
        self._select_cols = columns
        return self

    def insert(self, data: Union[Dict, List[Dict]]):
        """Insert data"""
        self._insert_data = data if isinstance(data, list) else [data]
        return self

    def update(self, data: Dict):
        """Update data"""
        self._update_data = data
        return self

    def upsert(self, data: Dict, on_conflict: Optional[str] = None, ignore_duplicates: bool = False):
        """Insert, or update the row matching the `on_conflict` columns (Supabase-compatible).

        With ignore_duplicates=True an existing row is left untouched and no data is returned.
        """
        self._upsert_data = data
        self._on_conflict = on_conflict
        self._ignore_duplicates = ignore_duplicates
        return self

    def increment(self, column: str, amount: int = 1):
        """Add `amount` to a numeric column in a single UPDATE statement"""
        self._increment = (column, amount)
        return self

    def eq(self, column: str, value: Any):
        """Filter by equality"""
        self._filters.append((column, "==", value))
        return self

    def neq(self, column: str, value: Any):
        """Filter by inequality"""
        self._filters.append((column, "!=", value))
        return self

    def gt(self, column: str, value: Any):
        """Filter by greater than"""
        self._filters.append((column, ">", value))
        return self

    def gte(self, column: str, value: Any):
        """Filter by greater than or equal"""
        self._filters.append((column, ">=", value))
        return self

    def lt(self, column: str, value: Any):
        """Filter by less than"""
        self._filters.append((column, "<", value))
        return self

    def lte(self, column: str, value: Any):
        """Filter by less than or equal"""
        self._filters.append((column, "<=", value))
        return self

    def limit(self, count: int):
        """Limit results"""
        self._limit_val = count
        return self

    def range(self, start: int, end: int):
        """Range-based pagination (Supabase compatible)"""
        self._offset_val = start
        self._limit_val = end - start + 1
        return self

    def ilike(self, column: str, pattern: Any):
        """Case-insensitive pattern match (SQLite fallback)"""
        self._filters.append((column, "ilike", pattern))
        return self

    def in_(self, column: str, values: List[Any]):
        """Filter by inclusion set"""
        self._filters.append((column, "in", list(values)))
        return self

    def order(self, column: str, desc: bool = False):
        """Order results"""
        self._order_col = column
        self._order_desc = desc
        return self

    def delete(self):
        """Delete matching records"""
        self._delete = True
        return self

    def execute(self):
        """Execute the query"""
        session = self.Session()

        try:
            # Handle INSERT
            if self._insert_data:
                objects = []
                for item in self._insert_data:
                    obj = self.model(**self._prepare_data(item))
                    session.add(obj)
                    objects.append(obj)
                session.commit()

                # Refresh to get generated values
                for obj in objects:
                    session.refresh(obj)

                return _result([self._model_to_dict(obj) for obj in objects])

            # Handle atomic INCREMENT
            elif self._increment:
                column, amount = self._increment
                col = getattr(self.model, column)
                query = self._apply_filters(session.query(self.model))
                count = query.update({col: col + amount}, synchronize_session=False)
                session.commit()
                return _result([], count)

            # Handle UPDATE
            elif self._update_data:
                query = self._apply_filters(session.query(self.model))

                # Get objects before update so we can return them
                objects = query.all()

                prepared_update = self._prepare_data(self._update_data)
                for obj in objects:
                    for key, value in prepared_update.items():
                        setattr(obj, key, value)

                session.commit()

                for obj in objects:
                    session.refresh(obj)

                return _result([self._model_to_dict(obj) for obj in objects])

            # Handle UPSERT (by on_conflict columns, primary key otherwise)
            elif self._upsert_data:
                prepared_upsert = self._prepare_data(self._upsert_data)
                keys = [c.strip() for c in self._on_conflict.split(",")] if self._on_conflict else ["id"]

                obj = None
                if all(prepared_upsert.get(key) is not None for key in keys):
                    query = session.query(self.model)
                    for key in keys:
                        query = query.filter(getattr(self.model, key) == prepared_upsert[key])
                    obj = query.first()

                if obj is None:
                    obj = self.model(**prepared_upsert)
                    session.add(obj)
                elif self._ignore_duplicates:
                    return _result([])
                else:
                    for key, value in prepared_upsert.items():
                        setattr(obj, key, value)
                try:
                    session.commit()
                except IntegrityError:
                    # Row inserted by another writer after the lookup
                    session.rollback()
                    if self._ignore_duplicates:
                        return _result([])
                    raise
                session.refresh(obj)
                return _result([self._model_to_dict(obj)])

            # Handle DELETE
            elif self._delete:
                query = self._apply_filters(session.query(self.model))
                count = query.delete(synchronize_session=False)
                session.commit()
                return _result([], count)

            # Handle SELECT
            else:
                query = self._apply_filters(session.query(self.model))

                if self._order_col:
                    col = getattr(self.model, self._order_col)
                    query = query.order_by(col.desc() if self._order_desc else col)

                if self._offset_val is not None:
                    query = query.offset(self._offset_val)

                if self._limit_val:
                    query = query.limit(self._limit_val)

                results = query.all()
                return _result([self._model_to_dict(obj) for obj in results])

        finally:
            session.close()

    def _apply_filters(self, query):
        """Apply filters to query"""
        for column, op, value in self._filters:
            col = getattr(self.model, column)
            if op == "==":
                query = query.filter(col == value)
            elif op == "!=":
                query = query.filter(col != value)
            elif op == ">":
                query = query.filter(col > value)
            elif op == ">=":
                query = query.filter(col >= value)
            elif op == "<":
                query = query.filter(col < value)
            elif op == "<=":
                query = query.filter(col <= value)
            elif op == "ilike":
                query = query.filter(col.ilike(value, escape="\\"))
            elif op == "in":
                query = query.filter(col.in_(value))
        return query

    def _model_to_dict(self, obj):
        """Convert SQLAlchemy model to dict"""
        result = {}
        for column in obj.__table__.columns:
            value = getattr(obj, column.name)
            # Convert datetime to ISO string
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.name] = value
        return result

    def _prepare_data(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only model columns and parse ISO strings bound for DateTime columns."""
        if not isinstance(item, dict):
            return item

        prepared: Dict[str, Any] = {}
        columns = {col.name: col for col in self.model.__table__.columns}

        for key, value in item.items():
            column = columns.get(key)
            if column is None:
                continue
            if isinstance(value, str) and isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
            prepared[key] = value

        return prepared
