"""Database access layer providing a unified interface to SQLite and Supabase.

The adapter is built once by the application lifespan (see main.py) and kept on
`app.state.db`; routes receive it through the get_db() dependency.
"""
import logging

from fastapi import Request

from config import Settings
from database_adapter import DatabaseAdapter
from services.errors import AuthenticationRequired

logger = logging.getLogger(__name__)


def create_db(settings: Settings) -> DatabaseAdapter:
    """Construct and initialize the database adapter for this process."""
    adapter = DatabaseAdapter(settings)
    adapter.init()
    logger.info(f"Database adapter initialized (backend={adapter.backend})")
    return adapter


def get_db(request: Request) -> DatabaseAdapter:
    """
    Dependency for FastAPI endpoints to get the database adapter.
    Works with both SQLite (test) and Supabase (production).

    Usage:
        @router.get("/example")
        def example(db = Depends(get_db)):
            result = db.table("tools").select("*").execute()
            return result.data
    """
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database adapter not initialized; is the app lifespan running?")
    return db


def verify_token(token: str, db: DatabaseAdapter):
    """Verify a bearer token with Supabase Auth and return the auth user object."""
    if db.backend != "supabase" or db.supabase is None:
        raise AuthenticationRequired("Token verification requires Supabase auth")

    try:
        response = db.supabase.auth.get_user(token)
    except Exception as e:
        raise AuthenticationRequired(f"Invalid token: {e}") from e

    user = getattr(response, "user", None)
    if user is None:
        raise AuthenticationRequired("Invalid token")
    return user
