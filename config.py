"""Configuration management for the Builder Central backend.

Loads settings from .env file with Pydantic validation. Supports dual-database mode
(SQLite for tests and local development, Supabase for production).
"""
import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Use DATABASE_URL for SQLite (tests), or SUPABASE_URL/KEY for production.
    """
    model_config = SettingsConfigDict(env_file=os.getenv("ENV_FILE", ".env"), case_sensitive=True, extra="ignore")

    # Database (SQLite for tests, Supabase for production)
    DATABASE_URL: Optional[str] = None  # SQLite: sqlite:///./test.db

    # Supabase (optional if using SQLite)
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""  # service_role key for backend

    # CORS allowlist
    FRONTEND_URL: str = "http://localhost:3000"
    PRODUCTION_URL: str = ""

    # Test mode accepts dev-token-<user_id> identities
    TEST_MODE: bool = False

    LOG_LEVEL: str = "INFO"

    # Dashboard statistics
    STATS_WINDOW_DAYS: int = 30
    RECENT_ACTIVITY_LIMIT: int = 10
    TRENDING_CANDIDATES: int = 50
    TRENDING_LIMIT: int = 5


@lru_cache()
def get_settings(env_file: str = ".env") -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing .env on every import.
    Allows env_file override for testing with isolated configurations.
    """
    return Settings(_env_file=env_file)


def load_settings_from_env() -> Settings:
    """Build a fresh, uncached Settings instance.

    Used where environment patches (tests) must be observed immediately.
    """
    return Settings(_env_file=os.getenv("ENV_FILE", ".env"))


# Default settings instance (respects ENV_FILE when set)
settings = get_settings(os.getenv("ENV_FILE", ".env"))
