"""Main application entry point for the Builder Central API.

Sets up the FastAPI app with security middleware and the tool, interaction, user,
activity and dashboard routes. The database adapter is built in the lifespan and
injected into routes through services.database.get_db.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config import Settings, settings, load_settings_from_env
from routers import activities, dashboard, tool_interactions, tools, users
from services.database import create_db
from services.error_handler import handle_domain_error, handle_exception
from services.errors import BuilderCentralError

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def is_production(local_settings: Settings) -> bool:
    """Detect a production environment from its configuration."""
    return any([
        # Production Supabase URL (not localhost/dummy)
        local_settings.SUPABASE_URL and
        "supabase.co" in local_settings.SUPABASE_URL and
        "dummy" not in local_settings.SUPABASE_URL,

        # Production domain in CORS
        local_settings.PRODUCTION_URL and
        "localhost" not in local_settings.PRODUCTION_URL and
        local_settings.PRODUCTION_URL.strip(),

        # Explicit production environment variable
        os.getenv("ENVIRONMENT") == "production",
        os.getenv("ENV") == "production",
    ])


def validate_security_configuration(local_settings: Settings) -> None:
    """Refuse to start with dev authentication enabled in production.

    Raises RuntimeError for issues that must be fixed before running.
    """
    production = is_production(local_settings)

    if local_settings.TEST_MODE and production:
        raise RuntimeError(
            "CRITICAL SECURITY ERROR: TEST_MODE=true in production environment!\n"
            "\n"
            "Dev tokens (dev-token-*) would let anyone impersonate users.\n"
            "Set TEST_MODE=false in your .env file and restart the application.\n"
            "\n"
            "Production detected due to:\n"
            f"  - SUPABASE_URL: {local_settings.SUPABASE_URL}\n"
            f"  - PRODUCTION_URL: {local_settings.PRODUCTION_URL}\n"
        )

    if local_settings.TEST_MODE:
        logger.warning("TEST_MODE enabled: dev tokens (dev-token-*) are accepted. NEVER enable TEST_MODE in production!")

    logger.info(f"Security configuration validated (production={bool(production)}, test_mode={local_settings.TEST_MODE})")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Fresh settings so tests that patch the environment observe the current values
    local_settings = load_settings_from_env()
    logging.basicConfig(
        level=getattr(logging, local_settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    validate_security_configuration(local_settings)

    app.state.db = create_db(local_settings)
    try:
        yield
    finally:
        app.state.db.close()
        logger.info("Database adapter closed")


app = FastAPI(
    title="Builder Central API",
    version=API_VERSION,
    description="API for Builder Central - share and discover developer tools",
    lifespan=lifespan,
)

# Setup rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def get_cors_origins():
    """Build strict CORS allowlist from environment.

    Security: Never use wildcard origins with credentials.
    Production must explicitly set FRONTEND_URL and PRODUCTION_URL.
    """
    origins = set()

    if settings.FRONTEND_URL:
        origins.add(settings.FRONTEND_URL)
    if settings.PRODUCTION_URL:
        origins.add(settings.PRODUCTION_URL)

    # Support additional origins via env var (comma-separated)
    extra = os.getenv("CORS_EXTRA_ORIGINS", "")
    if extra:
        origins.update(o.strip() for o in extra.split(",") if o.strip())

    return list(origins)


def get_allowed_hosts():
    allowed_hosts = ["localhost", "127.0.0.1", "0.0.0.0"]
    # Allow testserver for TestClient in tests
    if settings.TEST_MODE:
        allowed_hosts.append("testserver")

    for url in (settings.PRODUCTION_URL, settings.FRONTEND_URL):
        host = url.replace("https://", "").replace("http://", "").split("/")[0].split(":")[0] if url else ""
        if host and host not in allowed_hosts:
            allowed_hosts.append(host)
    return allowed_hosts


# ============================================================================
# Security Middleware
# ============================================================================

@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        "frame-ancestors 'none'"
    )

    # HSTS (only in production with HTTPS)
    if not settings.TEST_MODE:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),  # Explicit allowlist only
    allow_credentials=True,  # Required for Authorization headers
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Trusted hosts (prevent host header injection)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=get_allowed_hosts())

app.add_exception_handler(BuilderCentralError, handle_domain_error)
app.add_exception_handler(Exception, handle_exception)

# ============================================================================
# Root Endpoints
# ============================================================================

@app.get("/")
@limiter.limit("60/minute")  # Prevent abuse
async def root(request: Request):
    """API root endpoint."""
    return {
        "message": "Builder Central API",
        "version": API_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint (no rate limit for monitoring)."""
    current_settings = load_settings_from_env()
    return {
        "status": "healthy",
        "mode": "production" if is_production(current_settings) else "development",
        "test_mode": current_settings.TEST_MODE,
        "database": "sqlite" if current_settings.DATABASE_URL else "supabase",
    }


# Include routers
app.include_router(tools.router)
app.include_router(tool_interactions.router)
app.include_router(users.router)
app.include_router(activities.router)
app.include_router(dashboard.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
