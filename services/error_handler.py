"""Exception handlers registered on the FastAPI app.

Domain errors become `{"detail": ...}` responses with their own status code;
anything else is logged with its traceback and returned as a generic 500.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from services.errors import BuilderCentralError

logger = logging.getLogger(__name__)


async def handle_domain_error(request: Request, exc: BuilderCentralError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
