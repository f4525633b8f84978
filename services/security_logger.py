"""Security event logging (authentication failures, denied access)."""
import logging
from typing import Optional

logger = logging.getLogger("security")


def log_auth_failure(user_id: Optional[str], reason: str):
    logger.warning(f"Authentication failure: user_id={user_id or 'unknown'} reason={reason}")


def log_unauthorized_access(user_id: Optional[str], resource: str, reason: str):
    logger.warning(f"Unauthorized access: user_id={user_id or 'unknown'} resource={resource} reason={reason}")
