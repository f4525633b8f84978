"""Domain exceptions shared by services and routers.

Each maps to one HTTP status in services/error_handler.py.
"""


class BuilderCentralError(Exception):
    """Base class for domain errors."""
    status_code = 500

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(detail)
        self.detail = detail


class AuthenticationRequired(BuilderCentralError):
    """No resolvable caller identity."""
    status_code = 401

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)


class NotFoundError(BuilderCentralError):
    """A referenced user or tool does not exist."""
    status_code = 404

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class ActivityValidationError(BuilderCentralError):
    """Malformed activity type or missing required field."""
    status_code = 400

    def __init__(self, detail: str = "Invalid activity"):
        super().__init__(detail)
