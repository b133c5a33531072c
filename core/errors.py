"""
core/errors.py -- Domain error taxonomy for InstaCatalog.

Stores, the token service and the post lifecycle raise these. The API layer
(api/main.py) owns the single exception handler that turns them into the
standard {"error": {...}} envelope, so domain code never imports FastAPI.

Each class carries the HTTP status and machine-readable code it maps to.
The message is safe to show to clients; never put SQL or tracebacks in it.
"""


class AppError(Exception):
    """Base class for all expected, client-facing failures."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidInput(AppError):
    """Missing or malformed request fields."""

    status_code = 400
    code = "invalid_input"


class Conflict(AppError):
    """A unique key (e.g. email) is already taken."""

    status_code = 409
    code = "conflict"


class Unauthenticated(AppError):
    """Missing, invalid or expired token, or bad credentials."""

    status_code = 401
    code = "unauthorized"


class NotFound(AppError):
    """Resource does not exist -- or exists but belongs to someone else.

    Both cases must be indistinguishable to the caller.
    """

    status_code = 404
    code = "not_found"


class InvalidState(AppError):
    """A status transition precondition was not met."""

    status_code = 400
    code = "invalid_state"


class ExternalServiceFailure(AppError):
    """A call to Instagram / the Graph API failed after retries."""

    status_code = 502
    code = "external_service_failure"
