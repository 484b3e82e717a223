"""Application error taxonomy.

Every error raised by handlers, dependencies and the sync orchestrator
derives from AppError. The app-level exception handler in main.py renders
them as the JSON envelope {"error", "code", "request_id"}.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from emarketer_api.ratelimit.limiter import RateLimitResult


class AppError(Exception):
    """Base class for errors with a stable HTTP mapping."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(AppError):
    """No valid session (missing, invalid or expired token)."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class AccessDenied(AppError):
    """Caller has no membership in the company, or the role is insufficient."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflict"


class UpstreamFailure(AppError):
    """An external platform (ad API, identity provider, AI provider) failed.

    Args:
        message: Short, user-safe description
        platform: Platform name (meta, google-ads, ga4, openai, ...)
        upstream_status: HTTP status returned by the platform, if any
    """

    status_code = 502
    code = "UPSTREAM_FAILURE"
    default_message = "Upstream service failed"

    def __init__(
        self,
        message: Optional[str] = None,
        platform: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.platform = platform
        self.upstream_status = upstream_status


class RateLimited(AppError):
    """Fixed-window limit exhausted; carries the limiter decision for headers."""

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, please try again later"

    def __init__(self, result: "RateLimitResult", message: Optional[str] = None):
        super().__init__(message)
        self.result = result
