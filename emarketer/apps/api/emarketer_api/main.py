"""eMarketer API - FastAPI Application Entry Point."""

import logging
import os
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from emarketer_api import __version__
from emarketer_api.config.env import get_cors_allowed_origins
from emarketer_api.context import company_id_var, request_id_var, sync_log_id_var, user_id_var
from emarketer_api.errors import AppError, RateLimited
from emarketer_api.ratelimit.dependency import rate_limit_headers
from emarketer_api.ratelimit.limiter import FixedWindowRateLimiter, build_rate_limiters
from emarketer_api.routers import (
    alerts,
    auth,
    campaigns,
    chat,
    companies,
    cron,
    health,
    integrations,
    sync_logs,
)
from emarketer_api.schemas import ErrorEnvelope, RateLimitedEnvelope
from emarketer_api.utils import configure_json_logging

logger = logging.getLogger(__name__)


def _get_title_for_status(status_code: int) -> str:
    """Short, user-safe message for an HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        429: "Too Many Requests",
        500: "Internal server error",
        502: "Bad Gateway",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


def _error_response(
    status_code: int, message: str, code: Optional[str], headers: Optional[dict[str, str]] = None
) -> JSONResponse:
    body = ErrorEnvelope(error=message, code=code, request_id=request_id_var.get() or None)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def _clear_request_context() -> None:
    user_id_var.set("")
    company_id_var.set("")
    sync_log_id_var.set("")


# ============================================================================
# Exception handlers
# ============================================================================


async def rate_limited_handler(request: Request, exc: RateLimited) -> JSONResponse:
    """429 with retryAfter (seconds) and X-RateLimit-* / Retry-After headers."""
    result = exc.result
    body = RateLimitedEnvelope(
        error=exc.message,
        code=exc.code,
        request_id=request_id_var.get() or None,
        retryAfter=result.retry_after_seconds,
    )
    headers = rate_limit_headers(result)
    headers["Retry-After"] = str(result.retry_after_seconds)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render taxonomy errors as the JSON error envelope."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.warning(
            f"Request failed: {exc.code}",
            extra={"event": "http.upstream_failure", "error_code": exc.code},
        )
    return _error_response(exc.status_code, exc.message, exc.code, headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (404 route, 405 method) use the same envelope."""
    message = exc.detail if isinstance(exc.detail, str) else _get_title_for_status(exc.status_code)
    return _error_response(exc.status_code, message, f"HTTP_{exc.status_code}", exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation errors map to 400 VALIDATION_ERROR."""
    first_error = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []) if loc != "body")
    msg = first_error.get("msg", "Validation error")
    message = f"Invalid field '{field}': {msg}" if field else msg
    return _error_response(status.HTTP_400_BAD_REQUEST, message, "VALIDATION_ERROR")


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Uncaught exceptions: log the stack trace, return an opaque 500."""
    logger.error(f"Unhandled exception: {type(exc).__name__}", exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR"
    )


# ============================================================================
# Application factory
# ============================================================================


def create_app(rate_limiters: Optional[dict[str, FixedWindowRateLimiter]] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        rate_limiters: Per-policy limiters (tests inject a fake clock/store);
            built from RATE_LIMIT_BACKEND when omitted

    Returns:
        Configured FastAPI application instance
    """
    # Set EMK_JSON_LOGS=false to disable (defaults to true)
    if os.getenv("EMK_JSON_LOGS", "true").lower() != "false":
        configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))

    new_app = FastAPI(
        title="eMarketer API",
        description="Multi-tenant marketing analytics: company access control, ad-platform sync and rate limiting.",
        version=__version__,
        docs_url="/api-docs",
        redoc_url="/redoc",
    )

    # Credentials mode cannot use wildcard origins
    new_app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    new_app.add_exception_handler(RateLimited, rate_limited_handler)
    new_app.add_exception_handler(AppError, app_error_handler)
    new_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    new_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    new_app.add_exception_handler(Exception, general_exception_handler)

    new_app.include_router(health.router, tags=["health"])
    new_app.include_router(cron.router)
    new_app.include_router(auth.router)
    new_app.include_router(companies.router)
    new_app.include_router(integrations.router)
    new_app.include_router(sync_logs.router)
    new_app.include_router(campaigns.router)
    new_app.include_router(chat.router)
    new_app.include_router(alerts.router)

    @new_app.middleware("http")
    async def completion_logging_mw(request: Request, call_next):
        """Log every HTTP request completion.

        - Every request emits "http.request.completed"
        - Fields: method, path, status_code, duration_ms
        - Logs even on exceptions (status_code=500)
        - Per-request contextvars are cleared before and after
        """
        _clear_request_context()

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "http.request.completed",
                extra={
                    "event": "http.request.completed",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            _clear_request_context()

    # Request ID middleware (outermost, registered last)
    @new_app.middleware("http")
    async def request_id_mw(request: Request, call_next):
        """Generate and propagate request_id."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    new_app.state.rate_limiters = rate_limiters if rate_limiters is not None else build_rate_limiters()

    return new_app


app = create_app()
