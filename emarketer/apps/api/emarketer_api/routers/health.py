"""Health check endpoints."""

import logging

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from emarketer_api import __version__
from emarketer_api.config.env import get_rate_limit_backend
from emarketer_api.db.redis_client import RedisClient
from emarketer_api.db.session import get_engine

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    services: dict[str, str]


def check_database() -> str:
    """Check database connectivity.

    Returns:
        str: "up" if healthy, error message otherwise
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return f"down: {str(e)[:50]}"


def check_redis() -> str:
    """Check Redis connectivity (only when a Redis backend is configured)."""
    if get_rate_limit_backend() != "redis":
        return "not configured"
    try:
        RedisClient.get_client().ping()
        return "up"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return f"down: {str(e)[:50]}"


def _services() -> dict[str, str]:
    return {"api": "up", "database": check_database(), "redis": check_redis()}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Always returns 200 OK (use /readyz for dependency gating).
    """
    return HealthResponse(status="healthy", version=__version__, services=_services())


@router.get("/readyz", response_model=HealthResponse)
async def readiness_check(response: Response) -> HealthResponse:
    """Returns 503 if any configured dependency is down."""
    services = _services()
    if any(svc_status.startswith("down") for svc_status in services.values()):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", version=__version__, services=services)
    return HealthResponse(status="ready", version=__version__, services=services)
