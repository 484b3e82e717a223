"""Authentication of the sync trigger endpoints.

The scheduler (and any external cron) calls with
``Authorization: Bearer <CRON_SECRET>``. Comparison is constant-time.
"""

import hmac
from typing import Optional

from fastapi import Request

from emarketer_api.config.env import get_cron_secret
from emarketer_api.errors import AuthenticationRequired
from emarketer_api.observability.events import log_cron_unauthorized


def is_valid_cron_authorization(authorization: Optional[str], secret: str) -> bool:
    if not authorization or not secret:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(authorization.encode(), expected.encode())


def require_cron_secret(request: Request) -> str:
    """FastAPI dependency guarding /cron/*.

    Returns:
        The validated Authorization header (forwarded by /cron/run)

    Raises:
        AuthenticationRequired: 401 on missing or wrong secret
    """
    authorization = request.headers.get("authorization")
    if not is_valid_cron_authorization(authorization, get_cron_secret()):
        log_cron_unauthorized(request.url.path)
        raise AuthenticationRequired()
    return authorization
