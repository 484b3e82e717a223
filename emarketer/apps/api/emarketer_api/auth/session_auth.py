"""Session authentication.

Supabase JWT-based session auth for all /api/* endpoints.

FLOW:
1. User logs in (POST /api/auth/login or directly against Supabase)
2. Dashboard calls the API with Authorization: Bearer <jwt>, or the browser
   sends the sb-access-token cookie
3. The token is verified by Supabase (signature + expiry)
4. Returns SessionIdentity(user_id, email)

Company membership is NOT resolved here; see auth.access.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from emarketer_api.context import user_id_var
from emarketer_api.errors import AuthenticationRequired
from emarketer_api.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sb-access-token"

session_security = HTTPBearer(auto_error=False, description="Supabase JWT Session Token")


@dataclass(frozen=True)
class SessionIdentity:
    """Authenticated caller."""

    user_id: str
    email: Optional[str] = None


def extract_session_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Bearer header first, then the Supabase session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE) or None


def verify_session_token(token: str) -> SessionIdentity:
    """Verify a Supabase JWT and return the identity it belongs to.

    Raises:
        AuthenticationRequired: If Supabase rejects the token or is unreachable
    """
    try:
        user_response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.warning(
            "Session JWT validation failed",
            extra={"event": "session.jwt.invalid", "error_type": type(e).__name__},
        )
        raise AuthenticationRequired() from e

    if not user_response or not user_response.user:
        logger.warning("Session JWT rejected", extra={"event": "session.jwt.invalid"})
        raise AuthenticationRequired()

    user = user_response.user
    return SessionIdentity(user_id=str(user.id), email=user.email)


async def get_session_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
) -> SessionIdentity:
    """FastAPI dependency resolving the calling identity.

    Raises:
        AuthenticationRequired: 401 if no token or verification fails
    """
    token = extract_session_token(request, credentials)
    if not token:
        raise AuthenticationRequired()

    identity = verify_session_token(token)
    user_id_var.set(identity.user_id)

    logger.debug(
        "Session authentication successful",
        extra={"event": "session.auth.success"},
    )
    return identity
