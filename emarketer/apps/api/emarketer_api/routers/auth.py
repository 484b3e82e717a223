"""Auth endpoints.

Endpoints:
- POST /api/auth/register: Supabase sign-up + personal company (owner)
- POST /api/auth/login: Supabase password login (returns JWT session)

Both are guarded by the "auth" rate-limit policy (5 per 15 minutes per
client address). Passwords are never logged.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from emarketer_api.db.repo_companies import CompanyRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import AuthenticationRequired, Conflict, UpstreamFailure
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import AuthResponse, LoginRequest, RegisterRequest
from emarketer_api.supabase_client import get_supabase_client

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    dependencies=[Depends(rate_limit("auth"))],
)
logger = logging.getLogger(__name__)


def _is_duplicate_signup(error: Exception) -> bool:
    text = str(error).lower()
    return "already registered" in text or "already exists" in text


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
def register(request: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Register a new user.

    Flow:
    1. Supabase creates the user
    2. A personal company named after the user is created
    3. The user becomes its owner

    Raises:
        Conflict: 409 if the email is already registered
        UpstreamFailure: 502 if Supabase fails
    """
    logger.info("auth.register.attempt", extra={"event": "auth.register.attempt"})

    try:
        response = get_supabase_client().auth.sign_up(
            {
                "email": request.email,
                "password": request.password,
                "options": {"data": {"name": request.name}} if request.name else {},
            }
        )
    except Exception as e:
        if _is_duplicate_signup(e):
            raise Conflict("Email already registered") from e
        logger.error(
            "auth.register.error",
            extra={"error_type": type(e).__name__},
        )
        raise UpstreamFailure("Registration failed", platform="supabase") from e

    if not response.user:
        raise UpstreamFailure("Registration failed", platform="supabase")

    user_id = str(response.user.id)
    user_email = response.user.email or request.email

    company_id = None
    try:
        company, _ = CompanyRepository(db).create_with_owner(
            name=request.name or user_email, owner_user_id=user_id
        )
        company_id = company.id
        logger.info(
            "auth.register.company_created",
            extra={"new_user_id": user_id, "new_company_id": company_id, "role": "owner"},
        )
    except SQLAlchemyError as e:
        # The Supabase user already exists; the company can be created later
        # through POST /api/companies
        db.rollback()
        logger.error(
            "auth.register.company_creation_failed",
            extra={"new_user_id": user_id, "error_type": type(e).__name__},
        )

    logger.info("auth.register.success", extra={"new_user_id": user_id})

    return AuthResponse(
        user_id=user_id,
        email=user_email,
        company_id=company_id,
        message="Registration successful",
    )


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest) -> AuthResponse:
    """Password login.

    Raises:
        AuthenticationRequired: 401 on bad credentials
    """
    try:
        response = get_supabase_client().auth.sign_in_with_password(
            {"email": request.email, "password": request.password}
        )
    except Exception as e:
        logger.warning("auth.login.failed", extra={"error_type": type(e).__name__})
        raise AuthenticationRequired("Invalid email or password") from e

    if not response.user or not response.session:
        logger.warning("auth.login.failed", extra={"error_type": "no_session"})
        raise AuthenticationRequired("Invalid email or password")

    logger.info("auth.login.success", extra={"login_user_id": str(response.user.id)})

    return AuthResponse(
        user_id=str(response.user.id),
        email=response.user.email or request.email,
        access_token=response.session.access_token,
        refresh_token=response.session.refresh_token,
    )
