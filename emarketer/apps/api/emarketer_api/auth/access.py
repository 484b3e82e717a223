"""Company access guard.

Every data operation is scoped to a company and requires a Membership of
the calling user in it. A company that does not exist and a company the
caller does not belong to are indistinguishable to the caller (both 403).

Roles are totally ordered: owner > manager > analyst.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Path
from sqlalchemy.orm import Session

from emarketer_api.auth.session_auth import SessionIdentity, get_session_identity
from emarketer_api.context import company_id_var
from emarketer_api.db.models import Company, Membership
from emarketer_api.db.repo_companies import CompanyRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import AccessDenied
from emarketer_api.observability.events import log_access_denied

logger = logging.getLogger(__name__)

ROLE_RANK: dict[str, int] = {
    "owner": 3,
    "manager": 2,
    "analyst": 1,
}


def role_rank(role: str) -> int:
    """Rank of a role; unknown roles rank below analyst."""
    return ROLE_RANK.get(role, 0)


def check_access(db: Session, user_id: str, company_id: str) -> Membership:
    """Confirm the user belongs to the company.

    Returns:
        The caller's Membership

    Raises:
        AccessDenied: If no membership exists (including unknown companies)
    """
    membership = CompanyRepository(db).get_membership(user_id, company_id)
    if membership is None:
        log_access_denied(user_id, company_id, reason="no_membership")
        raise AccessDenied()
    return membership


def list_companies(db: Session, user_id: str) -> list[Company]:
    """Companies the user belongs to, ordered by membership creation."""
    return [company for company, _ in CompanyRepository(db).list_for_user(user_id)]


def has_role(db: Session, user_id: str, company_id: str, required_role: str) -> bool:
    """True if the user's role in the company ranks at or above ``required_role``.

    Missing membership yields False, never an error.
    """
    membership = CompanyRepository(db).get_membership(user_id, company_id)
    if membership is None:
        return False
    return role_rank(membership.role) >= role_rank(required_role)


def require_role(membership: Membership, required_role: str) -> Membership:
    """Raise AccessDenied unless ``membership`` ranks at or above ``required_role``."""
    if role_rank(membership.role) < role_rank(required_role):
        log_access_denied(
            membership.user_id,
            membership.company_id,
            reason=f"insufficient_role:{required_role}",
        )
        raise AccessDenied()
    return membership


@dataclass(frozen=True)
class CompanyAccess:
    """Resolved caller + membership for a company-scoped request."""

    identity: SessionIdentity
    membership: Membership

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    @property
    def company_id(self) -> str:
        return self.membership.company_id

    @property
    def role(self) -> str:
        return self.membership.role


def get_company_membership(
    company_id: str = Path(..., min_length=1),
    identity: SessionIdentity = Depends(get_session_identity),
    db: Session = Depends(get_db),
) -> CompanyAccess:
    """FastAPI dependency: session identity + membership in ``{company_id}``."""
    membership = check_access(db, identity.user_id, company_id)
    company_id_var.set(company_id)
    return CompanyAccess(identity=identity, membership=membership)


def require_company_role(required_role: str):
    """Dependency factory enforcing a minimum role on the path company."""

    def _dependency(access: CompanyAccess = Depends(get_company_membership)) -> CompanyAccess:
        require_role(access.membership, required_role)
        return access

    return _dependency
