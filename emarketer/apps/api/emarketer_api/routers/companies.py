"""Company and membership endpoints.

Endpoints:
- GET  /api/companies: companies the caller belongs to
- POST /api/companies: create a company; caller becomes owner
- GET  /api/companies/{company_id}/members: any member
- POST /api/companies/{company_id}/members: manager or above
- PATCH  /api/companies/{company_id}/members/{user_id}: owner
- DELETE /api/companies/{company_id}/members/{user_id}: owner
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emarketer_api.auth.access import (
    CompanyAccess,
    get_company_membership,
    require_company_role,
    role_rank,
)
from emarketer_api.auth.session_auth import SessionIdentity, get_session_identity
from emarketer_api.db.repo_companies import CompanyRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import AccessDenied, Conflict, NotFound
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import (
    CompanyCreateRequest,
    CompanyResponse,
    MemberInviteRequest,
    MemberResponse,
    MemberRoleUpdateRequest,
)

router = APIRouter(
    prefix="/api/companies",
    tags=["companies"],
    dependencies=[Depends(rate_limit("api"))],
)
logger = logging.getLogger(__name__)


@router.get("", response_model=list[CompanyResponse])
def list_my_companies(
    identity: SessionIdentity = Depends(get_session_identity),
    db: Session = Depends(get_db),
) -> list[CompanyResponse]:
    rows = CompanyRepository(db).list_for_user(identity.user_id)
    return [
        CompanyResponse(
            id=company.id,
            name=company.name,
            domain=company.domain,
            role=membership.role,
            created_at=company.created_at,
        )
        for company, membership in rows
    ]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CompanyResponse)
def create_company(
    request: CompanyCreateRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    db: Session = Depends(get_db),
) -> CompanyResponse:
    company, membership = CompanyRepository(db).create_with_owner(
        name=request.name, owner_user_id=identity.user_id, domain=request.domain
    )
    logger.info(
        "Company created",
        extra={"event": "company.created", "new_company_id": company.id},
    )
    return CompanyResponse(
        id=company.id,
        name=company.name,
        domain=company.domain,
        role=membership.role,
        created_at=company.created_at,
    )


@router.get("/{company_id}/members", response_model=list[MemberResponse])
def list_members(
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> list[MemberResponse]:
    members = CompanyRepository(db).list_members(access.company_id)
    return [MemberResponse.model_validate(m) for m in members]


@router.post(
    "/{company_id}/members", status_code=status.HTTP_201_CREATED, response_model=MemberResponse
)
def add_member(
    request: MemberInviteRequest,
    access: CompanyAccess = Depends(require_company_role("manager")),
    db: Session = Depends(get_db),
) -> MemberResponse:
    """Add a user to the company.

    A manager cannot grant a role above their own.
    """
    if role_rank(request.role) > role_rank(access.role):
        raise AccessDenied()

    repo = CompanyRepository(db)
    if repo.get_membership(request.user_id, access.company_id) is not None:
        raise Conflict("User is already a member")

    try:
        membership = repo.add_member(access.company_id, request.user_id, request.role)
    except IntegrityError as e:
        db.rollback()
        raise Conflict("User is already a member") from e

    logger.info(
        "Member added",
        extra={"event": "member.added", "member_user_id": request.user_id, "role": request.role},
    )
    return MemberResponse.model_validate(membership)


@router.patch("/{company_id}/members/{user_id}", response_model=MemberResponse)
def update_member_role(
    user_id: str,
    request: MemberRoleUpdateRequest,
    access: CompanyAccess = Depends(require_company_role("owner")),
    db: Session = Depends(get_db),
) -> MemberResponse:
    repo = CompanyRepository(db)
    membership = repo.get_membership(user_id, access.company_id)
    if membership is None:
        raise NotFound("Member not found")

    if membership.role == "owner" and request.role != "owner" and repo.count_owners(access.company_id) <= 1:
        raise Conflict("A company must keep at least one owner")

    membership = repo.update_role(membership, request.role)
    logger.info(
        "Member role updated",
        extra={"event": "member.role_updated", "member_user_id": user_id, "role": request.role},
    )
    return MemberResponse.model_validate(membership)


@router.delete("/{company_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    user_id: str,
    access: CompanyAccess = Depends(require_company_role("owner")),
    db: Session = Depends(get_db),
) -> Response:
    repo = CompanyRepository(db)
    membership = repo.get_membership(user_id, access.company_id)
    if membership is None:
        raise NotFound("Member not found")

    if membership.role == "owner" and repo.count_owners(access.company_id) <= 1:
        raise Conflict("A company must keep at least one owner")

    repo.remove_member(membership)
    logger.info("Member removed", extra={"event": "member.removed", "member_user_id": user_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
