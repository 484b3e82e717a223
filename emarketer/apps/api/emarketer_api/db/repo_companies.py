"""Repository for companies and memberships."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from emarketer_api.db.models import Company, Membership


class CompanyRepository:
    """Repository for Company and Membership operations."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, company_id: str) -> Optional[Company]:
        return self.db.get(Company, company_id)

    def create_with_owner(
        self, name: str, owner_user_id: str, domain: Optional[str] = None
    ) -> tuple[Company, Membership]:
        """Create a company and its owner membership in one transaction."""
        company = Company(name=name, domain=domain)
        self.db.add(company)
        self.db.flush()

        membership = Membership(user_id=owner_user_id, company_id=company.id, role="owner")
        self.db.add(membership)
        self.db.commit()
        self.db.refresh(company)
        self.db.refresh(membership)
        return company, membership

    def list_for_user(self, user_id: str) -> list[tuple[Company, Membership]]:
        """Companies the user belongs to, oldest membership first."""
        stmt = (
            select(Company, Membership)
            .join(Membership, Membership.company_id == Company.id)
            .where(Membership.user_id == user_id)
            .order_by(Membership.created_at.asc(), Membership.id.asc())
        )
        return [(company, membership) for company, membership in self.db.execute(stmt).all()]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_membership(self, user_id: str, company_id: str) -> Optional[Membership]:
        stmt = select(Membership).where(
            Membership.user_id == user_id,
            Membership.company_id == company_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_members(self, company_id: str) -> list[Membership]:
        stmt = (
            select(Membership)
            .where(Membership.company_id == company_id)
            .order_by(Membership.created_at.asc(), Membership.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_member(self, company_id: str, user_id: str, role: str) -> Membership:
        membership = Membership(user_id=user_id, company_id=company_id, role=role)
        self.db.add(membership)
        self.db.commit()
        self.db.refresh(membership)
        return membership

    def update_role(self, membership: Membership, role: str) -> Membership:
        membership.role = role
        self.db.commit()
        self.db.refresh(membership)
        return membership

    def remove_member(self, membership: Membership) -> None:
        self.db.delete(membership)
        self.db.commit()

    def count_owners(self, company_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Membership)
            .where(Membership.company_id == company_id, Membership.role == "owner")
        )
        return int(self.db.execute(stmt).scalar_one())
