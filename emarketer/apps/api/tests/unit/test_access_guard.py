"""Unit tests for company access checks and role ordering."""

import pytest

from emarketer_api.auth.access import (
    check_access,
    has_role,
    list_companies,
    require_role,
    role_rank,
)
from emarketer_api.db.repo_companies import CompanyRepository
from emarketer_api.errors import AccessDenied


def test_role_order():
    assert role_rank("owner") > role_rank("manager") > role_rank("analyst") > role_rank("guest")


def test_check_access_returns_membership(db_session, make_company):
    company = make_company(members={"u-1": "manager"})

    membership = check_access(db_session, "u-1", company.id)

    assert membership.company_id == company.id
    assert membership.role == "manager"


def test_check_access_denies_non_member(db_session, make_company):
    company = make_company(members={"u-1": "owner"})

    with pytest.raises(AccessDenied):
        check_access(db_session, "u-2", company.id)


def test_unknown_company_is_indistinguishable_from_foreign_company(db_session):
    with pytest.raises(AccessDenied) as exc_info:
        check_access(db_session, "u-1", "no-such-company")

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Forbidden"


@pytest.mark.parametrize(
    "role,required,expected",
    [
        ("owner", "manager", True),
        ("manager", "manager", True),
        ("analyst", "manager", False),
        ("manager", "owner", False),
        ("analyst", "analyst", True),
    ],
)
def test_has_role(db_session, make_company, role, required, expected):
    company = make_company(members={"u-1": role})

    assert has_role(db_session, "u-1", company.id, required) is expected


def test_has_role_without_membership_is_false(db_session, make_company):
    company = make_company(members={"u-1": "owner"})

    assert has_role(db_session, "u-2", company.id, "analyst") is False


def test_require_role(db_session, make_company):
    company = make_company(members={"u-1": "analyst"})
    membership = check_access(db_session, "u-1", company.id)

    assert require_role(membership, "analyst") is membership
    with pytest.raises(AccessDenied):
        require_role(membership, "manager")


def test_list_companies_in_membership_order(db_session, make_company):
    first = make_company(name="First", members={"u-1": "owner"})
    make_company(name="Other", members={"u-2": "owner"})
    second = make_company(name="Second", members={"u-1": "analyst"})

    companies = list_companies(db_session, "u-1")

    assert [c.id for c in companies] == [first.id, second.id]


def test_create_with_owner(db_session):
    company, membership = CompanyRepository(db_session).create_with_owner("Acme", "u-9")

    assert membership.role == "owner"
    assert check_access(db_session, "u-9", company.id).id == membership.id
    assert CompanyRepository(db_session).count_owners(company.id) == 1
