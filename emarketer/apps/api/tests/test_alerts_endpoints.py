"""Company alerts: listing, unread filter, mark-read, tenant isolation."""

from datetime import datetime, timedelta, timezone

import pytest

from emarketer_api.db.models import Alert
from emarketer_api.db.repo_alerts import AlertRepository


@pytest.fixture
def make_alert(db_session):
    base = datetime(2026, 10, 1, tzinfo=timezone.utc)

    def _make(company_id, minutes=0, is_read=False, message="Meta sync failed") -> Alert:
        alert = Alert(
            company_id=company_id,
            type="sync_failed",
            severity="high",
            message=message,
            details={"platform": "meta"},
            is_read=is_read,
            created_at=base + timedelta(minutes=minutes),
        )
        db_session.add(alert)
        db_session.commit()
        return alert

    return _make


def test_list_alerts_newest_first(test_client, login_as, make_company, make_alert):
    company = make_company(members={"u-1": "analyst"})
    older = make_alert(company.id, minutes=0)
    newer = make_alert(company.id, minutes=5)
    login_as("u-1")

    response = test_client.get(f"/api/companies/{company.id}/alerts")

    assert response.status_code == 200
    body = response.json()
    assert [a["id"] for a in body] == [newer.id, older.id]
    assert body[0]["isRead"] is False
    assert body[0]["severity"] == "high"
    assert body[0]["details"] == {"platform": "meta"}


def test_list_alerts_unread_only_and_limit(test_client, login_as, make_company, make_alert):
    company = make_company(members={"u-1": "analyst"})
    make_alert(company.id, minutes=0, is_read=True)
    unread_a = make_alert(company.id, minutes=1)
    unread_b = make_alert(company.id, minutes=2)
    login_as("u-1")

    unread = test_client.get(f"/api/companies/{company.id}/alerts", params={"unreadOnly": "true"})
    limited = test_client.get(f"/api/companies/{company.id}/alerts", params={"limit": 1})

    assert [a["id"] for a in unread.json()] == [unread_b.id, unread_a.id]
    assert len(limited.json()) == 1


def test_mark_alert_read(test_client, login_as, make_company, make_alert, db_session):
    company = make_company(members={"u-1": "analyst"})
    alert = make_alert(company.id)
    login_as("u-1")

    response = test_client.patch(
        f"/api/companies/{company.id}/alerts/{alert.id}", json={"isRead": True}
    )

    assert response.status_code == 200
    assert response.json()["isRead"] is True
    db_session.refresh(alert)
    assert alert.is_read is True


def test_alerts_of_other_company_are_hidden(test_client, login_as, make_company, make_alert):
    mine = make_company(name="Mine", members={"u-1": "owner"})
    theirs = make_company(name="Theirs", members={"u-2": "owner"})
    foreign = make_alert(theirs.id)
    login_as("u-1")

    listed = test_client.get(f"/api/companies/{theirs.id}/alerts")
    patched = test_client.patch(
        f"/api/companies/{mine.id}/alerts/{foreign.id}", json={"isRead": True}
    )

    assert listed.status_code == 403
    assert patched.status_code == 404


def test_patch_requires_is_read(test_client, login_as, make_company, make_alert):
    company = make_company(members={"u-1": "analyst"})
    alert = make_alert(company.id)
    login_as("u-1")

    response = test_client.patch(f"/api/companies/{company.id}/alerts/{alert.id}", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_alert_validates_severity_and_owner(db_session):
    repo = AlertRepository(db_session)

    with pytest.raises(ValueError):
        repo.create_alert("x", type="sync_failed", severity="urgent", company_id="c-1")
    with pytest.raises(ValueError):
        repo.create_alert("x", type="sync_failed")

    alert = repo.create_alert("Token expired", type="token_expired", user_id="u-1")
    assert alert.severity == "medium"
    assert alert.is_read is False
