"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

os.environ.setdefault("EMK_ENV", "test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("EMK_JSON_LOGS", "false")

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from emarketer_api.auth.session_auth import SessionIdentity, get_session_identity
from emarketer_api.db.models import Base, Company, Integration, Membership
from emarketer_api.db.session import get_db
from emarketer_api.main import create_app
from emarketer_api.ratelimit.limiter import build_rate_limiters
from emarketer_api.ratelimit.store import InMemoryRateLimitStore
from emarketer_api.routers.cron import get_orchestrator
from emarketer_api.sync.lease import InMemorySyncLease
from emarketer_api.sync.orchestrator import SyncOrchestrator
from tests.helpers import FakeClock, make_record, static_client_factory

# In-memory SQLite by default; set TEST_DATABASE_URL to run against PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_session() -> Iterator[Session]:
    """
    Create a fresh database session for each test.

    Uses in-memory SQLite unless TEST_DATABASE_URL points at PostgreSQL.
    """
    if "postgresql" in TEST_DATABASE_URL:
        engine = create_engine(TEST_DATABASE_URL)
    else:
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )
    session = SessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sync_lease() -> InMemorySyncLease:
    return InMemorySyncLease()


@pytest.fixture
def sync_items() -> list:
    """Items returned by the platform client used behind the API."""
    return [make_record("c-1", spend=30.0), make_record("c-2", spend=20.0)]


@pytest.fixture
def app(fake_clock: FakeClock) -> FastAPI:
    """Fresh app per test with isolated rate-limit counters and a fake clock."""
    limiters = build_rate_limiters(store=InMemoryRateLimitStore(), clock=fake_clock)
    return create_app(rate_limiters=limiters)


@pytest.fixture
def test_client(
    app: FastAPI, db_session: Session, sync_lease: InMemorySyncLease, sync_items: list
) -> Iterator[TestClient]:
    """TestClient with db_session override and an orchestrator without network access."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    def override_get_orchestrator():
        with SyncOrchestrator(
            db_session,
            lease=sync_lease,
            http=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
            client_factory=static_client_factory(sync_items),
        ) as orchestrator:
            yield orchestrator

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = override_get_orchestrator
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(app: FastAPI) -> Callable[..., None]:
    """Authenticate subsequent requests as ``user_id`` (bypasses Supabase)."""

    def _login(user_id: str, email: Optional[str] = None) -> None:
        identity = SessionIdentity(user_id=user_id, email=email or f"{user_id}@example.com")
        app.dependency_overrides[get_session_identity] = lambda: identity

    return _login


# ============================================================================
# Data builders
# ============================================================================


@pytest.fixture
def make_company(db_session: Session) -> Callable[..., Company]:
    """Create a company with the given {user_id: role} members.

    Memberships get strictly increasing created_at values across calls.
    """
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    tick = itertools.count()

    def _make(name: str = "Acme", members: Optional[dict[str, str]] = None) -> Company:
        company = Company(name=name)
        db_session.add(company)
        db_session.flush()
        for user_id, role in (members or {}).items():
            db_session.add(
                Membership(
                    user_id=user_id,
                    company_id=company.id,
                    role=role,
                    created_at=base + timedelta(seconds=next(tick)),
                )
            )
        db_session.commit()
        return company

    return _make


@pytest.fixture
def make_integration(db_session: Session) -> Callable[..., Integration]:
    def _make(
        company_id: Optional[str] = None,
        user_id: Optional[str] = None,
        platform: str = "meta",
        account_id: str = "act_1",
        is_active: bool = True,
        **fields,
    ) -> Integration:
        integration = Integration(
            company_id=company_id,
            user_id=user_id,
            platform=platform,
            account_id=account_id,
            access_token=fields.pop("access_token", "tok-live-abc"),
            is_active=is_active,
            **fields,
        )
        db_session.add(integration)
        db_session.commit()
        return integration

    return _make
