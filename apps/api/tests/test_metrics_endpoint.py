from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import AuthUser, get_current_user as auth_get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.crm.api import get_current_user as crm_get_current_user, get_read_fanout
from app.crm.fanout import ReadFanout
from app.crm.models import CRMAccount, CRMCall, CRMOpportunity
from app.crm.service import ActorUser
from app.main import app
from app.metrics import _sanitize_path


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def metrics_user() -> AuthUser:
    return AuthUser(sub="metrics-admin", role="se_manager", permissions=["system.metrics.read"])


@pytest.fixture()
def client(db_session: Session, metrics_user: AuthUser) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_crm_user() -> ActorUser:
        return ActorUser(user_id="se-1", role="se", correlation_id="metrics-corr-1")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[crm_get_current_user] = override_crm_user
    app.dependency_overrides[auth_get_current_user] = lambda: metrics_user
    app.dependency_overrides[get_read_fanout] = lambda: ReadFanout()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _seed_orphan(session: Session) -> None:
    session.add_all(
        [
            CRMAccount(id="A1", name="Metrics Account"),
            CRMOpportunity(id="O1", account_id="A1", name="Deal", stage_name="Discovery", assigned_se_user_id="se-1"),
            CRMCall(
                id="C1",
                account_id="A1",
                opportunity_id="O-gone",
                started=datetime(2026, 9, 1, 12, tzinfo=timezone.utc),
                participants=[],
            ),
        ]
    )
    session.commit()


def test_metrics_endpoint_exposes_http_and_read_metrics(client: TestClient, db_session: Session) -> None:
    _seed_orphan(db_session)

    health = client.get("/health")
    assert health.status_code == 200

    accounts = client.get("/api/accounts")
    assert accounts.status_code == 200

    combined = client.get("/api/accounts/A1/opportunities-with-calls")
    assert combined.status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "crm_read_fanout_duration_seconds" in body
    assert "crm_orphaned_calls_total" in body
    assert "crm_scope_resolutions_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/accounts/{id}/opportunities-with-calls"' in body
    assert 'mode="sequential"' in body
    assert 'policy="unlinked"' in body
    assert 'role="se",scope="self"' in body


@pytest.mark.parametrize("metrics_user", [AuthUser(sub="se-1", role="se")])
def test_metrics_requires_permission(client: TestClient) -> None:
    response = client.get("/metrics")
    assert response.status_code == 403


def test_metrics_disabled_returns_not_found(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")
    assert response.status_code == 404


@pytest.mark.parametrize(
    ("raw_path", "label"),
    [
        ("/api/accounts/001Dn00000ABCdeIAH", "/api/accounts/{id}"),
        ("/api/accounts/001Dn00000ABCde/contacts", "/api/accounts/{id}/contacts"),
        ("/api/calls/7782342274025937895", "/api/calls/{id}"),
        ("/api/accounts/opportunities-with-calls", "/api/accounts/opportunities-with-calls"),
    ],
)
def test_unmatched_paths_collapse_ids(raw_path: str, label: str) -> None:
    assert _sanitize_path(raw_path) == label
