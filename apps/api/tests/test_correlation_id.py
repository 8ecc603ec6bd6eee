from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.database import Base, get_db
from app.crm.api import get_current_user as crm_get_current_user, get_read_fanout
from app.crm.fanout import ReadFanout
from app.crm.service import ActorUser
from app.main import app


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
def clear_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="user-1",
            role="admin",
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[crm_get_current_user] = override_get_current_user
    app.dependency_overrides[get_read_fanout] = lambda: ReadFanout()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get("/api/accounts/001-missing")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get("/api/accounts/001-missing", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_request_id_used_when_correlation_header_absent(client: TestClient) -> None:
    response = client.get("/api/accounts/001-missing", headers={"X-Request-Id": "req-77"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "req-77"
    assert response.headers.get("x-request-id") == "req-77"
    assert response.json()["correlation_id"] == "req-77"


def test_actor_carries_request_correlation_id(db_session: Session) -> None:
    captured: list[ActorUser] = []

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        actor = ActorUser(
            user_id="user-1",
            role="admin",
            correlation_id=getattr(request.state, "correlation_id", None),
        )
        captured.append(actor)
        return actor

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[crm_get_current_user] = override_get_current_user
    app.dependency_overrides[get_read_fanout] = lambda: ReadFanout()
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/api/accounts", headers={"X-Correlation-Id": "corr-actor-1"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert [actor.correlation_id for actor in captured] == ["corr-actor-1"]


def test_malformed_inbound_id_is_replaced(client: TestClient) -> None:
    response = client.get("/api/accounts/001-missing", headers={"X-Correlation-Id": "bad id with spaces"})
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    assert header_value != "bad id with spaces"
    assert response.json()["correlation_id"] == header_value
