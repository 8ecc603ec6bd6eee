from __future__ import annotations

import contextvars
import json
import logging
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.context import bind_actor
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.crm.api import get_current_user as crm_get_current_user, get_read_fanout
from app.crm.fanout import ReadFanout
from app.crm.models import CRMAccount, CRMCall
from app.crm.service import ActorUser
from app.logging import JsonLogFormatter, RequestContextFilter
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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="se-1",
            role="se",
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[crm_get_current_user] = override_get_current_user
    app.dependency_overrides[get_read_fanout] = lambda: ReadFanout()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get("/api/accounts/001-missing", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/accounts/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_orphan_warning_carries_account_and_correlation_id(
    client: TestClient,
    db_session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    db_session.add_all(
        [
            CRMAccount(id="A1", name="Log Account"),
            CRMCall(
                id="C1",
                account_id="A1",
                opportunity_id="O-gone",
                started=datetime(2026, 9, 1, 12, tzinfo=timezone.utc),
                participants=[],
            ),
        ]
    )
    db_session.commit()

    response = client.get("/api/accounts/A1/opportunities-with-calls", headers={"X-Correlation-Id": "abc-456"})
    assert response.status_code == 200

    linkage_records = [record for record in caplog.records if record.name == "app.crm.linkage"]
    assert any(
        record.getMessage() == "linkage.orphaned_calls"
        and record.levelno == logging.WARNING
        and getattr(record, "account_id", None) == "A1"
        and getattr(record, "orphaned_count", None) == 1
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in linkage_records
    )


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "app.crm.linkage",
            "levelname": "WARNING",
            "msg": "linkage.orphaned_calls",
            "correlation_id": "corr-9",
            "account_id": "A1",
            "orphaned_count": 3,
            "secret_token": "do-not-log",
            "error": "x" * 600,
        }
    )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "linkage.orphaned_calls"
    assert payload["correlation_id"] == "corr-9"
    assert payload["fields"]["account_id"] == "A1"
    assert payload["fields"]["orphaned_count"] == 3
    assert "secret_token" not in payload["fields"]
    assert len(payload["fields"]["error"]) == 500


def test_filter_stamps_bound_actor() -> None:
    def emit() -> logging.LogRecord:
        bind_actor("se-1", "se")
        record = logging.makeLogRecord({"name": "app.crm.accounts", "msg": "crm.accounts.list"})
        RequestContextFilter().filter(record)
        return record

    record = contextvars.copy_context().run(emit)

    assert record.user_id == "se-1"
    assert record.role == "se"
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["user_id"] == "se-1"
    assert payload["role"] == "se"
