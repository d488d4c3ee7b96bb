from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kitchenunity import audit, events
from kitchenunity.core.auth import issue_token
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import Base, get_db
from kitchenunity.main import app
from kitchenunity.middleware.rate_limit import reset_rate_limiter
from kitchenunity.tenancy.models import Store


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
    session.add(Store(id="acme", name="Acme Cabinets", domain="acme"))
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("RECORD_BACKEND", "db")
    audit.audit_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(**extra: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token('user-a')}", "Host": "acme.kitchenunity.com", **extra}


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get("/api/leads/missing", headers=_headers())
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get("/api/leads/missing", headers=_headers(**{"X-Correlation-Id": "abc-123"}))
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    response = client.post(
        "/api/customers",
        json={"first_name": "Ann"},
        headers=_headers(**{"X-Correlation-Id": "corr-audit-1"}),
    )
    assert response.status_code == 201

    customer_audits = [entry for entry in audit.audit_entries if entry.get("entity_type") == "crm.customer"]
    assert customer_audits
    assert customer_audits[-1]["correlation_id"] == "corr-audit-1"


def test_event_envelope_includes_correlation_id(client: TestClient) -> None:
    response = client.post(
        "/api/leads",
        json={"first_name": "Sarah", "source": "Referral"},
        headers=_headers(**{"X-Correlation-Id": "corr-event-1"}),
    )
    assert response.status_code == 201

    created_events = [item for item in events.published_events if item.get("event_type") == "crm.lead.created"]
    assert created_events
    assert created_events[-1].get("correlation_id") == "corr-event-1"
    assert created_events[-1].get("store_id") == "acme"


def test_tenant_violation_is_audited_with_correlation_id(client: TestClient) -> None:
    response = client.post(
        "/api/leads",
        json={"store_id": "cedar", "first_name": "Mallory"},
        headers=_headers(**{"X-Correlation-Id": "corr-denied-1"}),
    )
    assert response.status_code == 403
    assert response.json()["correlation_id"] == "corr-denied-1"

    denials = [entry for entry in audit.audit_entries if entry.get("action") == "tenant.denied"]
    assert denials[-1]["correlation_id"] == "corr-denied-1"
    assert denials[-1]["after"]["requested_store_id"] == "cedar"
