from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("RECORD_BACKEND", "db")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_domain_metrics(client: TestClient) -> None:
    headers = {"Authorization": f"Bearer {issue_token('metrics-user')}", "Host": "acme.kitchenunity.com"}

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    lead = client.post("/api/leads", json={"first_name": "Sarah"}, headers=headers)
    assert lead.status_code == 201
    converted = client.post(f"/api/leads/{lead.json()['id']}/convert", headers=headers)
    assert converted.status_code == 200

    denied = client.get("/api/leads", headers={**headers, "Host": "ghost.kitchenunity.com"})
    assert denied.status_code == 403

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "entity_store_operations_total" in body
    assert "tenant_violations_total" in body
    assert "lifecycle_transitions_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/leads/{id}/convert"' in body


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404
