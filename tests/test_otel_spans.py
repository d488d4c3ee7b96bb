from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from kitchenunity.core.auth import issue_token
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import Base, get_db
from kitchenunity.main import app
from kitchenunity.middleware.rate_limit import reset_rate_limiter
from kitchenunity.otel import setup_inmemory_otel
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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("RECORD_BACKEND", "db")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/leads",
        json={"first_name": "Sarah", "source": "Website Form"},
        headers=_headers(**{"X-Correlation-Id": "otel-corr-1"}),
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_gateway_span_carries_store_and_correlation(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/customers",
        json={"first_name": "Ann"},
        headers=_headers(**{"X-Correlation-Id": "otel-gateway-1"}),
    )
    assert response.status_code == 201

    gateway_spans = [span for span in span_exporter.get_finished_spans() if span.name == "records.customer.create"]
    assert gateway_spans
    assert any(
        span.attributes.get("store_id") == "acme" and span.attributes.get("correlation_id") == "otel-gateway-1"
        for span in gateway_spans
    )
