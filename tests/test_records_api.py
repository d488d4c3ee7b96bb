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
from kitchenunity.tenancy.models import Profile, Store


ACME_HOST = "acme.kitchenunity.com"
CEDAR_HOST = "cedar.kitchenunity.com"


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
    session.add_all(
        [
            Store(id="acme", name="Acme Cabinets", domain="acme"),
            Store(id="cedar", name="Cedar Kitchens", domain="cedar"),
            Store(id="bolt", name="Bolt Interiors", domain="bolt", status="suspended"),
            Profile(id="admin-1", role="super_admin", email="admin@example.com"),
        ]
    )
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
    audit.audit_entries.clear()
    events.published_events.clear()
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


def _headers(sub: str, host: str = ACME_HOST, **extra: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(sub)}", "Host": host, **extra}


def _admin_headers(store_id: str | None = None, **extra: str) -> dict[str, str]:
    headers = _headers("admin-1", host="kitchenunity.com", **extra)
    if store_id:
        headers["x-admin-store-id"] = store_id
    return headers


def _create_lead(client: TestClient, first_name: str = "Sarah", host: str = ACME_HOST) -> dict:
    response = client.post(
        "/api/leads",
        json={"first_name": first_name, "last_name": "Jenkins", "email": "sarah@example.com"},
        headers=_headers("user-a", host=host),
    )
    assert response.status_code == 201
    return response.json()


def test_customer_is_created_in_the_host_store(client: TestClient) -> None:
    response = client.post(
        "/api/customers",
        json={"first_name": "Ann", "last_name": "Avery", "email": "ann@example.com"},
        headers=_headers("user-a"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["store_id"] == "acme"
    assert body["row_version"] == 1
    assert body["shipping_address"]["country"] == "US"


def test_lists_are_isolated_per_store(client: TestClient) -> None:
    _create_lead(client, "Sarah")
    _create_lead(client, "Omar", host=CEDAR_HOST)

    acme = client.get("/api/leads", headers=_headers("user-a"))
    cedar = client.get("/api/leads", headers=_headers("user-b", host=CEDAR_HOST))
    everything = client.get("/api/leads", headers=_admin_headers())

    assert [lead["first_name"] for lead in acme.json()] == ["Sarah"]
    assert [lead["first_name"] for lead in cedar.json()] == ["Omar"]
    assert {lead["store_id"] for lead in everything.json()} == {"acme", "cedar"}


def test_admin_can_narrow_to_one_store(client: TestClient) -> None:
    _create_lead(client, "Sarah")
    _create_lead(client, "Omar", host=CEDAR_HOST)

    response = client.get("/api/leads", headers=_admin_headers("cedar"))

    assert response.status_code == 200
    assert [lead["store_id"] for lead in response.json()] == ["cedar"]


def test_writing_into_another_store_is_forbidden(client: TestClient) -> None:
    response = client.post(
        "/api/customers",
        json={"store_id": "cedar", "first_name": "Mallory"},
        headers=_headers("user-a"),
    )

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "customer_create_failed"
    assert body["details"]["operation"] == "create"
    assert client.get("/api/customers", headers=_headers("user-b", host=CEDAR_HOST)).json() == []


@pytest.mark.parametrize("host", ["kitchenunity.com", "www.kitchenunity.com", "ghost.kitchenunity.com", "bolt.kitchenunity.com"])
def test_unresolved_tenant_fails_closed(client: TestClient, host: str) -> None:
    response = client.get("/api/leads", headers=_headers("user-a", host=host))

    assert response.status_code == 403
    assert response.json()["code"] == "lead_list_failed"


def test_anonymous_request_is_rejected(client: TestClient) -> None:
    response = client.get("/api/orders", headers={"Host": ACME_HOST})

    assert response.status_code == 403


def test_admin_cannot_create_in_aggregate_scope(client: TestClient) -> None:
    response = client.post("/api/leads", json={"first_name": "Nobody"}, headers=_admin_headers())

    assert response.status_code == 403
    assert response.json()["code"] == "lead_create_failed"


def test_get_returns_one_record_or_404(client: TestClient) -> None:
    lead = _create_lead(client)

    found = client.get(f"/api/leads/{lead['id']}", headers=_headers("user-a"))
    hidden = client.get(f"/api/leads/{lead['id']}", headers=_headers("user-b", host=CEDAR_HOST))

    assert found.status_code == 200
    assert found.json()["first_name"] == "Sarah"
    assert hidden.status_code == 404


def test_patch_uses_row_version(client: TestClient) -> None:
    lead = _create_lead(client)

    first = client.patch(
        f"/api/leads/{lead['id']}",
        json={"status": "Contacted", "row_version": 1},
        headers=_headers("user-a"),
    )
    assert first.status_code == 200
    assert first.json()["status"] == "Contacted"
    assert first.json()["row_version"] == 2

    stale = client.patch(
        f"/api/leads/{lead['id']}",
        json={"status": "Closed", "row_version": 1},
        headers=_headers("user-a"),
    )
    assert stale.status_code == 409
    assert stale.json()["code"] == "lead_update_failed"
    assert stale.json()["details"]["expected_row_version"] == 1


def test_patch_rejects_invalid_values(client: TestClient) -> None:
    lead = _create_lead(client)

    response = client.patch(f"/api/leads/{lead['id']}", json={"status": "Won"}, headers=_headers("user-a"))

    assert response.status_code == 422


def test_patch_cannot_null_a_required_field(client: TestClient) -> None:
    lead = _create_lead(client)

    response = client.patch(f"/api/leads/{lead['id']}", json={"status": None}, headers=_headers("user-a"))
    assert response.status_code == 422

    found = client.get(f"/api/leads/{lead['id']}", headers=_headers("user-a"))
    listed = client.get("/api/leads", headers=_headers("user-a"))
    assert found.status_code == 200
    assert found.json()["status"] == "New"
    assert found.json()["row_version"] == 1
    assert listed.status_code == 200


def test_delete_requires_admin_and_confirmation(client: TestClient) -> None:
    lead = _create_lead(client)

    as_user = client.delete(
        f"/api/leads/{lead['id']}",
        headers=_headers("user-a", **{"x-confirm-delete": "true"}),
    )
    assert as_user.status_code == 403

    unconfirmed = client.delete(f"/api/leads/{lead['id']}", headers=_admin_headers("acme"))
    assert unconfirmed.status_code == 422

    confirmed = client.delete(
        f"/api/leads/{lead['id']}",
        headers=_admin_headers("acme", **{"x-confirm-delete": "true"}),
    )
    assert confirmed.status_code == 200
    assert confirmed.json() == {"status": "deleted", "id": lead["id"]}

    assert client.get(f"/api/leads/{lead['id']}", headers=_headers("user-a")).status_code == 404
    deletes = [entry for entry in audit.audit_entries if entry["action"] == "lead.delete"]
    assert deletes[-1]["actor_user_id"] == "admin-1"


def test_planner_events_are_listed_by_date(client: TestClient) -> None:
    for day, name in (("2026-11-09", "Install"), ("2026-11-02", "Measure")):
        response = client.post(
            "/api/planner",
            json={"date": day, "customer_name": name, "type": "Install" if name == "Install" else "Measurement"},
            headers=_headers("user-a"),
        )
        assert response.status_code == 201

    listed = client.get("/api/planner", headers=_headers("user-a"))

    assert [event["date"] for event in listed.json()] == ["2026-11-02", "2026-11-09"]


def test_claims_and_inventory_routes(client: TestClient) -> None:
    claim = client.post(
        "/api/claims",
        json={"customer_id": "cus-1", "issue": "Scratched drawer front"},
        headers=_headers("user-a"),
    )
    item = client.post(
        "/api/inventory",
        json={"name": "Soft-close hinge", "sku": "HNG-01", "price": "4.50", "quantity": 200},
        headers=_headers("user-a"),
    )

    assert claim.status_code == 201
    assert claim.json()["status"] == "Open"
    assert item.status_code == 201
    assert item.json()["status"] == "In Stock"
