from __future__ import annotations

import asyncio
from collections.abc import Generator
from decimal import Decimal
from typing import Any

import pytest

from kitchenunity import audit, events
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AccessDenied, TenantViolation
from kitchenunity.platform.security.policies import Role
from kitchenunity.records.errors import ConcurrencyConflict, PersistenceError, ValidationError
from kitchenunity.records.gateway import InMemoryRecordGateway
from kitchenunity.records.kinds import KIND_SPECS, EntityKind
from kitchenunity.records.store import EntityStore


class FailingUpdateGateway(InMemoryRecordGateway):
    async def update(self, entity_id: str, partial: dict[str, Any], *, expected_version: int, store_id: str | None = None) -> int:
        raise RuntimeError("connection reset by peer")


class FailingCreateGateway(InMemoryRecordGateway):
    async def create(self, row: dict[str, Any]) -> dict[str, Any]:
        raise RuntimeError("connection reset by peer")


class FailingDeleteGateway(InMemoryRecordGateway):
    async def delete(self, entity_id: str, *, store_id: str | None = None) -> None:
        raise RuntimeError("connection reset by peer")


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()


def _context(store_id: str | None = "acme", role: Role | None = Role.CUSTOMER, user_id: str = "user-1") -> TenantContext:
    return TenantContext(user_id=user_id, role=role, store_id=store_id, correlation_id="corr-store")


def _seed_customers(gateway: InMemoryRecordGateway) -> None:
    gateway.seed(
        [
            {"id": "cus-a1", "store_id": "acme", "first_name": "Ann", "last_name": "Avery"},
            {"id": "cus-a2", "store_id": "acme", "first_name": "Abe", "last_name": "Adler"},
            {"id": "cus-c1", "store_id": "cedar", "first_name": "Cal", "last_name": "Cole"},
        ]
    )


@pytest.fixture()
def customer_gateway() -> InMemoryRecordGateway:
    gateway = InMemoryRecordGateway("customer")
    _seed_customers(gateway)
    return gateway


def _customers(gateway: InMemoryRecordGateway, context: TenantContext) -> EntityStore[Any]:
    return EntityStore(KIND_SPECS[EntityKind.CUSTOMER], gateway, context)


def test_list_returns_only_the_requested_store(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))

    customers = asyncio.run(store.list("acme"))

    assert {customer.id for customer in customers} == {"cus-a1", "cus-a2"}
    assert all(customer.store_id == "acme" for customer in store.items)
    assert store.loaded_store_id == "acme"


def test_admin_aggregate_list_is_the_union(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("all", Role.ADMIN, "admin-1"))

    customers = asyncio.run(store.list("all"))

    assert {customer.store_id for customer in customers} == {"acme", "cedar"}
    assert len(customers) == 3


@pytest.mark.parametrize("store_id", [None, ""])
def test_missing_store_id_is_a_tenant_violation(customer_gateway: InMemoryRecordGateway, store_id: str | None) -> None:
    store = _customers(customer_gateway, _context(store_id))

    with pytest.raises(TenantViolation):
        asyncio.run(store.list(store_id))
    assert store.items == []


def test_user_cannot_read_another_store(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))

    with pytest.raises(TenantViolation):
        asyncio.run(store.list("cedar"))
    with pytest.raises(TenantViolation):
        asyncio.run(store.list("all"))

    denials = [entry for entry in audit.audit_entries if entry["action"] == "tenant.denied"]
    assert denials


def test_create_prepends_and_audits(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))
    asyncio.run(store.list("acme"))

    created = asyncio.run(store.create({"store_id": "acme", "first_name": "Sarah", "last_name": "Jenkins"}))

    assert store.items[0].id == created.id
    assert len(store.items) == 3
    assert created.row_version == 1
    assert audit.entries_for(created.id)[-1]["action"] == "customer.create"
    assert events.published_events[-1]["event_type"] == "crm.customer.created"
    assert events.published_events[-1]["store_id"] == "acme"


def test_create_for_another_store_is_rejected_before_io(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))

    with pytest.raises(TenantViolation):
        asyncio.run(store.create({"store_id": "cedar", "first_name": "Mallory"}))

    rows = asyncio.run(customer_gateway.list("cedar"))
    assert [row["id"] for row in rows] == ["cus-c1"]


def test_invalid_draft_raises_validation_error(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(store.create({"store_id": "acme", "first_name": ""}))

    assert any("first_name" in message for message in exc_info.value.errors)


def test_admin_cannot_create_in_aggregate_scope(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("all", Role.ADMIN, "admin-1"))

    with pytest.raises(TenantViolation):
        asyncio.run(store.create({"store_id": "acme", "first_name": "Ann"}))


def test_update_merges_and_bumps_row_version(customer_gateway: InMemoryRecordGateway) -> None:
    store = _customers(customer_gateway, _context("acme"))
    asyncio.run(store.list("acme"))

    updated = asyncio.run(store.update("cus-a1", {"notes": "Prefers email"}))

    assert updated.notes == "Prefers email"
    assert updated.first_name == "Ann"
    assert updated.row_version == 2
    assert store.get("cus-a1") == updated
    assert audit.entries_for("cus-a1", store_id="acme")[-1]["changes"] == ["notes"]


def test_failed_update_leaves_collection_untouched() -> None:
    gateway = FailingUpdateGateway("customer")
    _seed_customers(gateway)
    store = _customers(gateway, _context("acme"))
    asyncio.run(store.list("acme"))
    before = [customer.model_dump() for customer in store.items]

    with pytest.raises(PersistenceError):
        asyncio.run(store.update("cus-a1", {"notes": "lost"}))

    assert [customer.model_dump() for customer in store.items] == before
    assert not [entry for entry in audit.audit_entries if entry["action"] == "customer.update"]


def test_clearing_a_required_field_is_rejected_before_io() -> None:
    gateway = InMemoryRecordGateway("lead")
    gateway.seed([{"id": "lead-1", "store_id": "acme", "first_name": "Lena", "status": "New"}])
    store = EntityStore(KIND_SPECS[EntityKind.LEAD], gateway, _context("acme"))
    asyncio.run(store.list("acme"))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(store.update("lead-1", {"status": None}))

    assert any("status" in message for message in exc_info.value.errors)
    assert store.get("lead-1").status == "New"
    rows = asyncio.run(gateway.list("acme"))
    assert rows[0]["status"] == "New"
    assert rows[0]["row_version"] == 1
    assert [lead.id for lead in asyncio.run(store.list("acme"))] == ["lead-1"]
    assert not [entry for entry in audit.audit_entries if entry["action"] == "lead.update"]


def test_nullable_field_can_be_cleared() -> None:
    gateway = InMemoryRecordGateway("lead")
    gateway.seed([{"id": "lead-1", "store_id": "acme", "first_name": "Lena", "phone": "555-0100", "status": "New"}])
    store = EntityStore(KIND_SPECS[EntityKind.LEAD], gateway, _context("acme"))
    asyncio.run(store.list("acme"))

    updated = asyncio.run(store.update("lead-1", {"phone": None}))

    assert updated.phone is None
    assert updated.row_version == 2
    assert asyncio.run(gateway.list("acme"))[0]["phone"] is None


def test_failed_create_prepends_nothing() -> None:
    gateway = FailingCreateGateway("customer")
    _seed_customers(gateway)
    store = _customers(gateway, _context("acme"))
    asyncio.run(store.list("acme"))
    before = [customer.model_dump() for customer in store.items]

    with pytest.raises(PersistenceError):
        asyncio.run(store.create({"store_id": "acme", "first_name": "Sarah", "last_name": "Jenkins"}))

    assert [customer.model_dump() for customer in store.items] == before
    assert not [entry for entry in audit.audit_entries if entry["action"] == "customer.create"]
    assert not [event for event in events.published_events if event["event_type"] == "crm.customer.created"]


def test_failed_delete_removes_nothing() -> None:
    gateway = FailingDeleteGateway("customer")
    _seed_customers(gateway)
    store = _customers(gateway, _context("acme", Role.ADMIN, "admin-1"))
    asyncio.run(store.list("acme"))
    before = [customer.model_dump() for customer in store.items]

    with pytest.raises(PersistenceError):
        asyncio.run(store.delete("cus-a1", confirmed=True))

    assert [customer.model_dump() for customer in store.items] == before
    assert store.get("cus-a1") is not None
    assert not [entry for entry in audit.audit_entries if entry["action"] == "customer.delete"]


def test_concurrent_update_with_stale_version_conflicts(customer_gateway: InMemoryRecordGateway) -> None:
    first = _customers(customer_gateway, _context("acme", user_id="user-1"))
    second = _customers(customer_gateway, _context("acme", user_id="user-2"))
    asyncio.run(first.list("acme"))
    asyncio.run(second.list("acme"))

    asyncio.run(first.update("cus-a1", {"phone": "555-0100"}))

    with pytest.raises(ConcurrencyConflict):
        asyncio.run(second.update("cus-a1", {"phone": "555-0199"}))
    assert second.get("cus-a1").phone is None


def test_delete_requires_confirmation_and_admin(customer_gateway: InMemoryRecordGateway) -> None:
    user_store = _customers(customer_gateway, _context("acme"))
    with pytest.raises(AccessDenied):
        asyncio.run(user_store.delete("cus-a1", confirmed=True))

    admin_store = _customers(customer_gateway, _context("acme", Role.ADMIN, "admin-1"))
    asyncio.run(admin_store.list("acme"))
    with pytest.raises(ValidationError):
        asyncio.run(admin_store.delete("cus-a1"))

    asyncio.run(admin_store.delete("cus-a1", confirmed=True))
    assert admin_store.get("cus-a1") is None
    assert [row["id"] for row in asyncio.run(customer_gateway.list("acme"))] == ["cus-a2"]


def test_order_amount_is_derived_on_create_and_update() -> None:
    gateway = InMemoryRecordGateway("order")
    store = EntityStore(KIND_SPECS[EntityKind.ORDER], gateway, _context("acme"))

    order = asyncio.run(
        store.create(
            {
                "store_id": "acme",
                "customer_id": "cus-a1",
                "line_items": [{"product_name": "Shaker base", "price": "450", "quantity": 10}],
                "tax_rate": "8.25",
            }
        )
    )
    assert order.amount == Decimal("4500.00")

    updated = asyncio.run(
        store.update(order.id, {"line_items": [{"product_name": "Shaker base", "price": "450", "quantity": 2}]})
    )
    assert updated.amount == Decimal("900.00")


def test_order_cannot_be_created_as_shipped() -> None:
    gateway = InMemoryRecordGateway("order")
    store = EntityStore(KIND_SPECS[EntityKind.ORDER], gateway, _context("acme"))

    with pytest.raises(ValidationError):
        asyncio.run(store.create({"store_id": "acme", "customer_id": "cus-a1", "status": "Shipped"}))
    assert asyncio.run(gateway.list("acme")) == []
