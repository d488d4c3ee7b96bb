from __future__ import annotations

from collections.abc import Generator

import pytest

from kitchenunity import audit, events
from kitchenunity.core.events import InProcessEventBus, InternalEvent


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()


def test_changes_ignore_bookkeeping_columns() -> None:
    entry = audit.record(
        actor_user_id="user-1",
        store_id="acme",
        entity_type="crm.customer",
        entity_id="cus-a1",
        action="customer.update",
        before={"notes": None, "row_version": 1, "updated_at": "a"},
        after={"notes": "Prefers email", "row_version": 2, "updated_at": "b"},
    )

    assert entry["changes"] == ["notes"]
    assert audit.entries_for("cus-a1", store_id="cedar") == []


def test_audit_trail_keeps_only_recent_entries() -> None:
    for index in range(audit.AUDIT_BUFFER_SIZE + 5):
        audit.record(
            actor_user_id="user-1",
            store_id="acme",
            entity_type="crm.lead",
            entity_id=f"lead-{index}",
            action="lead.create",
            before=None,
            after={"id": f"lead-{index}"},
        )

    assert len(audit.audit_entries) == audit.AUDIT_BUFFER_SIZE
    assert audit.entries_for("lead-0") == []
    assert audit.audit_entries[-1]["entity_id"] == f"lead-{audit.AUDIT_BUFFER_SIZE + 4}"


def test_published_events_keep_only_recent_envelopes() -> None:
    for index in range(events.EVENT_BUFFER_SIZE + 5):
        events.publish(
            events.build_envelope("crm.lead.created", store_id="acme", actor_user_id="user-1", payload={"id": index})
        )

    assert len(events.published_events) == events.EVENT_BUFFER_SIZE
    assert events.published_events[0]["payload"] == {"id": 5}


def test_event_bus_delivers_once_per_subscribed_handler() -> None:
    bus = InProcessEventBus()
    received: list[InternalEvent] = []
    bus.subscribe("crm.lead.created", received.append)
    bus.subscribe("crm.lead.created", received.append)

    bus.publish("crm.lead.created", {"id": "lead-1"})
    bus.publish("crm.lead.deleted", {"id": "lead-1"})

    assert [event.payload for event in received] == [{"id": "lead-1"}]
