"""Pure planning for the transitions that span more than one write.

A plan describes what must be written and in which order; the lifecycle
service carries it out against the entity stores. Nothing here does I/O.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from kitchenunity.crm.schemas import Address, CustomerCreate, CustomerRead, LeadRead, LeadStatus
from kitchenunity.records.kinds import EntityKind
from kitchenunity.sales.schemas import OrderRead, OrderStatus
from kitchenunity.sales.transitions import ensure_transition, order_view

CONVERTED_FROM_LEAD_NOTE = "Converted from lead."


@dataclass(frozen=True, slots=True)
class Effect:
    operation: str
    kind: EntityKind
    entity_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LeadConversionPlan:
    lead: LeadRead
    customer: CustomerCreate | None
    existing_customer: CustomerRead | None
    lead_changes: dict[str, Any]
    effects: tuple[Effect, ...]

    @property
    def is_noop(self) -> bool:
        return not self.effects


@dataclass(frozen=True, slots=True)
class OrderStatusPlan:
    order: OrderRead
    target: OrderStatus
    changes: dict[str, Any]
    view: str
    effects: tuple[Effect, ...]


def find_converted_customer(lead_id: str, customers: Sequence[CustomerRead]) -> CustomerRead | None:
    for customer in customers:
        if customer.source_lead_id == lead_id:
            return customer
    return None


def plan_lead_conversion(lead: LeadRead, customers: Sequence[CustomerRead] = ()) -> LeadConversionPlan:
    """Customer create first, then the lead flips to Qualified; the lead is kept.

    A customer already carrying ``source_lead_id == lead.id`` is reused, so a
    repeated conversion writes nothing new.
    """

    existing = find_converted_customer(lead.id, customers)
    customer: CustomerCreate | None = None
    effects: list[Effect] = []

    if existing is None:
        customer = CustomerCreate(
            store_id=lead.store_id,
            first_name=lead.first_name,
            last_name=lead.last_name,
            email=lead.email,
            phone=lead.phone,
            shipping_address=Address(),
            notes=CONVERTED_FROM_LEAD_NOTE,
            source_lead_id=lead.id,
        )
        effects.append(Effect("create", EntityKind.CUSTOMER, payload=customer.model_dump(exclude={"kind"})))

    lead_changes: dict[str, Any] = {}
    if lead.status != LeadStatus.QUALIFIED:
        lead_changes = {"status": LeadStatus.QUALIFIED}
        effects.append(Effect("update", EntityKind.LEAD, entity_id=lead.id, payload=dict(lead_changes)))

    return LeadConversionPlan(
        lead=lead,
        customer=customer,
        existing_customer=existing,
        lead_changes=lead_changes,
        effects=tuple(effects),
    )


def plan_order_transition(order: OrderRead, target: OrderStatus | str) -> OrderStatusPlan:
    target_status = OrderStatus(target)
    ensure_transition(order.status, target_status)
    changes = {"status": target_status}
    return OrderStatusPlan(
        order=order,
        target=target_status,
        changes=changes,
        view=order_view(target_status),
        effects=(Effect("update", EntityKind.ORDER, entity_id=order.id, payload=dict(changes)),),
    )


def plan_quote_conversion(order: OrderRead) -> OrderStatusPlan:
    """Quote becomes Processing in place: same id, same row, new list view."""

    return plan_order_transition(order, OrderStatus.PROCESSING)
