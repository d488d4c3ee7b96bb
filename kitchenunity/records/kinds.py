from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from kitchenunity.crm.models import Claim, Customer, Lead
from kitchenunity.crm.schemas import (
    ClaimCreate,
    ClaimRead,
    ClaimUpdate,
    CustomerCreate,
    CustomerRead,
    CustomerUpdate,
    LeadCreate,
    LeadRead,
    LeadUpdate,
)
from kitchenunity.operations.models import InventoryItem, PlannerEvent
from kitchenunity.operations.schemas import (
    InventoryItemCreate,
    InventoryItemRead,
    InventoryItemUpdate,
    PlannerEventCreate,
    PlannerEventRead,
    PlannerEventUpdate,
)
from kitchenunity.records.gateway import InMemoryRecordGateway, RecordGateway, SqlRecordGateway
from kitchenunity.records.schemas import DraftModel, PartialUpdate, RecordRead
from kitchenunity.sales.models import Order
from kitchenunity.sales.schemas import OrderCreate, OrderRead, OrderUpdate
from kitchenunity.sales.transitions import prepare_order_create, prepare_order_update


class EntityKind(StrEnum):
    LEAD = "lead"
    CUSTOMER = "customer"
    CLAIM = "claim"
    ORDER = "order"
    INVENTORY = "inventory"
    PLANNER = "planner"


@dataclass(frozen=True, slots=True)
class KindSpec:
    kind: EntityKind
    resource: str
    route: str
    model: Any
    read_model: type[RecordRead]
    create_model: type[DraftModel]
    update_model: type[PartialUpdate]
    order_by: str = "created_at"
    descending: bool = True
    prepare_create: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    prepare_update: Callable[[dict[str, Any], Any], dict[str, Any]] | None = None


KIND_SPECS: dict[EntityKind, KindSpec] = {
    EntityKind.LEAD: KindSpec(
        kind=EntityKind.LEAD,
        resource="crm.lead",
        route="leads",
        model=Lead,
        read_model=LeadRead,
        create_model=LeadCreate,
        update_model=LeadUpdate,
    ),
    EntityKind.CUSTOMER: KindSpec(
        kind=EntityKind.CUSTOMER,
        resource="crm.customer",
        route="customers",
        model=Customer,
        read_model=CustomerRead,
        create_model=CustomerCreate,
        update_model=CustomerUpdate,
    ),
    EntityKind.CLAIM: KindSpec(
        kind=EntityKind.CLAIM,
        resource="crm.claim",
        route="claims",
        model=Claim,
        read_model=ClaimRead,
        create_model=ClaimCreate,
        update_model=ClaimUpdate,
    ),
    EntityKind.ORDER: KindSpec(
        kind=EntityKind.ORDER,
        resource="sales.order",
        route="orders",
        model=Order,
        read_model=OrderRead,
        create_model=OrderCreate,
        update_model=OrderUpdate,
        prepare_create=prepare_order_create,
        prepare_update=prepare_order_update,
    ),
    EntityKind.INVENTORY: KindSpec(
        kind=EntityKind.INVENTORY,
        resource="operations.inventory_item",
        route="inventory",
        model=InventoryItem,
        read_model=InventoryItemRead,
        create_model=InventoryItemCreate,
        update_model=InventoryItemUpdate,
    ),
    EntityKind.PLANNER: KindSpec(
        kind=EntityKind.PLANNER,
        resource="operations.planner_event",
        route="planner",
        model=PlannerEvent,
        read_model=PlannerEventRead,
        create_model=PlannerEventCreate,
        update_model=PlannerEventUpdate,
        order_by="date",
        descending=False,
    ),
}


def build_sql_gateways(
    *,
    session: Session | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> dict[EntityKind, RecordGateway]:
    lock = threading.Lock()
    return {
        kind: SqlRecordGateway(
            kind.value,
            spec.model,
            session=session,
            session_factory=session_factory,
            lock=lock,
            order_by=spec.order_by,
            descending=spec.descending,
        )
        for kind, spec in KIND_SPECS.items()
    }


def build_memory_gateways() -> dict[EntityKind, InMemoryRecordGateway]:
    return {
        kind: InMemoryRecordGateway(kind.value, order_by=spec.order_by, descending=spec.descending)
        for kind, spec in KIND_SPECS.items()
    }
