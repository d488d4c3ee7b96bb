from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import Field

from kitchenunity.records.schemas import DraftModel, PartialUpdate, RecordRead


class InventoryStatus(StrEnum):
    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


class PlannerEventType(StrEnum):
    MEASUREMENT = "Measurement"
    DESIGN = "Design"
    DELIVERY = "Delivery"
    INSTALL = "Install"
    SERVICE = "Service"
    INTERNAL = "Internal"


class PlannerEventStatus(StrEnum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"


class InventoryItemCreate(DraftModel):
    kind: Literal["inventory"] = "inventory"
    name: str = Field(min_length=1)
    sku: str = ""
    description: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=0, ge=0)
    track_stock: bool = True
    status: InventoryStatus = InventoryStatus.IN_STOCK


class InventoryItemUpdate(PartialUpdate):
    name: str | None = Field(default=None, min_length=1)
    sku: str | None = None
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
    track_stock: bool | None = None
    status: InventoryStatus | None = None


class InventoryItemRead(RecordRead):
    name: str
    sku: str = ""
    description: str = ""
    price: Decimal = Decimal("0")
    quantity: int = 0
    track_stock: bool = True
    status: InventoryStatus


class PlannerEventCreate(DraftModel):
    kind: Literal["planner"] = "planner"
    type: PlannerEventType = PlannerEventType.MEASUREMENT
    customer_id: str | None = None
    customer_name: str | None = None
    date: dt.date
    time: str | None = None
    address: str = ""
    assigned_to: str | None = None
    notes: str = ""
    status: PlannerEventStatus = PlannerEventStatus.SCHEDULED


class PlannerEventUpdate(PartialUpdate):
    nullable_fields = frozenset({"customer_id", "customer_name", "time", "assigned_to"})

    type: PlannerEventType | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    date: dt.date | None = None
    time: str | None = None
    address: str | None = None
    assigned_to: str | None = None
    notes: str | None = None
    status: PlannerEventStatus | None = None


class PlannerEventRead(RecordRead):
    type: PlannerEventType
    customer_id: str | None = None
    customer_name: str | None = None
    date: dt.date
    time: str | None = None
    address: str = ""
    assigned_to: str | None = None
    notes: str = ""
    status: PlannerEventStatus
