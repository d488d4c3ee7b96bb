from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kitchenunity.records.schemas import DraftModel, PartialUpdate, RecordRead, new_id


class OrderStatus(StrEnum):
    QUOTE = "Quote"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    INVOICED = "Invoiced"
    COMPLETED = "Completed"


class OrderLineItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    product_id: str | None = None
    product_name: str = ""
    sku: str = ""
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)


class Expense(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    type_id: str | None = None
    type_name: str = ""
    amount: Decimal = Field(ge=0)
    note: str = ""


class Attachment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    mime_type: str = "application/octet-stream"
    payload_ref: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _blank_rate_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class OrderCreate(DraftModel):
    kind: Literal["order"] = "order"
    customer_id: str = Field(min_length=1)
    line_items: list[OrderLineItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.QUOTE
    tax_rate: Decimal | None = Field(default=None, ge=0)
    sales_tax_override: Decimal | None = Field(default=None, ge=0)
    is_non_taxable: bool = False
    expenses: list[Expense] = Field(default_factory=list)
    notes: str = ""
    attachments: list[Attachment] = Field(default_factory=list)
    tracking_number: str | None = None

    @field_validator("tax_rate", "sales_tax_override", mode="before")
    @classmethod
    def blank_rate_is_unset(cls, value: Any) -> Any:
        return _blank_rate_to_none(value)


class OrderUpdate(PartialUpdate):
    nullable_fields = frozenset({"tax_rate", "sales_tax_override", "tracking_number"})

    customer_id: str | None = Field(default=None, min_length=1)
    line_items: list[OrderLineItem] | None = None
    status: OrderStatus | None = None
    tax_rate: Decimal | None = Field(default=None, ge=0)
    sales_tax_override: Decimal | None = Field(default=None, ge=0)
    is_non_taxable: bool | None = None
    expenses: list[Expense] | None = None
    notes: str | None = None
    attachments: list[Attachment] | None = None
    tracking_number: str | None = None

    @field_validator("tax_rate", "sales_tax_override", mode="before")
    @classmethod
    def blank_rate_is_unset(cls, value: Any) -> Any:
        return _blank_rate_to_none(value)


class OrderRead(RecordRead):
    customer_id: str
    line_items: list[OrderLineItem] = Field(default_factory=list)
    amount: Decimal = Decimal("0")
    status: OrderStatus
    tax_rate: Decimal | None = None
    sales_tax_override: Decimal | None = None
    is_non_taxable: bool = False
    expenses: list[Expense] = Field(default_factory=list)
    notes: str = ""
    attachments: list[Attachment] = Field(default_factory=list)
    tracking_number: str | None = None


class OrderTransitionRequest(BaseModel):
    status: OrderStatus
    row_version: int | None = Field(default=None, ge=1)


class OrderFinancialsRead(BaseModel):
    order_id: str
    subtotal: Decimal
    effective_tax_rate: Decimal
    tax_amount: Decimal
    total_due: Decimal
    total_expenses: Decimal
    net_profit: Decimal | None
