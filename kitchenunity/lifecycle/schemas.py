from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from kitchenunity.crm.schemas import CustomerRead, LeadRead
from kitchenunity.sales.schemas import OrderRead, OrderStatus


class LeadConversionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lead: LeadRead
    customer: CustomerRead
    created: bool


class QuoteConvertRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    row_version: int | None = Field(default=None, ge=1)


class OrderStatusChangeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order: OrderRead
    previous_status: OrderStatus
    view: str
