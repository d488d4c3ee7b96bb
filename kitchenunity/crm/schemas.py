from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from kitchenunity.records.schemas import DraftModel, PartialUpdate, RecordRead


class LeadStatus(StrEnum):
    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class ClaimStatus(StrEnum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class Address(BaseModel):
    model_config = ConfigDict(extra="forbid")

    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"


class LeadCreate(DraftModel):
    kind: Literal["lead"] = "lead"
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: EmailStr | None = None
    phone: str | None = None
    message: str | None = None
    source: str = "Direct"
    status: LeadStatus = LeadStatus.NEW


class LeadUpdate(PartialUpdate):
    nullable_fields = frozenset({"email", "phone", "message"})

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    message: str | None = None
    source: str | None = None
    status: LeadStatus | None = None


class LeadRead(RecordRead):
    first_name: str
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    message: str | None = None
    source: str = "Direct"
    status: LeadStatus


class CustomerCreate(DraftModel):
    kind: Literal["customer"] = "customer"
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: EmailStr | None = None
    phone: str | None = None
    shipping_address: Address = Field(default_factory=Address)
    billing_different: bool = False
    billing_address: Address | None = None
    notes: str = ""
    source_lead_id: str | None = None


class QuickCustomerCreate(CustomerCreate):
    """Inline customer add from the order form: first name and email are mandatory."""

    email: EmailStr
    notes: str = "Added from order flow."


class CustomerUpdate(PartialUpdate):
    nullable_fields = frozenset({"email", "phone", "billing_address"})

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    shipping_address: Address | None = None
    billing_different: bool | None = None
    billing_address: Address | None = None
    notes: str | None = None


class CustomerRead(RecordRead):
    first_name: str
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    shipping_address: Address = Field(default_factory=Address)
    billing_different: bool = False
    billing_address: Address | None = None
    notes: str = ""
    source_lead_id: str | None = None


class ClaimCreate(DraftModel):
    kind: Literal["claim"] = "claim"
    customer_id: str = Field(min_length=1)
    issue: str = Field(min_length=1)
    status: ClaimStatus = ClaimStatus.OPEN
    notes: str = ""


class ClaimUpdate(PartialUpdate):
    customer_id: str | None = Field(default=None, min_length=1)
    issue: str | None = Field(default=None, min_length=1)
    status: ClaimStatus | None = None
    notes: str | None = None


class ClaimRead(RecordRead):
    customer_id: str
    issue: str
    status: ClaimStatus
    notes: str = ""
