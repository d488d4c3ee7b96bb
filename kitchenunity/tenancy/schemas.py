from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from kitchenunity.records.schemas import cleared_required_fields

STORE_KEY_PATTERN = r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$"


class StoreStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"


class ProfileRole(StrEnum):
    SUPER_ADMIN = "super_admin"
    STORE_USER = "store_user"


class StoreCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["store"] = "store"
    id: str | None = Field(default=None, pattern=STORE_KEY_PATTERN)
    name: str = Field(min_length=1)
    domain: str = Field(min_length=1, max_length=63, pattern=STORE_KEY_PATTERN)
    owner_email: EmailStr | None = None
    status: StoreStatus = StoreStatus.ACTIVE
    default_tax_rate: Decimal | None = Field(default=None, ge=0)


class StoreUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    status: StoreStatus | None = None
    default_tax_rate: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> "StoreUpdate":
        cleared = cleared_required_fields(self, frozenset({"default_tax_rate"}))
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class StoreRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    domain: str
    owner_email: str | None = None
    status: StoreStatus
    default_tax_rate: Decimal | None = None
    created_at: datetime


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str | None = None
    role: ProfileRole = ProfileRole.STORE_USER
    email: str | None = None


class ProfileAssign(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store_id: str | None = None
    role: ProfileRole = ProfileRole.STORE_USER
    email: EmailStr | None = None


class TenantContextRead(BaseModel):
    user_id: str
    role: str | None
    store_id: str | None
    host_store_id: str | None
    source: str
    modules: list[str]
