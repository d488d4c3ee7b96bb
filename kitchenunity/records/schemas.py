from __future__ import annotations

import uuid
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_id() -> str:
    return str(uuid.uuid4())


def cleared_required_fields(model: BaseModel, nullable: frozenset[str]) -> list[str]:
    """Fields explicitly set to ``None`` that the stored row cannot hold as null."""

    return sorted(
        name for name in model.model_fields_set if getattr(model, name) is None and name not in nullable
    )


class DraftModel(BaseModel):
    """Base for create payloads; ``kind`` discriminates the draft union."""

    model_config = ConfigDict(extra="forbid")

    store_id: str = ""


class PartialUpdate(BaseModel):
    """Base for partial updates; only fields explicitly set are written.

    ``None`` means "clear the value" and is only accepted for the fields named in
    ``nullable_fields``.
    """

    model_config = ConfigDict(extra="forbid")

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    row_version: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> "PartialUpdate":
        cleared = cleared_required_fields(self, self.nullable_fields | {"row_version"})
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class RecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    created_at: datetime
    updated_at: datetime | None = None
    row_version: int = 1
