from __future__ import annotations

from datetime import date
from typing import Annotated, Any

from pydantic import Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from kitchenunity.crm.schemas import ClaimCreate, CustomerCreate, LeadCreate, QuickCustomerCreate
from kitchenunity.operations.schemas import InventoryItemCreate, PlannerEventCreate
from kitchenunity.records.errors import ValidationError
from kitchenunity.sales.schemas import OrderCreate
from kitchenunity.tenancy.schemas import StoreCreate

EntityDraft = Annotated[
    LeadCreate | CustomerCreate | ClaimCreate | OrderCreate | InventoryItemCreate | PlannerEventCreate | StoreCreate,
    Field(discriminator="kind"),
]

_DRAFT_ADAPTER: TypeAdapter[Any] = TypeAdapter(EntityDraft)

_DRAFT_MODELS: dict[str, type[Any]] = {
    "lead": LeadCreate,
    "customer": CustomerCreate,
    "claim": ClaimCreate,
    "order": OrderCreate,
    "inventory": InventoryItemCreate,
    "planner": PlannerEventCreate,
    "store": StoreCreate,
}


def new_draft(kind: str, store_id: str = "", **overrides: Any) -> Any:
    """Return an unvalidated draft holding the kind's defaults, ready for editing.

    Required fields stay unset until the caller fills them in; ``parse_draft``
    or the entity store validates the finished draft.
    """

    model = _DRAFT_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Unknown draft kind '{kind}'")

    defaults: dict[str, Any] = {}
    for name, field in model.model_fields.items():
        if field.is_required():
            continue
        defaults[name] = field.get_default(call_default_factory=True)
    if kind == "planner":
        defaults["date"] = date.today()
    if "store_id" in model.model_fields:
        defaults["store_id"] = store_id
    defaults.update(overrides)
    return model.model_construct(**defaults)


def parse_draft(data: dict[str, Any]) -> Any:
    try:
        return _DRAFT_ADAPTER.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, subject=f"{data.get('kind', 'entity')} draft") from exc


def finalize_draft(draft: Any) -> Any:
    """Validate a draft built with ``new_draft`` and edited in place."""

    return parse_draft(draft.model_dump())


def quick_customer_draft(store_id: str, *, first_name: str, email: str, last_name: str = "", phone: str | None = None) -> QuickCustomerCreate:
    try:
        return QuickCustomerCreate(
            store_id=store_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, subject="customer") from exc
