from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from kitchenunity.crm.schemas import LeadCreate, LeadStatus
from kitchenunity.records.errors import ValidationError

UNKNOWN_FIRST_NAME = "Unknown"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _split_name_field(value: Any) -> tuple[str, str]:
    # Forminator sends a multi-part name field as {"first-name": ..., "last-name": ...}.
    if isinstance(value, Mapping):
        return _text(value.get("first-name")), _text(value.get("last-name"))
    return _text(value), ""


def map_webhook_payload(body: Mapping[str, Any], *, store_id: str, source: str) -> LeadCreate:
    """Map a flat form submission onto a new lead in ``store_id``.

    At least one of name, email or phone must be present. A submission with
    contact details but no name gets a placeholder first name.
    """

    first_name, last_from_name = _split_name_field(body.get("name-1"))
    last_name = _text(body.get("name-2")) or last_from_name
    email = _text(body.get("email-1"))
    phone = _text(body.get("phone-1"))
    message = _text(body.get("textarea-1"))

    if not (first_name or last_name or email or phone):
        raise ValidationError("Webhook submission carries no name, email or phone")

    try:
        return LeadCreate(
            store_id=store_id,
            first_name=first_name or UNKNOWN_FIRST_NAME,
            last_name=last_name,
            email=email or None,
            phone=phone or None,
            message=message or None,
            source=source,
            status=LeadStatus.NEW,
        )
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, subject="webhook submission") from exc
