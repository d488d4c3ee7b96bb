from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kitchenunity.api.deps import get_record_gateways
from kitchenunity.api.errors import domain_error_response
from kitchenunity.context import get_correlation_id
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import get_db
from kitchenunity.crm.schemas import LeadRead
from kitchenunity.crm.webhook import map_webhook_payload
from kitchenunity.metrics import observe_webhook_lead
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AuthorizationError, TenantViolation
from kitchenunity.platform.security.policies import Role
from kitchenunity.records.errors import RecordError, RecordNotFound, ValidationError
from kitchenunity.records.kinds import KIND_SPECS, EntityKind
from kitchenunity.records.store import EntityStore
from kitchenunity.tenancy.schemas import StoreStatus
from kitchenunity.tenancy.service import tenant_service


logger = logging.getLogger("kitchenunity.crm.webhook")

hooks_router = APIRouter(prefix="/hooks", tags=["crm.webhooks"])

WEBHOOK_ACTOR = "webhook:forminator"


async def _read_submission(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Webhook body is not valid JSON") from exc
        if not isinstance(body, dict):
            raise ValidationError("Webhook body must be a JSON object")
        return body
    form = await request.form()
    return {key: value for key, value in form.items()}


@hooks_router.post("/forminator", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
async def capture_forminator_lead(
    request: Request,
    store_id: str | None = Query(default=None, alias="storeId"),
    db: Session = Depends(get_db),
    gateways: dict[EntityKind, Any] = Depends(get_record_gateways),
) -> LeadRead | JSONResponse:
    try:
        if not store_id:
            raise TenantViolation("webhook", "Webhook URL is missing its storeId")
        store = await run_in_threadpool(tenant_service.get_store, db, store_id)
        if store is None:
            raise RecordNotFound("store", store_id)
        if store.status == StoreStatus.SUSPENDED:
            raise TenantViolation("webhook", f"Store '{store_id}' is suspended", store_id=store_id)

        body = await _read_submission(request)
        draft = map_webhook_payload(body, store_id=store.id, source=get_settings().webhook_default_source)

        context = TenantContext(
            user_id=WEBHOOK_ACTOR,
            role=Role.EMPLOYEE,
            store_id=store.id,
            host_store_id=store.id,
            correlation_id=get_correlation_id(),
        )
        leads: EntityStore[LeadRead] = EntityStore(KIND_SPECS[EntityKind.LEAD], gateways[EntityKind.LEAD], context)
        lead = await leads.create(draft)
    except (RecordError, AuthorizationError) as exc:
        outcome = "rejected" if isinstance(exc, (ValidationError, AuthorizationError, RecordNotFound)) else "failed"
        observe_webhook_lead(outcome)
        logger.warning(
            "webhook.lead_rejected",
            extra={"store_id": store_id, "operation": "webhook", "error": str(exc)},
        )
        return domain_error_response(request, exc, code="crm_webhook_lead_failed")

    observe_webhook_lead("created")
    logger.info("webhook.lead_created", extra={"store_id": lead.store_id, "entity_id": lead.id})
    return lead
