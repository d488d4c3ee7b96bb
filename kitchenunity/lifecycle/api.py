from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kitchenunity.api.deps import get_workspace
from kitchenunity.api.errors import domain_error_response
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import get_db
from kitchenunity.lifecycle.schemas import LeadConversionRead, OrderStatusChangeRead, QuoteConvertRequest
from kitchenunity.lifecycle.service import LifecycleService
from kitchenunity.platform.security.errors import AuthorizationError
from kitchenunity.records.errors import RecordError
from kitchenunity.records.workspace import Workspace
from kitchenunity.sales.financials import order_financials
from kitchenunity.sales.schemas import OrderFinancialsRead, OrderTransitionRequest
from kitchenunity.tenancy.service import tenant_service

router = APIRouter(prefix="/api", tags=["lifecycle"])


@router.post("/leads/{lead_id}/convert", response_model=LeadConversionRead)
async def convert_lead(
    request: Request,
    lead_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> LeadConversionRead | JSONResponse:
    try:
        result = await LifecycleService(workspace).convert_lead(lead_id)
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="crm_lead_convert_failed")
    return LeadConversionRead.model_validate(result)


@router.post("/orders/{order_id}/convert", response_model=OrderStatusChangeRead)
async def convert_quote(
    request: Request,
    order_id: str,
    dto: QuoteConvertRequest | None = Body(default=None),
    workspace: Workspace = Depends(get_workspace),
) -> OrderStatusChangeRead | JSONResponse:
    try:
        result = await LifecycleService(workspace).convert_quote(
            order_id,
            expected_version=dto.row_version if dto is not None else None,
        )
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="sales_quote_convert_failed")
    return OrderStatusChangeRead.model_validate(result)


@router.post("/orders/{order_id}/transition", response_model=OrderStatusChangeRead)
async def transition_order(
    request: Request,
    order_id: str,
    dto: OrderTransitionRequest,
    workspace: Workspace = Depends(get_workspace),
) -> OrderStatusChangeRead | JSONResponse:
    try:
        result = await LifecycleService(workspace).transition_order(
            order_id,
            dto.status,
            expected_version=dto.row_version,
        )
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="sales_order_transition_failed")
    return OrderStatusChangeRead.model_validate(result)


@router.get("/orders/{order_id}/financials", response_model=OrderFinancialsRead)
async def get_order_financials(
    request: Request,
    order_id: str,
    db: Session = Depends(get_db),
    workspace: Workspace = Depends(get_workspace),
) -> OrderFinancialsRead | JSONResponse:
    try:
        order = await workspace.orders.load_one(order_id)
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="sales_order_financials_failed")

    store_rate = await run_in_threadpool(tenant_service.store_default_tax_rate, db, order.store_id)
    figures = order_financials(order, store_default_rate=store_rate, fallback_rate=get_settings().default_tax_rate)
    return OrderFinancialsRead(
        order_id=order.id,
        subtotal=figures.subtotal,
        effective_tax_rate=figures.effective_tax_rate,
        tax_amount=figures.tax_amount,
        total_due=figures.total_due,
        total_expenses=figures.total_expenses,
        net_profit=figures.net_profit,
    )
