from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kitchenunity.api.deps import get_workspace
from kitchenunity.api.errors import domain_error_response
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import get_db
from kitchenunity.platform.security.errors import AuthorizationError
from kitchenunity.records.errors import RecordError
from kitchenunity.records.workspace import Workspace
from kitchenunity.reporting.schemas import AccountingSummaryRead, OverviewReportRead
from kitchenunity.reporting.service import build_overview, summarize_accounting
from kitchenunity.tenancy.service import tenant_service

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/accounting", response_model=AccountingSummaryRead)
async def accounting_report(
    request: Request,
    db: Session = Depends(get_db),
    workspace: Workspace = Depends(get_workspace),
) -> AccountingSummaryRead | JSONResponse:
    try:
        orders = await workspace.orders.list(workspace.context.store_id)
        store_rate = await run_in_threadpool(
            tenant_service.store_default_tax_rate, db, workspace.context.concrete_store_id
        )
        return summarize_accounting(
            orders,
            store_id=workspace.context.store_id or "",
            store_default_rate=store_rate,
            fallback_rate=get_settings().default_tax_rate,
        )
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="reports_accounting_failed")


@router.get("/overview", response_model=OverviewReportRead)
async def overview_report(
    request: Request,
    workspace: Workspace = Depends(get_workspace),
) -> OverviewReportRead | JSONResponse:
    try:
        await workspace.load_all()
        return build_overview(
            store_id=workspace.context.store_id or "",
            orders=workspace.orders.items,
            customers=workspace.customers.items,
            claims=workspace.claims.items,
            leads=workspace.leads.items,
        )
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="reports_overview_failed")
