from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kitchenunity.context import get_correlation_id, set_store_id
from kitchenunity.core.auth import AuthUser, get_current_user
from kitchenunity.core.config import get_settings
from kitchenunity.core.database import get_db
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.records.gateway import InMemoryRecordGateway, RecordGateway
from kitchenunity.records.kinds import EntityKind, build_memory_gateways, build_sql_gateways
from kitchenunity.records.workspace import Workspace
from kitchenunity.tenancy.resolver import SessionClaims, TenantResolution
from kitchenunity.tenancy.service import tenant_service

_memory_gateways: dict[EntityKind, InMemoryRecordGateway] = build_memory_gateways()


def record_backend() -> str:
    settings = get_settings()
    choice = settings.record_backend.lower()
    if choice == "auto":
        choice = "db" if settings.is_production else "memory"
    return choice


def memory_gateways() -> dict[EntityKind, InMemoryRecordGateway]:
    return _memory_gateways


def reset_memory_gateways() -> None:
    for gateway in _memory_gateways.values():
        gateway.clear()


def get_record_gateways(db: Session = Depends(get_db)) -> dict[EntityKind, RecordGateway]:
    if record_backend() == "memory":
        return dict(_memory_gateways)
    return build_sql_gateways(session=db)


def session_claims(user: AuthUser) -> SessionClaims | None:
    if not user.is_authenticated:
        return None
    return SessionClaims(user_id=user.sub, email=user.email, store_id=user.store_id)


def resolve_request_tenant(request: Request, db: Session, user: AuthUser) -> tuple[TenantResolution, TenantContext]:
    return tenant_service.resolve_context(
        db,
        hostname=request.headers.get("host"),
        claims=session_claims(user),
        selected_admin_store_id=request.headers.get("x-admin-store-id"),
        correlation_id=get_correlation_id(),
    )


async def get_tenant_context(
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> AsyncIterator[TenantContext]:
    """Effective tenant context for the request.

    An unresolved context is still returned; the entity layer rejects it with
    ``TenantViolation`` before any I/O.
    """

    _, context = await run_in_threadpool(resolve_request_tenant, request, db, user)
    request.state.tenant = context
    set_store_id(context.store_id)
    try:
        yield context
    finally:
        set_store_id(None)


def get_workspace(
    context: TenantContext = Depends(get_tenant_context),
    gateways: dict[EntityKind, Any] = Depends(get_record_gateways),
) -> Workspace:
    return Workspace(context, gateways)
