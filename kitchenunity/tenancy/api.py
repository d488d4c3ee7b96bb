from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from kitchenunity.api.deps import get_tenant_context, resolve_request_tenant
from kitchenunity.api.errors import domain_error_response
from kitchenunity.core.auth import AuthUser, get_current_user
from kitchenunity.core.database import get_db
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AuthorizationError
from kitchenunity.records.errors import RecordError
from kitchenunity.tenancy.schemas import (
    ProfileAssign,
    ProfileRead,
    StoreCreate,
    StoreRead,
    StoreUpdate,
    TenantContextRead,
)
from kitchenunity.tenancy.service import tenant_service

router = APIRouter(prefix="/api", tags=["tenancy"])


@router.get("/tenant/context", response_model=TenantContextRead)
def get_tenant_context_view(
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> TenantContextRead:
    resolution, context = resolve_request_tenant(request, db, user)
    return TenantContextRead(
        user_id=context.user_id,
        role=context.role.value if context.role is not None else None,
        store_id=context.store_id,
        host_store_id=context.host_store_id,
        source=resolution.source,
        modules=tenant_service.visible_modules(context),
    )


@router.get("/stores", response_model=list[StoreRead])
def list_stores(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> list[StoreRead]:
    return tenant_service.list_stores(db, ctx)


@router.post("/stores", response_model=StoreRead, status_code=status.HTTP_201_CREATED)
def create_store(
    request: Request,
    dto: StoreCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> StoreRead | JSONResponse:
    try:
        return tenant_service.create_store(db, ctx, dto)
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="tenancy_store_create_failed")


@router.patch("/stores/{store_id}", response_model=StoreRead)
def update_store(
    request: Request,
    store_id: str,
    dto: StoreUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> StoreRead | JSONResponse:
    try:
        return tenant_service.update_store(db, ctx, store_id, dto)
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="tenancy_store_update_failed")


@router.put("/profiles/{user_id}", response_model=ProfileRead)
def assign_profile(
    request: Request,
    user_id: str,
    dto: ProfileAssign,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
) -> ProfileRead | JSONResponse:
    try:
        return tenant_service.assign_profile(db, ctx, user_id, dto)
    except (RecordError, AuthorizationError) as exc:
        return domain_error_response(request, exc, code="tenancy_profile_assign_failed")
