from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.sql import Select

from kitchenunity import audit
from kitchenunity.metrics import observe_tenant_violation
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import TenantViolation
from kitchenunity.platform.security.policies import ALL_STORES, Role


logger = logging.getLogger("kitchenunity.security")


def store_filter_value(store_id: str | None) -> str | None:
    """Return the store id a query must filter by, or None for the aggregate scope."""

    if store_id == ALL_STORES:
        return None
    if not store_id:
        raise TenantViolation("list")
    return store_id


def apply_store_filter(query: Select[Any], model: Any, store_id: str | None) -> Select[Any]:
    """Restrict a select to one tenant unless the scope is the aggregate sentinel."""

    value = store_filter_value(store_id)
    if value is None:
        return query
    return query.where(model.store_id == value)


def require_scope(ctx: TenantContext, store_id: str | None, *, resource: str, operation: str) -> str:
    if not store_id:
        _reject(ctx, resource, operation, store_id, "Tenant context required")
    return store_id  # type: ignore[return-value]


def require_read_scope(ctx: TenantContext, store_id: str | None, *, resource: str) -> str:
    if not store_id:
        _reject(ctx, resource, "list", store_id, "Tenant context required to read")
    if store_id == ALL_STORES and ctx.role != Role.ADMIN:
        _reject(ctx, resource, "list", store_id, "Aggregate scope is reserved for Admin")
    if store_id != ALL_STORES and ctx.role != Role.ADMIN and store_id != ctx.store_id:
        _reject(ctx, resource, "list", store_id, "Store id is outside the actor's tenant")
    return store_id  # type: ignore[return-value]


def require_write_scope(ctx: TenantContext, payload_store_id: str | None, *, resource: str, operation: str) -> str:
    """Validate that a write targets the concrete tenant the context is scoped to."""

    if not payload_store_id or payload_store_id == ALL_STORES:
        _reject(ctx, resource, operation, payload_store_id, "Tenant write violation: a concrete store id is required")
    if ctx.store_id != payload_store_id:
        _reject(ctx, resource, operation, payload_store_id, "Tenant write violation: store id does not match context")
    return payload_store_id  # type: ignore[return-value]


def _reject(ctx: TenantContext, resource: str, operation: str, store_id: str | None, message: str) -> None:
    observe_tenant_violation(operation)
    logger.warning(
        "tenant.violation",
        extra={"store_id": ctx.store_id, "entity_kind": resource, "operation": operation, "error": message},
    )
    audit.record(
        actor_user_id=ctx.user_id,
        store_id=ctx.store_id,
        entity_type="security.tenant",
        entity_id="scope",
        action="tenant.denied",
        before=None,
        after={"resource": resource, "operation": operation, "requested_store_id": store_id},
        correlation_id=ctx.correlation_id,
    )
    raise TenantViolation(operation, message, store_id=store_id)
