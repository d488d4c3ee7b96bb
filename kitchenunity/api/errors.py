from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from kitchenunity.context import get_correlation_id
from kitchenunity.platform.security.errors import AccessDenied, TenantViolation
from kitchenunity.records.errors import (
    ConcurrencyConflict,
    InvalidTransition,
    LifecycleError,
    PersistenceError,
    RecordError,
    RecordNotFound,
    StaleResultError,
    ValidationError,
)


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def status_for(exc: Exception) -> int:
    if isinstance(exc, (TenantViolation, AccessDenied)):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, RecordNotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (ConcurrencyConflict, InvalidTransition, StaleResultError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, LifecycleError):
        return status.HTTP_502_BAD_GATEWAY if exc.written else status.HTTP_409_CONFLICT
    if isinstance(exc, PersistenceError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def details_for(exc: Exception) -> Any:
    if isinstance(exc, ValidationError):
        return exc.errors
    if isinstance(exc, TenantViolation):
        return {"operation": exc.operation, "store_id": exc.store_id}
    if isinstance(exc, AccessDenied):
        return {"role": exc.role, "action": exc.action, "resource": exc.resource}
    if isinstance(exc, ConcurrencyConflict):
        return {"id": exc.entity_id, "expected_row_version": exc.expected_version}
    if isinstance(exc, InvalidTransition):
        return {"current": exc.current, "target": exc.target}
    if isinstance(exc, LifecycleError):
        return {"transition": exc.transition, "written": exc.written}
    return None


def domain_error_response(request: Request, exc: RecordError | Exception, *, code: str) -> JSONResponse:
    return error_response(
        request,
        status_code=status_for(exc),
        code=code,
        message=str(exc),
        details=details_for(exc),
    )
