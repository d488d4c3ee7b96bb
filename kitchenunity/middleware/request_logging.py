from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from kitchenunity.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("kitchenunity.request")


def _request_fields(request: Request, status_code: int, started: float) -> dict[str, Any]:
    # Path and tenant are only known after routing and dependency resolution ran.
    tenant = getattr(request.state, "tenant", None)
    return {
        "method": request.method,
        "path": resolve_http_path_label(request),
        "status_code": status_code,
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "store_id": getattr(tenant, "store_id", None),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            fields = _request_fields(request, 500, started)
            observe_http_request(method=fields["method"], path=fields["path"], status=500, duration=fields["duration_ms"] / 1000)
            logger.error("http.error", exc_info=True, extra=fields)
            raise

        fields = _request_fields(request, response.status_code, started)
        observe_http_request(
            method=fields["method"],
            path=fields["path"],
            status=response.status_code,
            duration=fields["duration_ms"] / 1000,
        )
        (logger.warning if response.status_code >= 500 else logger.info)("http.request", extra=fields)
        return response
