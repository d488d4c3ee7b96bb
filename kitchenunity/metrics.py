from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

entity_store_operations_total = Counter(
    "entity_store_operations_total",
    "Entity store operations by kind and outcome",
    ["kind", "operation", "outcome"],
)

tenant_violations_total = Counter(
    "tenant_violations_total",
    "Operations rejected for a missing or out-of-scope store id",
    ["operation"],
)

tenant_resolutions_total = Counter(
    "tenant_resolutions_total",
    "Tenant resolutions by outcome",
    ["outcome"],
)

lifecycle_transitions_total = Counter(
    "lifecycle_transitions_total",
    "Cross-entity lifecycle transitions by outcome",
    ["transition", "outcome"],
)

webhook_leads_total = Counter(
    "webhook_leads_total",
    "Leads captured through the inbound webhook",
    ["outcome"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_entity_operation(kind: str, operation: str, outcome: str) -> None:
    entity_store_operations_total.labels(kind=kind, operation=operation, outcome=outcome).inc()


def observe_tenant_violation(operation: str) -> None:
    tenant_violations_total.labels(operation=operation).inc()


def observe_tenant_resolution(outcome: str) -> None:
    tenant_resolutions_total.labels(outcome=outcome).inc()


def observe_lifecycle_transition(transition: str, outcome: str) -> None:
    lifecycle_transitions_total.labels(transition=transition, outcome=outcome).inc()


def observe_webhook_lead(outcome: str) -> None:
    webhook_leads_total.labels(outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
