from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from kitchenunity.api.routes import router as api_router
from kitchenunity.core.config import get_settings
from kitchenunity.core.events import InternalEvent, event_bus
from kitchenunity.logging import configure_logging
from kitchenunity.middleware.correlation_id import CorrelationIdMiddleware
from kitchenunity.middleware.rate_limit import WebhookRateLimitMiddleware
from kitchenunity.middleware.request_logging import RequestLoggingMiddleware
from kitchenunity.otel import get_fastapi_server_request_hook, setup_otel
from kitchenunity.platform.security.policies import InMemoryAccessPolicy, set_access_policy


configure_logging()
logger = logging.getLogger("kitchenunity.lifecycle")
_subscriptions_registered = False

_domain_event_types = [
    "crm.lead.created",
    "crm.lead.converted",
    "crm.customer.created",
    "sales.order.created",
    "sales.order.status_changed",
    "tenancy.store.created",
]


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_domain_event(event: InternalEvent) -> None:
    envelope = event.payload if isinstance(event.payload, dict) else {}
    logger.info(
        "domain_event",
        extra={"event_name": event.name, "store_id": envelope.get("store_id")},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        for event_name in _domain_event_types:
            event_bus.subscribe(event_name, _on_domain_event)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(WebhookRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

set_access_policy(InMemoryAccessPolicy())

if settings.otel_enabled:
    setup_otel("kitchenunity-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
