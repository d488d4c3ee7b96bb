from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response

from kitchenunity.core.config import get_settings
from kitchenunity.crm.api import hooks_router
from kitchenunity.lifecycle.api import router as lifecycle_router
from kitchenunity.metrics import generate_metrics_payload, metrics_content_type
from kitchenunity.records.api import build_records_routers
from kitchenunity.reporting.api import router as reports_router
from kitchenunity.tenancy.api import router as tenancy_router

router = APIRouter()
router.include_router(tenancy_router)
router.include_router(lifecycle_router)
for records_router in build_records_routers():
    router.include_router(records_router)
router.include_router(reports_router)
router.include_router(hooks_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics() -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
