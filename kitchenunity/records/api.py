# Body models come from the kind spec at build time; annotations here must be evaluated eagerly.
from typing import Any

from fastapi import APIRouter, Depends, Header, Request, status

from kitchenunity.api.deps import get_workspace
from kitchenunity.api.errors import domain_error_response
from kitchenunity.platform.security.errors import AuthorizationError
from kitchenunity.records.errors import RecordError
from kitchenunity.records.kinds import KIND_SPECS, KindSpec
from kitchenunity.records.workspace import Workspace


def _confirmed(value: str | None) -> bool:
    return (value or "").strip().lower() in {"true", "1", "yes"}


def build_kind_router(spec: KindSpec) -> APIRouter:
    router = APIRouter(prefix=f"/api/{spec.route}", tags=[spec.resource])
    kind = spec.kind.value
    read_model = spec.read_model
    create_model = spec.create_model
    update_model = spec.update_model

    @router.get("", response_model=list[read_model], name=f"list_{spec.route}")  # type: ignore[valid-type]
    async def list_entities(request: Request, workspace: Workspace = Depends(get_workspace)) -> Any:
        try:
            return await workspace[kind].list(workspace.context.store_id)
        except (RecordError, AuthorizationError) as exc:
            return domain_error_response(request, exc, code=f"{kind}_list_failed")

    @router.get("/{entity_id}", response_model=read_model, name=f"get_{kind}")
    async def get_entity(request: Request, entity_id: str, workspace: Workspace = Depends(get_workspace)) -> Any:
        try:
            return await workspace[kind].load_one(entity_id)
        except (RecordError, AuthorizationError) as exc:
            return domain_error_response(request, exc, code=f"{kind}_get_failed")

    @router.post("", response_model=read_model, status_code=status.HTTP_201_CREATED, name=f"create_{kind}")
    async def create_entity(
        request: Request,
        dto: create_model,  # type: ignore[valid-type]
        workspace: Workspace = Depends(get_workspace),
    ) -> Any:
        try:
            if not dto.store_id:
                dto = dto.model_copy(update={"store_id": workspace.context.store_id or ""})
            return await workspace[kind].create(dto)
        except (RecordError, AuthorizationError) as exc:
            return domain_error_response(request, exc, code=f"{kind}_create_failed")

    @router.patch("/{entity_id}", response_model=read_model, name=f"update_{kind}")
    async def update_entity(
        request: Request,
        entity_id: str,
        dto: update_model,  # type: ignore[valid-type]
        workspace: Workspace = Depends(get_workspace),
    ) -> Any:
        try:
            return await workspace[kind].update(entity_id, dto)
        except (RecordError, AuthorizationError) as exc:
            return domain_error_response(request, exc, code=f"{kind}_update_failed")

    @router.delete("/{entity_id}", status_code=status.HTTP_200_OK, response_model=None, name=f"delete_{kind}")
    async def delete_entity(
        request: Request,
        entity_id: str,
        workspace: Workspace = Depends(get_workspace),
        confirm_delete: str | None = Header(default=None, alias="x-confirm-delete"),
    ) -> Any:
        try:
            await workspace[kind].delete(entity_id, confirmed=_confirmed(confirm_delete))
            return {"status": "deleted", "id": entity_id}
        except (RecordError, AuthorizationError) as exc:
            return domain_error_response(request, exc, code=f"{kind}_delete_failed")

    return router


def build_records_routers() -> list[APIRouter]:
    return [build_kind_router(spec) for spec in KIND_SPECS.values()]
