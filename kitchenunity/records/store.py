from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from kitchenunity import audit, events
from kitchenunity.metrics import observe_entity_operation
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AccessDenied, AuthorizationError, TenantViolation
from kitchenunity.platform.security.policies import ALL_STORES, AccessPolicy, Action, get_access_policy
from kitchenunity.platform.security.scope import require_read_scope, require_scope, require_write_scope
from kitchenunity.records import collection
from kitchenunity.records.errors import PersistenceError, RecordError, StaleResultError, ValidationError
from kitchenunity.records.gateway import RecordGateway, Row
from kitchenunity.records.kinds import KindSpec
from kitchenunity.records.schemas import PartialUpdate, RecordRead


logger = logging.getLogger("kitchenunity.records")

EntityT = TypeVar("EntityT", bound=RecordRead)


class EntityStore(Generic[EntityT]):
    """Tenant-scoped local collection of one entity kind kept in step with its gateway.

    Local state changes only after the gateway call succeeded; a failed call
    leaves ``items`` exactly as it was. Every call is checked against the
    bound ``TenantContext`` before any I/O is issued.
    """

    def __init__(
        self,
        spec: KindSpec,
        gateway: RecordGateway,
        context: TenantContext,
        *,
        policy: AccessPolicy | None = None,
    ) -> None:
        self.spec = spec
        self.gateway = gateway
        self.context = context
        self._policy = policy
        self._items: list[EntityT] = []
        self._loaded_store_id: str | None = None
        self._epoch = 0

    @property
    def kind(self) -> str:
        return self.spec.kind.value

    @property
    def items(self) -> list[EntityT]:
        return list(self._items)

    @property
    def loaded_store_id(self) -> str | None:
        return self._loaded_store_id

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def policy(self) -> AccessPolicy:
        return self._policy or get_access_policy()

    def get(self, entity_id: str) -> EntityT | None:
        return collection.find(self._items, entity_id)

    def rebind(self, context: TenantContext) -> None:
        """Switch to a new tenant context; results still in flight become stale."""

        self.context = context
        self._epoch += 1
        self._items = []
        self._loaded_store_id = None

    async def list(self, store_id: str | None) -> list[EntityT]:
        epoch, entities = await self.fetch(store_id)
        self.apply_loaded(store_id or "", epoch, entities)
        return list(entities)

    async def fetch(self, store_id: str | None) -> tuple[int, list[EntityT]]:
        """Load rows for ``store_id`` without touching the local collection."""

        self._authorize(Action.VIEW, store_id, "list")
        require_read_scope(self.context, store_id, resource=self.spec.resource)
        epoch = self._epoch
        rows = await self._remote("list", self.gateway.list(store_id))  # type: ignore[arg-type]
        if epoch != self._epoch:
            observe_entity_operation(self.kind, "list", "stale")
            raise StaleResultError(self.kind, store_id)
        return epoch, self._normalize(rows, store_id)  # type: ignore[arg-type]

    def apply_loaded(self, store_id: str, epoch: int, entities: list[EntityT]) -> None:
        if epoch != self._epoch:
            observe_entity_operation(self.kind, "list", "stale")
            raise StaleResultError(self.kind, store_id)
        self._items = list(entities)
        self._loaded_store_id = store_id
        observe_entity_operation(self.kind, "list", "ok")

    async def load_one(self, entity_id: str) -> EntityT:
        """Fetch one row in the current scope and upsert it into the local collection."""

        self._authorize(Action.VIEW, self.context.store_id, "get")
        epoch = self._epoch
        row = await self._remote("get", self.gateway.get(entity_id, store_id=self.context.store_id))
        entity = self._to_entity(row)
        if epoch == self._epoch:
            self._items = collection.upsert(self._items, entity, self.spec.order_by, self.spec.descending)
        return entity

    async def create(self, payload: BaseModel | Mapping[str, Any]) -> EntityT:
        draft = self._validate(self.spec.create_model, payload, subject=f"{self.kind} draft")
        store_id = getattr(draft, "store_id", None)
        self._authorize(Action.CREATE, self.context.store_id, "create")
        require_write_scope(self.context, store_id, resource=self.spec.resource, operation="create")

        values = draft.model_dump(exclude={"kind"})
        if self.spec.prepare_create is not None:
            values = self.spec.prepare_create(values)

        epoch = self._epoch
        row = await self._remote("create", self.gateway.create(values))
        entity = self._to_entity(row)

        if epoch == self._epoch and self._in_scope(entity.store_id):
            self._items = collection.prepend(self._items, entity)
        else:
            logger.info(
                "records.create_not_merged",
                extra={"entity_kind": self.kind, "entity_id": entity.id, "store_id": entity.store_id},
            )
        self._record("create", entity.id, before=None, after=entity)
        return entity

    async def update(
        self,
        entity_id: str,
        changes: BaseModel | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> EntityT:
        """Apply a partial update with compare-and-swap on ``row_version``.

        Returns the entity as merged locally: the previous copy shallow-merged
        with the written fields and the new row version.
        """

        self._authorize(Action.EDIT, self.context.store_id, "update")
        update = self._validate(self.spec.update_model, changes, subject=f"{self.kind} update")
        partial = update.model_dump(exclude_unset=True)
        supplied_version = partial.pop("row_version", None)

        epoch = self._epoch
        current = self.get(entity_id)
        if current is None:
            current = self._to_entity(
                await self._remote("get", self.gateway.get(entity_id, store_id=self.context.store_id))
            )
        version = expected_version or supplied_version or current.row_version

        if self.spec.prepare_update is not None:
            partial = self.spec.prepare_update(partial, current)
        if not partial:
            return current

        # The merged row must be a valid read model before it reaches the store of record.
        merged = self._validate(
            self.spec.read_model,
            {**current.model_dump(), **partial, "row_version": version + 1},
            subject=f"{self.kind} update",
        )
        new_version = await self._remote(
            "update",
            self.gateway.update(entity_id, partial, expected_version=version, store_id=self.context.store_id),
        )
        merged = merged.model_copy(update={"row_version": new_version})
        if epoch == self._epoch and self.get(entity_id) is not None:
            self._items = collection.replace(self._items, merged)
        self._record("update", entity_id, before=current, after=merged)
        return merged  # type: ignore[return-value]

    async def delete(self, entity_id: str, *, confirmed: bool = False) -> None:
        if not confirmed:
            raise ValidationError(f"Deleting a {self.kind} requires explicit confirmation")
        self._authorize(Action.DELETE, self.context.store_id, "delete")

        epoch = self._epoch
        before = self.get(entity_id)
        await self._remote("delete", self.gateway.delete(entity_id, store_id=self.context.store_id))
        if epoch == self._epoch:
            self._items = collection.remove(self._items, entity_id)
        self._record("delete", entity_id, before=before, after=None)

    async def revert_create(self, entity_id: str) -> None:
        """Compensate a create that belongs to a failed compound transition."""

        epoch = self._epoch
        await self._remote("revert", self.gateway.delete(entity_id, store_id=self.context.store_id))
        if epoch == self._epoch:
            self._items = collection.remove(self._items, entity_id)
        self._record("revert", entity_id, before=None, after=None)

    def _authorize(self, action: Action, scope: str | None, operation: str) -> None:
        if not scope:
            observe_entity_operation(self.kind, operation, "denied")
            require_scope(self.context, scope, resource=self.spec.resource, operation=operation)
        if not self.policy.can_perform(self.context.role, action, scope, self.spec.resource):
            observe_entity_operation(self.kind, operation, "denied")
            if scope == ALL_STORES:
                raise TenantViolation(operation, f"A specific store must be selected to {action.value} {self.kind}")
            raise AccessDenied(self.context.role, action.value, self.spec.resource)

    async def _remote(self, operation: str, call: Any) -> Any:
        try:
            result = await call
        except (RecordError, AuthorizationError) as exc:
            self._log_failure(operation, exc)
            raise
        except Exception as exc:
            self._log_failure(operation, exc)
            raise PersistenceError(f"{self.kind} {operation} failed") from exc
        if operation not in {"list", "get"}:
            observe_entity_operation(self.kind, operation, "ok")
        return result

    def _log_failure(self, operation: str, exc: Exception) -> None:
        observe_entity_operation(self.kind, operation, "error")
        logger.warning(
            "records.remote_failed",
            extra={
                "entity_kind": self.kind,
                "operation": operation,
                "store_id": self.context.store_id,
                "error": str(exc),
            },
        )

    def _normalize(self, rows: list[Row], store_id: str) -> list[EntityT]:
        entities = [self._to_entity(row) for row in rows]
        if store_id != ALL_STORES:
            scoped = [entity for entity in entities if entity.store_id == store_id]
            if len(scoped) != len(entities):
                logger.warning(
                    "records.foreign_rows_dropped",
                    extra={"entity_kind": self.kind, "store_id": store_id, "operation": "list"},
                )
            entities = scoped
        return collection.sort_entities(entities, self.spec.order_by, self.spec.descending)

    def _to_entity(self, row: Row) -> EntityT:
        try:
            return self.spec.read_model.model_validate(row)  # type: ignore[return-value]
        except PydanticValidationError as exc:
            raise PersistenceError(f"Malformed {self.kind} row returned by the store of record") from exc

    def _in_scope(self, store_id: str) -> bool:
        scope = self.context.store_id
        return scope == ALL_STORES or scope == store_id

    @staticmethod
    def _validate(model: type[BaseModel], payload: BaseModel | Mapping[str, Any], *, subject: str) -> Any:
        if isinstance(payload, BaseModel):
            data = payload.model_dump(exclude_unset=issubclass(model, PartialUpdate))
        else:
            data = dict(payload)
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, subject=subject) from exc

    def _record(self, action: str, entity_id: str, *, before: BaseModel | None, after: BaseModel | None) -> None:
        audit.record(
            actor_user_id=self.context.user_id,
            store_id=self.context.store_id,
            entity_type=self.spec.resource,
            entity_id=entity_id,
            action=f"{self.kind}.{action}",
            before=before.model_dump(mode="json") if before is not None else None,
            after=after.model_dump(mode="json") if after is not None else None,
            correlation_id=self.context.correlation_id,
        )
        events.publish(
            events.build_envelope(
                f"{self.spec.resource}.{_past_tense(action)}",
                store_id=self.context.store_id,
                actor_user_id=self.context.user_id,
                payload={"id": entity_id},
            )
        )


def _past_tense(action: str) -> str:
    return f"{action}d" if action.endswith("e") else f"{action}ed"
