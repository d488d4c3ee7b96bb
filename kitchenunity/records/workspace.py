from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from typing import Any

from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AccessDenied
from kitchenunity.platform.security.policies import AccessPolicy, Role
from kitchenunity.records.gateway import RecordGateway
from kitchenunity.records.kinds import KIND_SPECS, EntityKind
from kitchenunity.records.store import EntityStore


logger = logging.getLogger("kitchenunity.records")


class Workspace:
    """One ``EntityStore`` per entity kind, all bound to the same tenant context."""

    def __init__(
        self,
        context: TenantContext,
        gateways: Mapping[EntityKind, RecordGateway],
        *,
        policy: AccessPolicy | None = None,
    ) -> None:
        self.context = context
        self.stores: dict[EntityKind, EntityStore[Any]] = {
            kind: EntityStore(KIND_SPECS[kind], gateway, context, policy=policy) for kind, gateway in gateways.items()
        }

    def __getitem__(self, kind: EntityKind | str) -> EntityStore[Any]:
        return self.stores[EntityKind(kind)]

    @property
    def leads(self) -> EntityStore[Any]:
        return self[EntityKind.LEAD]

    @property
    def customers(self) -> EntityStore[Any]:
        return self[EntityKind.CUSTOMER]

    @property
    def claims(self) -> EntityStore[Any]:
        return self[EntityKind.CLAIM]

    @property
    def orders(self) -> EntityStore[Any]:
        return self[EntityKind.ORDER]

    @property
    def inventory(self) -> EntityStore[Any]:
        return self[EntityKind.INVENTORY]

    @property
    def planner(self) -> EntityStore[Any]:
        return self[EntityKind.PLANNER]

    async def load_all(self) -> dict[EntityKind, list[Any]]:
        """Load every kind concurrently; nothing is applied unless all loads succeed."""

        store_id = self.context.store_id
        kinds = list(self.stores)
        results = await asyncio.gather(
            *(self.stores[kind].fetch(store_id) for kind in kinds),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            logger.warning(
                "records.load_all_failed",
                extra={"store_id": store_id, "operation": "load_all", "error": str(failures[0])},
            )
            raise failures[0]

        loaded: dict[EntityKind, list[Any]] = {}
        for kind, (epoch, entities) in zip(kinds, results):  # type: ignore[misc]
            self.stores[kind].apply_loaded(store_id or "", epoch, entities)
            loaded[kind] = list(entities)
        return loaded

    def switch_store(self, store_id: str) -> TenantContext:
        """Admin-only: retarget every store to ``store_id`` (or the aggregate scope)."""

        if self.context.role != Role.ADMIN:
            raise AccessDenied(self.context.role, "switch", "tenancy.store")
        self.context = dataclasses.replace(self.context, store_id=store_id)
        for store in self.stores.values():
            store.rebind(self.context)
        logger.info("records.store_switched", extra={"store_id": store_id, "operation": "switch_store"})
        return self.context
