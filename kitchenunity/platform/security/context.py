from __future__ import annotations

from dataclasses import dataclass

from kitchenunity.platform.security.policies import ALL_STORES, Role


@dataclass(slots=True)
class TenantContext:
    """Effective tenant context every entity operation runs under."""

    user_id: str
    role: Role | None
    store_id: str | None
    host_store_id: str | None = None
    correlation_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_aggregate(self) -> bool:
        return self.store_id == ALL_STORES

    @property
    def concrete_store_id(self) -> str | None:
        if not self.store_id or self.store_id == ALL_STORES:
            return None
        return self.store_id
