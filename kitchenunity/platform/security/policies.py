from __future__ import annotations

from enum import StrEnum
from threading import Lock
from typing import Protocol

ALL_STORES = "all"


class Role(StrEnum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    CUSTOMER = "CUSTOMER"


class Action(StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


# Staff and shop owners share one capability set; only Admin may delete.
DEFAULT_ROLE_GRANTS: dict[Role, set[str]] = {
    Role.ADMIN: {"*"},
    Role.EMPLOYEE: {"*.view", "*.create", "*.edit"},
    Role.CUSTOMER: {"*.view", "*.create", "*.edit"},
}

ADMIN_ONLY_RESOURCES = frozenset({"tenancy.store", "tenancy.profile"})
AGGREGATE_ACTIONS = frozenset({Action.VIEW, Action.EDIT, Action.DELETE})
AGGREGATE_CREATABLE_RESOURCES = frozenset({"tenancy.store"})

TENANT_MODULES: tuple[str, ...] = (
    "dashboard",
    "customers",
    "sales-orders",
    "sales-invoices",
    "sales-quotes",
    "claims",
    "leads",
    "inventory",
    "reports",
    "planner",
    "accounting",
    "settings",
)
AGGREGATE_MODULES: tuple[str, ...] = ("dashboard", "reports", "settings")


class AccessPolicy(Protocol):
    """Role to permitted-actions table consulted by resolvers and entity stores."""

    def can_perform(self, role: Role | str | None, action: Action, scope: str | None, resource: str = "*") -> bool:
        ...

    def visible_modules(self, role: Role | str | None, scope: str | None) -> tuple[str, ...]:
        ...


class InMemoryAccessPolicy:
    """Role grant table with wildcard support."""

    def __init__(self, role_grants: dict[Role, set[str]] | None = None) -> None:
        self._role_grants = role_grants or DEFAULT_ROLE_GRANTS

    def can_perform(self, role: Role | str | None, action: Action, scope: str | None, resource: str = "*") -> bool:
        resolved_role = _coerce_role(role)
        if resolved_role is None or not scope:
            return False

        if scope == ALL_STORES:
            if resolved_role != Role.ADMIN:
                return False
            if action not in AGGREGATE_ACTIONS and resource not in AGGREGATE_CREATABLE_RESOURCES:
                return False

        if resource in ADMIN_ONLY_RESOURCES and resolved_role != Role.ADMIN and action != Action.VIEW:
            return False

        required = f"{resource}.{action.value}"
        grants = self._role_grants.get(resolved_role, set())
        return any(self._matches(grant, required) for grant in grants)

    def visible_modules(self, role: Role | str | None, scope: str | None) -> tuple[str, ...]:
        resolved_role = _coerce_role(role)
        if resolved_role is None or not scope:
            return ()
        if scope == ALL_STORES:
            return AGGREGATE_MODULES if resolved_role == Role.ADMIN else ()
        return TENANT_MODULES

    @staticmethod
    def _matches(grant: str, required: str) -> bool:
        if grant in {"*", required}:
            return True

        if grant.startswith("*."):
            return required.endswith(grant[1:])

        if grant.endswith(".*"):
            return required.startswith(grant[:-1])

        return False


def _coerce_role(role: Role | str | None) -> Role | None:
    if role is None:
        return None
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).upper())
    except ValueError:
        return None


_ACCESS_POLICY: AccessPolicy = InMemoryAccessPolicy()
_POLICY_LOCK = Lock()


def get_access_policy() -> AccessPolicy:
    """Get the active access policy instance."""

    return _ACCESS_POLICY


def set_access_policy(policy: AccessPolicy) -> None:
    """Set the active access policy instance."""

    global _ACCESS_POLICY
    with _POLICY_LOCK:
        _ACCESS_POLICY = policy


def can_perform(role: Role | str | None, action: Action, scope: str | None, resource: str = "*") -> bool:
    return get_access_policy().can_perform(role, action, scope, resource)
