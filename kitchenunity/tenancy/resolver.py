"""Effective-tenant resolution.

Everything here is pure: hostname, session claims, stored profile and the
known stores go in, a ``TenantResolution`` comes out. An unrecognized
production host never falls back to an arbitrary store.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

from kitchenunity.platform.security.errors import AccessDenied
from kitchenunity.platform.security.policies import ALL_STORES, Role
from kitchenunity.tenancy.schemas import ProfileRead, ProfileRole, StoreRead, StoreStatus

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})
RESERVED_SUBDOMAINS = frozenset({"www"})


@dataclass(frozen=True, slots=True)
class HostRules:
    root_domain: str = "kitchenunity.com"
    demo_store_id: str = "store-1"
    dev_host_patterns: tuple[str, ...] = ("web-platform", "stackblitz", "github.dev")
    dev_hosts_enabled: bool = True
    first_store_fallback: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> HostRules:
        return cls(
            root_domain=settings.platform_root_domain.lower(),
            demo_store_id=settings.demo_store_id,
            dev_host_patterns=tuple(settings.dev_host_patterns),
            dev_hosts_enabled=settings.development_hosts_allowed,
            first_store_fallback=settings.tenant_first_store_fallback,
        )


@dataclass(frozen=True, slots=True)
class SessionClaims:
    user_id: str
    email: str | None = None
    store_id: str | None = None


@dataclass(frozen=True, slots=True)
class TenantResolution:
    store_id: str | None
    role: Role | None
    host_store_id: str | None
    source: str

    @property
    def resolved(self) -> bool:
        return bool(self.store_id)


def normalize_hostname(hostname: str | None) -> str:
    host = (hostname or "").strip().lower()
    if host.startswith("["):
        # Bracketed IPv6 literal, optionally with a port.
        return host[1 : host.find("]")] if "]" in host else host.strip("[")
    if host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host.rstrip(".")


def is_development_host(hostname: str | None, rules: HostRules) -> bool:
    host = normalize_hostname(hostname)
    if not host or host in LOOPBACK_HOSTS:
        return True
    return any(pattern and pattern in host for pattern in rules.dev_host_patterns)


def resolve_domain_to_store_key(hostname: str | None, rules: HostRules | None = None) -> str | None:
    """Map a request host to a store key, or None when the host names no tenant."""

    rules = rules or HostRules()
    host = normalize_hostname(hostname)

    if rules.dev_hosts_enabled and is_development_host(host, rules):
        return rules.demo_store_id
    if not host or host in LOOPBACK_HOSTS:
        return None

    root = rules.root_domain
    if root and (host == root or host.endswith(f".{root}")):
        prefix = host[: -len(root)].rstrip(".")
        if not prefix:
            return None
        key = prefix.split(".")[0]
        return None if key in RESERVED_SUBDOMAINS else key

    # Any other domain: the first label names the store.
    parts = host.split(".")
    if len(parts) < 2 or not parts[0] or parts[0] in RESERVED_SUBDOMAINS:
        return None
    return parts[0]


def match_store(key: str | None, stores: Sequence[StoreRead]) -> StoreRead | None:
    if not key:
        return None
    for store in stores:
        if store.id == key or store.domain == key:
            return store
    return None


def role_for_profile(profile: ProfileRead | None) -> Role:
    if profile is not None and profile.role == ProfileRole.SUPER_ADMIN:
        return Role.ADMIN
    return Role.CUSTOMER


def resolve_tenant(
    hostname: str | None,
    session: SessionClaims | None,
    profile: ProfileRead | None,
    stores: Sequence[StoreRead] = (),
    *,
    selected_admin_store_id: str | None = None,
    rules: HostRules | None = None,
) -> TenantResolution:
    rules = rules or HostRules()

    host_key = resolve_domain_to_store_key(hostname, rules)
    host_store = match_store(host_key, stores)
    host_store_id = host_store.id if host_store is not None else host_key
    source = "host" if host_store_id else "unresolved"

    if session is None:
        return TenantResolution(store_id=None, role=None, host_store_id=host_store_id, source="unauthenticated")

    claimed_store_id = (profile.store_id if profile is not None else None) or session.store_id
    if claimed_store_id:
        host_store_id = claimed_store_id
        source = "profile"

    if not host_store_id and rules.first_store_fallback and stores:
        host_store_id = stores[0].id
        source = "fallback"

    role = role_for_profile(profile)
    if role == Role.ADMIN:
        return select_admin_store(
            TenantResolution(store_id=ALL_STORES, role=role, host_store_id=host_store_id, source="admin"),
            selected_admin_store_id,
            stores,
        )

    if host_store_id and stores:
        store = match_store(host_store_id, stores)
        if store is None:
            return TenantResolution(store_id=None, role=role, host_store_id=host_store_id, source="unknown_store")
        if store.status == StoreStatus.SUSPENDED:
            return TenantResolution(store_id=None, role=role, host_store_id=store.id, source="store_suspended")
        host_store_id = store.id

    return TenantResolution(store_id=host_store_id or None, role=role, host_store_id=host_store_id, source=source)


def select_admin_store(
    resolution: TenantResolution,
    store_id: str | None,
    stores: Sequence[StoreRead] = (),
) -> TenantResolution:
    """Narrow an Admin's aggregate context to one store, or widen it back to ``"all"``."""

    if resolution.role != Role.ADMIN:
        raise AccessDenied(resolution.role, "select", "tenancy.store")
    if not store_id or store_id == ALL_STORES:
        return replace(resolution, store_id=ALL_STORES, source="admin")
    if stores:
        store = match_store(store_id, stores)
        if store is None:
            return replace(resolution, store_id=None, source="unknown_store")
        store_id = store.id
    return replace(resolution, store_id=store_id, source="admin_selected")
