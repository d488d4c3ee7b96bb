from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AccessDenied, AuthorizationError, TenantViolation
from kitchenunity.platform.security.policies import (
    ALL_STORES,
    AccessPolicy,
    Action,
    InMemoryAccessPolicy,
    Role,
    can_perform,
    get_access_policy,
    set_access_policy,
)
from kitchenunity.platform.security.scope import (
    apply_store_filter,
    require_read_scope,
    require_scope,
    require_write_scope,
    store_filter_value,
)

__all__ = [
    "ALL_STORES",
    "AccessDenied",
    "AccessPolicy",
    "Action",
    "AuthorizationError",
    "InMemoryAccessPolicy",
    "Role",
    "TenantContext",
    "TenantViolation",
    "apply_store_filter",
    "can_perform",
    "get_access_policy",
    "require_read_scope",
    "require_scope",
    "require_write_scope",
    "set_access_policy",
    "store_filter_value",
]
