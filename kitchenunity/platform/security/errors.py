from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for tenant scope and role policy failures."""


class TenantViolation(AuthorizationError):
    """Raised when an operation runs without a usable effective store id."""

    def __init__(self, operation: str, message: str | None = None, *, store_id: str | None = None) -> None:
        self.operation = operation
        self.store_id = store_id
        super().__init__(message or f"Tenant context required for '{operation}'")


class AccessDenied(AuthorizationError):
    """Raised when the actor's role does not grant the requested action."""

    def __init__(self, role: str | None, action: str, resource: str) -> None:
        self.role = role
        self.action = action
        self.resource = resource
        super().__init__(f"Role '{role}' may not {action} '{resource}'")
