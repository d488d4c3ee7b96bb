from __future__ import annotations

from typing import Any


class RecordError(Exception):
    """Base error for entity store and lifecycle failures."""


class ValidationError(RecordError):
    """Raised before any I/O when a draft or partial update is not acceptable."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or [message]
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: Any, *, subject: str) -> ValidationError:
        messages = []
        for item in exc.errors():
            location = ".".join(str(part) for part in item.get("loc", ()))
            messages.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
        return cls(f"Invalid {subject}", messages)


class PersistenceError(RecordError):
    """Raised when the store of record rejects or fails a call."""


class RecordNotFound(PersistenceError):
    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} '{entity_id}' not found")


class ConcurrencyConflict(PersistenceError):
    def __init__(self, kind: str, entity_id: str, expected_version: int) -> None:
        self.kind = kind
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(f"{kind} '{entity_id}' was modified concurrently (expected row_version {expected_version})")


class StaleResultError(RecordError):
    """Raised when a response arrives after the tenant context it was issued under changed."""

    def __init__(self, kind: str, store_id: str | None) -> None:
        self.kind = kind
        self.store_id = store_id
        super().__init__(f"Discarded stale {kind} result for store '{store_id}'")


class InvalidTransition(RecordError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"invalid order transition {current} -> {target}")


class LifecycleError(RecordError):
    """A compound transition failed part way; ``written`` lists what persisted."""

    def __init__(self, transition: str, message: str, *, written: dict[str, Any] | None = None) -> None:
        self.transition = transition
        self.written = written or {}
        super().__init__(message)
