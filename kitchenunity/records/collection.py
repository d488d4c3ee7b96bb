"""Pure reducers over a local entity collection.

Each function returns a new list and never mutates its input, so a caller can
swap the result in only after the remote write succeeded.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

T = TypeVar("T")


def sort_entities(items: Sequence[T], order_by: str, descending: bool) -> list[T]:
    return sorted(items, key=lambda item: getattr(item, order_by), reverse=descending)


def prepend(items: Sequence[T], entity: T) -> list[T]:
    return [entity, *items]


def replace(items: Sequence[T], entity: Any) -> list[T]:
    return [entity if getattr(item, "id") == entity.id else item for item in items]


def remove(items: Sequence[T], entity_id: str) -> list[T]:
    return [item for item in items if getattr(item, "id") != entity_id]


def upsert(items: Sequence[T], entity: Any, order_by: str, descending: bool) -> list[T]:
    if any(getattr(item, "id") == entity.id for item in items):
        return replace(items, entity)
    return sort_entities([*items, entity], order_by, descending)


def find(items: Sequence[T], entity_id: str) -> T | None:
    for item in items:
        if getattr(item, "id") == entity_id:
            return item
    return None
