from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from kitchenunity.context import get_correlation_id

Snapshot = dict[str, Any]

# In-process trail of the most recent entries; older ones are dropped.
AUDIT_BUFFER_SIZE = 1000
audit_entries: deque[dict[str, Any]] = deque(maxlen=AUDIT_BUFFER_SIZE)


def changed_fields(before: Snapshot | None, after: Snapshot | None) -> list[str]:
    """Keys whose value differs between two snapshots, ignoring bookkeeping columns."""

    if before is None or after is None:
        return []
    ignored = {"updated_at", "row_version"}
    keys = (set(before) | set(after)) - ignored
    return sorted(key for key in keys if before.get(key) != after.get(key))


def record(
    *,
    actor_user_id: str,
    store_id: str | None,
    entity_type: str,
    entity_id: str,
    action: str,
    before: Snapshot | None,
    after: Snapshot | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    entry = {
        "id": str(uuid.uuid4()),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": actor_user_id,
        "store_id": store_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "changes": changed_fields(before, after),
        "correlation_id": correlation_id or get_correlation_id(),
    }
    audit_entries.append(entry)
    return entry


def entries_for(entity_id: str, *, store_id: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["entity_id"] == entity_id and (store_id is None or entry["store_id"] == store_id)
    ]
