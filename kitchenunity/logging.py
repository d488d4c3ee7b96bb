from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from kitchenunity.context import get_correlation_id, get_store_id
from kitchenunity.core.config import get_settings


MAX_ERROR_CHARS = 500

# Extras copied into "fields"; anything else passed through ``extra=`` is dropped.
LOGGED_FIELDS = frozenset(
    {
        "entity_kind",
        "entity_id",
        "operation",
        "transition",
        "event_name",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "error",
    }
)

_base_factory = logging.getLogRecordFactory()


def _stamp_correlation_id(*args: Any, **kwargs: Any) -> logging.LogRecord:
    # store_id is not stamped here: callers pass it through ``extra=`` and
    # LogRecord refuses to overwrite an existing attribute.
    record = _base_factory(*args, **kwargs)
    if getattr(record, "correlation_id", None) is None:
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, tagged with the request's tenant and correlation id."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key in LOGGED_FIELDS and value is not None
        }
        error = fields.get("error")
        if isinstance(error, str) and len(error) > MAX_ERROR_CHARS:
            fields["error"] = error[:MAX_ERROR_CHARS]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
                "store_id": getattr(record, "store_id", None) or get_store_id(),
                "fields": fields,
            },
            default=str,
        )


def configure_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_kitchenunity_configured", False):
        return

    resolved = logging.getLevelName((level or get_settings().log_level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved)
    logging.setLogRecordFactory(_stamp_correlation_id)
    root_logger._kitchenunity_configured = True  # type: ignore[attr-defined]
