from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from kitchenunity.api.errors import error_response
from kitchenunity.core.config import get_settings
from kitchenunity.metrics import observe_webhook_lead


WINDOW_SECONDS = 60
HOOKS_PREFIX = "/hooks/"
MAX_BUCKETS = 10_000


@dataclass
class _Bucket:
    tokens: float
    refilled_at: float


class StoreTokenBuckets:
    """One token bucket per store id, refilled continuously over the window.

    Buckets are kept in least-recently-used order. A bucket untouched for a whole
    window has refilled to capacity, so it is dropped; past ``max_buckets`` the
    least recently used bucket is dropped as well.
    """

    def __init__(
        self,
        window_seconds: int = WINDOW_SECONDS,
        *,
        max_buckets: int = MAX_BUCKETS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_buckets = max_buckets
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: OrderedDict[str, _Bucket] = OrderedDict()

    def __len__(self) -> int:
        return len(self._buckets)

    def acquire(self, store_id: str, capacity: int) -> int:
        """Take one token for ``store_id``; returns 0, or the seconds to wait when empty."""

        if capacity <= 0:
            return self.window_seconds

        per_second = capacity / self.window_seconds
        now = self._clock()
        with self._lock:
            self._evict_idle(now)
            bucket = self._buckets.get(store_id)
            if bucket is None:
                while self._buckets and len(self._buckets) >= self.max_buckets:
                    self._buckets.popitem(last=False)
                bucket = self._buckets[store_id] = _Bucket(tokens=float(capacity), refilled_at=now)
            else:
                self._buckets.move_to_end(store_id)
            bucket.tokens = min(float(capacity), bucket.tokens + (now - bucket.refilled_at) * per_second)
            bucket.refilled_at = now
            if bucket.tokens < 1.0:
                return max(1, math.ceil((1.0 - bucket.tokens) / per_second))
            bucket.tokens -= 1.0
            return 0

    def _evict_idle(self, now: float) -> None:
        while self._buckets:
            oldest = next(iter(self._buckets.values()))
            if now - oldest.refilled_at < self.window_seconds:
                return
            self._buckets.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_buckets = StoreTokenBuckets()


class WebhookRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle the public lead-capture hooks per target store."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        if (
            settings.rate_limit_disabled
            or request.method != "POST"
            or not request.url.path.startswith(HOOKS_PREFIX)
        ):
            return await call_next(request)

        store_id = request.query_params.get("storeId") or "unknown"
        retry_after = _buckets.acquire(store_id, settings.rate_limit_webhook_per_minute)
        if not retry_after:
            return await call_next(request)

        observe_webhook_lead("rate_limited")
        response = error_response(
            request,
            status_code=429,
            code="RATE_LIMITED",
            message="Too many submissions for this store",
            details={"store_id": store_id},
        )
        response.headers["Retry-After"] = str(retry_after)
        return response


def reset_rate_limiter() -> None:
    _buckets.clear()
