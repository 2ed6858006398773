"""Redis-backed cache for computed reports.

Latency optimization only: entries expire through Redis TTLs and nothing
relies on them for correctness. A Redis outage degrades to computing every
report. Keys always carry the team id so tenants never share an entry, and
every API instance sees the same entries and invalidations.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import date
from typing import Any, TypeVar

import redis

from app.core.config import get_settings
from app.core.metrics import errors_total, report_cache_hits_total, report_cache_misses_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_NAMESPACE = "profit-dashboard"


class ReportCache:
    """JSON report payloads in Redis under `{namespace}:{key}`.

    The client is created from settings.redis_url on first use unless one is
    passed in (tests pass a fake client).
    """

    def __init__(self, client: redis.Redis | None = None, namespace: str = KEY_NAMESPACE):
        self._client = client
        self.namespace = namespace

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(get_settings().redis_url, decode_responses=True)
        return self._client

    def use_client(self, client: redis.Redis | None) -> None:
        """Swap the Redis client (None = rebuild from settings on next use)."""
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Any | None:
        """Return cached value or None if missing, expired or Redis is down."""
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as e:
            self._report_failure("get", key, e)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value for ttl_seconds (non-positive TTL stores nothing)."""
        if ttl_seconds <= 0:
            return
        payload = json.dumps(value, default=str)
        try:
            self.client.setex(self._key(key), int(ttl_seconds), payload)
        except redis.RedisError as e:
            self._report_failure("set", key, e)

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def delete_prefix(self, prefix: str) -> int:
        """Delete all keys starting with prefix. Returns number removed.

        Redis errors propagate: a failed invalidation must not look successful.
        """
        keys = list(self.client.scan_iter(match=f"{self._key(prefix)}*", count=500))
        if not keys:
            return 0
        return int(self.client.delete(*keys))

    def clear(self) -> int:
        """Drop every entry of this namespace."""
        return self.delete_prefix("")

    def size(self) -> int:
        return sum(1 for _ in self.client.scan_iter(match=f"{self.namespace}:*", count=500))

    def ping(self) -> bool:
        return bool(self.client.ping())

    def get_or_compute(
        self, key: str, ttl_seconds: int, compute: Callable[[], T], *, report: str = "unknown"
    ) -> T:
        """Return cached value for key or compute, store and return it.

        Concurrent misses may compute twice; the last writer wins.
        """
        cached = self.get(key)
        if cached is not None:
            report_cache_hits_total.labels(report=report).inc()
            return cached

        report_cache_misses_total.labels(report=report).inc()
        value = compute()
        self.set(key, value, ttl_seconds)
        return value

    def _report_failure(self, operation: str, key: str, error: redis.RedisError) -> None:
        errors_total.labels(error_type=type(error).__name__, component="report_cache").inc()
        logger.warning(
            "report_cache_unavailable",
            extra={"operation": operation, "key": key, "error": str(error)},
        )


def report_cache_key(
    report: str, team_id: int, start: date, end: date, store_id: int | None = None
) -> str:
    """Build cache key `{report}:{team}:{start}:{end}:{store|all}`."""
    store_part = str(store_id) if store_id is not None else "all"
    return f"{report}:{team_id}:{start.isoformat()}:{end.isoformat()}:{store_part}"


def team_prefixes(team_id: int, reports: tuple[str, ...]) -> list[str]:
    """Key prefixes covering every cached report of a team."""
    return [f"{report}:{team_id}:" for report in reports]


# Shared across the process; the client connects lazily
report_cache = ReportCache()


__all__ = ["KEY_NAMESPACE", "ReportCache", "report_cache", "report_cache_key", "team_prefixes"]
