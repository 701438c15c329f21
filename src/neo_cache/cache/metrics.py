"""
Per-tenant cache metrics.

Counters live in the hash ``cache_metrics:<tenant>``. Every increment
refreshes the hash TTL, giving a rolling window; nothing resets the counters
explicitly.
"""
from enum import Enum

from loguru import logger

from .. import keys
from ..backends.protocols import BackendClient
from ..core.exceptions import BackendError
from .entities import CacheStats

DEFAULT_METRICS_TTL = 24 * 60 * 60


class CacheOperation(str, Enum):
    """Counted cache outcomes; values are the hash field names."""
    HIT = "hits"
    MISS = "misses"
    SET = "sets"
    DELETE = "deletes"
    ERROR = "errors"


class CacheMetrics:
    """Records and reads per-tenant cache counters."""

    def __init__(self, backend: BackendClient, enabled: bool = True, ttl: int = DEFAULT_METRICS_TTL):
        self.backend = backend
        self.enabled = enabled
        self.ttl = ttl

    async def record(self, tenant_id: str, operation: CacheOperation, amount: int = 1) -> None:
        """Increment one counter. Failures are logged and never raised."""
        if not self.enabled or amount <= 0:
            return
        metrics_key = keys.metrics_key(tenant_id)
        try:
            await self.backend.hincrby(metrics_key, operation.value, amount)
            await self.backend.expire(metrics_key, self.ttl)
        except BackendError as e:
            logger.warning(f"Failed to update cache metrics (tenant: {tenant_id}, op: {operation.value}): {e}")

    async def get_stats(self, tenant_id: str) -> CacheStats:
        """Read the counters for a tenant, zeros on failure."""
        try:
            raw = await self.backend.hgetall(keys.metrics_key(tenant_id))
        except BackendError as e:
            logger.error(f"Failed to get cache stats (tenant: {tenant_id}): {e}")
            return CacheStats()

        def _count(name: str) -> int:
            try:
                return int(raw.get(name) or 0)
            except (TypeError, ValueError):
                return 0

        return CacheStats(
            hits=_count(CacheOperation.HIT.value),
            misses=_count(CacheOperation.MISS.value),
            sets=_count(CacheOperation.SET.value),
            deletes=_count(CacheOperation.DELETE.value),
            errors=_count(CacheOperation.ERROR.value),
        )
