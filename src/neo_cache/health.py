"""
Health and stats reporting.

Connectivity probing of the remote store and per-tenant cache counters for
operational callers. Nothing here raises on backend failure.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from .backends.protocols import BackendClient
from .cache.entities import CacheStats
from .cache.manager import CacheManager
from .core.exceptions import BackendError


@dataclass(frozen=True)
class HealthStatus:
    """Outcome of a connectivity check."""
    connected: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"connected": self.connected}
        if self.error:
            result["error"] = self.error
        return result


class HealthReporter:
    """Reports store connectivity and tenant cache counters."""

    def __init__(self, backend: BackendClient, manager: Optional[CacheManager] = None):
        self.backend = backend
        self.manager = manager

    async def ping(self) -> HealthStatus:
        """Check connectivity to the remote store."""
        try:
            connected = await self.backend.ping()
        except BackendError as e:
            logger.error(f"Redis health check failed ({self.backend.provider}): {e}")
            return HealthStatus(connected=False, error=str(e))

        if not connected:
            return HealthStatus(connected=False, error="Unexpected PING response")
        return HealthStatus(connected=True)

    async def info(self) -> Dict[str, Any]:
        """
        Describe the backend.

        The REST backend reports its masked endpoint URL; the native backend
        adds host, port and server metadata when reachable.
        """
        status = await self.ping()
        result: Dict[str, Any] = {"provider": self.backend.provider, **status.to_dict()}
        if not status.connected:
            return result

        try:
            result.update(await self.backend.info())
        except BackendError as e:
            logger.warning(f"Failed to read Redis info ({self.backend.provider}): {e}")
            result["error"] = str(e)
        return result

    async def tenant_stats(self, tenant_id: str) -> CacheStats:
        """Cache counters for a tenant, zeros without a cache manager."""
        if self.manager is None:
            return CacheStats()
        return await self.manager.get_stats(tenant_id)
