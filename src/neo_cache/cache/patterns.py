"""
Cache-aside, refresh-ahead and write-through/behind helpers.

These compose the CacheManager with caller-supplied coroutines. Only the
caller's own fetch and writer failures reach the caller, and only when the
cache has nothing authoritative to fall back to.
"""
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from loguru import logger

from .. import keys
from ..tasks import BackgroundTasks
from .manager import CacheManager

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]
WriterFn = Callable[[T], Awaitable[Any]]

DEFAULT_REFRESH_TTL = 300
DEFAULT_REFRESH_THRESHOLD = 0.8


class CachePatterns:
    """Higher-order caching helpers bound to one CacheManager."""

    def __init__(self, manager: CacheManager, tasks: Optional[BackgroundTasks] = None):
        self.manager = manager
        self.tasks = tasks if tasks is not None else manager.tasks

    async def cache_or_fetch(
        self,
        tenant_id: str,
        namespace: str,
        key: str,
        fetch_fn: FetchFn,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> T:
        """
        Return the cached value, or fetch, store and return it.

        A cached None counts as a hit. Errors raised by fetch_fn propagate
        and nothing is cached.
        """
        full_key = keys.cache_key(tenant_id, namespace, key)
        entry = await self.manager.read_entry(tenant_id, full_key)
        if entry is not None:
            return entry.data

        value = await fetch_fn()
        await self.manager.set_at(tenant_id, full_key, value, ttl, tags)
        return value

    async def cache_with_refresh_ahead(
        self,
        tenant_id: str,
        namespace: str,
        key: str,
        fetch_fn: FetchFn,
        ttl: int = DEFAULT_REFRESH_TTL,
        refresh_threshold: float = DEFAULT_REFRESH_THRESHOLD,
        tags: Optional[Iterable[str]] = None,
    ) -> T:
        """
        Serve cached values while refreshing them before they expire.

        When the remaining lifetime of a hit drops below
        ``ttl * (1 - refresh_threshold)`` a background refresh is spawned and
        the current value is returned without waiting for it. Refresh
        failures are logged only. A miss fetches synchronously.

        Args:
            tenant_id: Owning tenant
            namespace: Grouping label within the tenant
            key: Entry key
            fetch_fn: Coroutine function producing a fresh value
            ttl: Entry TTL in seconds
            refresh_threshold: Fraction of the TTL after which to refresh

        Raises:
            ValueError: If refresh_threshold is outside [0, 1]
        """
        if not 0.0 <= refresh_threshold <= 1.0:
            raise ValueError(f"refresh_threshold must be between 0 and 1, got {refresh_threshold}")

        full_key = keys.cache_key(tenant_id, namespace, key)
        entry = await self.manager.read_entry(tenant_id, full_key)
        if entry is None:
            value = await fetch_fn()
            await self.manager.set_at(tenant_id, full_key, value, ttl, tags)
            return value

        refresh_window_ms = ttl * 1000 * (1 - refresh_threshold)
        if entry.remaining_ms(self.manager.clock()) < refresh_window_ms:
            self._schedule_refresh(tenant_id, full_key, fetch_fn, ttl, tags)
        return entry.data

    def _schedule_refresh(
        self,
        tenant_id: str,
        full_key: str,
        fetch_fn: FetchFn,
        ttl: int,
        tags: Optional[Iterable[str]],
    ) -> None:
        task_name = f"refresh:{full_key}"
        if self.tasks.is_running(task_name):
            logger.debug(f"Refresh already in progress for {full_key}")
            return

        tag_list = list(tags) if tags else None

        async def _refresh() -> None:
            try:
                value = await fetch_fn()
                await self.manager.set_at(tenant_id, full_key, value, ttl, tag_list)
                logger.debug(f"Background refresh completed for {full_key}")
            except Exception as e:
                logger.error(f"Background refresh failed for {full_key} (tenant: {tenant_id}): {e}")

        self.tasks.spawn(_refresh(), name=task_name)

    async def write_through(
        self,
        tenant_id: str,
        namespace: str,
        key: str,
        data: T,
        writer: WriterFn,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> T:
        """Write to the system of record, then update the cache."""
        await writer(data)
        await self.manager.set(tenant_id, namespace, key, data, ttl, tags)
        return data

    async def write_behind(
        self,
        tenant_id: str,
        namespace: str,
        key: str,
        data: T,
        writer: WriterFn,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> T:
        """
        Update the cache now and write to the system of record later.

        A failed deferred write invalidates the cache key so the unpersisted
        value is not served.
        """
        full_key = keys.cache_key(tenant_id, namespace, key)
        await self.manager.set_at(tenant_id, full_key, data, ttl, tags)

        async def _persist() -> None:
            try:
                await writer(data)
            except Exception as e:
                logger.error(f"Write-behind failed for {full_key} (tenant: {tenant_id}): {e}")
                await self.manager.delete_at(tenant_id, full_key)

        self.tasks.spawn(_persist(), name=f"write-behind:{full_key}")
        return data
