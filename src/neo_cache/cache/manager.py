"""
Cache entry manager.

Tenant-isolated get/set/delete of cache entries with TTL bookkeeping, tag
registration and hit/miss metrics. Backend failures are logged, counted as
errors and turned into safe return values; serialization errors are
programming mistakes and propagate.
"""
import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from .. import keys
from ..backends.protocols import BackendClient
from ..config.settings import CacheLayerSettings, get_settings
from ..core.exceptions import BackendError
from ..tasks import BackgroundTasks
from ..utils.clock import Clock, now_ms
from .entities import BulkDeleteResult, CacheEntry, CacheStats
from .metrics import CacheMetrics, CacheOperation
from .tags import TagIndex

DELETE_BATCH_SIZE = 500


class CacheManager:
    """Manages tenant-scoped cache entries on a backend client."""

    def __init__(
        self,
        backend: BackendClient,
        settings: Optional[CacheLayerSettings] = None,
        clock: Clock = now_ms,
        tasks: Optional[BackgroundTasks] = None,
    ):
        """
        Initialize the cache manager.

        Args:
            backend: Remote store client
            settings: Cache settings, defaults to get_settings()
            clock: Millisecond clock, injectable for tests
            tasks: Registry for background work such as stale record cleanup
        """
        self.backend = backend
        self.settings = settings or get_settings()
        self.clock = clock
        self.tasks = tasks if tasks is not None else BackgroundTasks()
        self.default_ttl = self.settings.cache_default_ttl
        self.metrics = CacheMetrics(
            backend,
            enabled=self.settings.cache_metrics_enabled,
            ttl=self.settings.cache_metrics_ttl,
        )
        self.tags = TagIndex(backend)

    def for_tenant(self, tenant_id: str) -> "TenantCache":
        """Bind a TenantCache facade to this manager."""
        from .tenant import TenantCache

        return TenantCache(tenant_id, self)

    # Entry encoding

    def _effective_ttl(self, ttl: Optional[int]) -> int:
        return int(ttl) if ttl else self.default_ttl

    def _prepare(
        self,
        value: Any,
        ttl: Optional[int],
        tags: Optional[Iterable[str]],
        metadata: Optional[Dict[str, Any]],
    ) -> Tuple[str, int, List[str]]:
        effective_ttl = self._effective_ttl(ttl)
        tag_list = list(dict.fromkeys(tags)) if tags else []
        now = self.clock()
        entry = CacheEntry(
            data=value,
            created_at=now,
            expires_at=now + effective_ttl * 1000,
            tags=tag_list or None,
            metadata=metadata,
        )
        return entry.serialize(), effective_ttl, tag_list

    async def _write(
        self,
        tenant_id: str,
        full_key: str,
        payload: str,
        ttl: int,
        tags: List[str],
    ) -> bool:
        try:
            await self.backend.set(full_key, payload, ttl)
        except BackendError as e:
            logger.error(f"Cache set error for key {full_key} (tenant: {tenant_id}): {e}")
            await self.metrics.record(tenant_id, CacheOperation.ERROR)
            return False

        if tags:
            try:
                await self.tags.add(tenant_id, full_key, tags, ttl)
            except BackendError as e:
                # Never keep an entry missing from its tag sets
                logger.error(f"Cache tag registration error for key {full_key} (tenant: {tenant_id}): {e}")
                await self.metrics.record(tenant_id, CacheOperation.ERROR)
                await self._discard(tenant_id, full_key)
                return False

        await self.metrics.record(tenant_id, CacheOperation.SET)
        logger.debug(f"Cache SET: {full_key} (TTL: {ttl}s)")
        return True

    async def _discard(self, tenant_id: str, full_key: str) -> None:
        """Remove a stale, unreadable or partially written record."""
        try:
            await self.backend.delete(full_key)
        except BackendError as e:
            logger.warning(f"Failed to remove cache entry {full_key} (tenant: {tenant_id}): {e}")

    def _discard_later(self, tenant_id: str, full_key: str) -> None:
        """Schedule removal of a stale record without delaying the read."""
        task_name = f"discard:{full_key}"
        if self.tasks.is_running(task_name):
            return
        self.tasks.spawn(self._discard(tenant_id, full_key), name=task_name)

    def _decode(self, raw: Optional[str]) -> Tuple[Optional[CacheEntry], bool]:
        """Decode a raw record; the flag tells whether it must be discarded."""
        if raw is None:
            return None, False
        entry = CacheEntry.deserialize(raw)
        if entry is None or entry.is_expired(self.clock()):
            return None, True
        return entry, False

    # Full-key operations

    async def read_entry(self, tenant_id: str, full_key: str) -> Optional[CacheEntry]:
        """
        Read a cache entry including its bookkeeping fields.

        Expired or undecodable records are counted as misses and deleted in the background.

        Args:
            tenant_id: Owning tenant, used for metrics
            full_key: Key derived by neo_cache.keys

        Returns:
            The entry, or None when absent
        """
        try:
            raw = await self.backend.get(full_key)
        except BackendError as e:
            logger.error(f"Cache get error for key {full_key} (tenant: {tenant_id}): {e}")
            await self.metrics.record(tenant_id, CacheOperation.ERROR)
            return None

        entry, stale = self._decode(raw)
        if stale:
            logger.debug(f"Cache STALE: {full_key}")
            self._discard_later(tenant_id, full_key)
        if entry is None:
            logger.debug(f"Cache MISS: {full_key}")
            await self.metrics.record(tenant_id, CacheOperation.MISS)
            return None

        logger.debug(f"Cache HIT: {full_key}")
        await self.metrics.record(tenant_id, CacheOperation.HIT)
        return entry

    async def get_at(self, tenant_id: str, full_key: str) -> Optional[Any]:
        """Get the payload stored under a derived key."""
        entry = await self.read_entry(tenant_id, full_key)
        return entry.data if entry is not None else None

    async def set_at(
        self,
        tenant_id: str,
        full_key: str,
        value: Any,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Store a payload under a derived key.

        Raises:
            CacheSerializationError: If the value is not JSON-serializable
        """
        payload, effective_ttl, tag_list = self._prepare(value, ttl, tags, metadata)
        return await self._write(tenant_id, full_key, payload, effective_ttl, tag_list)

    async def delete_at(self, tenant_id: str, full_key: str) -> bool:
        """Delete a derived key; deleting an absent key succeeds."""
        try:
            await self.backend.delete(full_key)
        except BackendError as e:
            logger.error(f"Cache delete error for key {full_key} (tenant: {tenant_id}): {e}")
            await self.metrics.record(tenant_id, CacheOperation.ERROR)
            return False

        await self.metrics.record(tenant_id, CacheOperation.DELETE)
        logger.debug(f"Cache DELETE: {full_key}")
        return True

    async def exists_at(self, tenant_id: str, full_key: str) -> bool:
        """Check whether a derived key is physically present."""
        try:
            return await self.backend.exists(full_key)
        except BackendError as e:
            logger.error(f"Cache exists error for key {full_key} (tenant: {tenant_id}): {e}")
            return False

    # Namespaced operations

    async def set(
        self,
        tenant_id: str,
        namespace: str,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set cache value.

        Args:
            tenant_id: Owning tenant
            namespace: Grouping label within the tenant
            key: Entry key within the namespace
            value: JSON-serializable payload
            ttl: Time to live in seconds, defaults to cache_default_ttl
            tags: Tags for group invalidation
            metadata: Optional metadata stored alongside the payload

        Returns:
            True if stored, False on backend failure
        """
        return await self.set_at(tenant_id, keys.cache_key(tenant_id, namespace, key), value, ttl, tags, metadata)

    async def get(self, tenant_id: str, namespace: str, key: str) -> Optional[Any]:
        """
        Get cache value.

        Returns:
            The payload without bookkeeping fields, or None when absent
        """
        return await self.get_at(tenant_id, keys.cache_key(tenant_id, namespace, key))

    async def delete(self, tenant_id: str, namespace: str, key: str) -> bool:
        """Delete cache value. Idempotent."""
        return await self.delete_at(tenant_id, keys.cache_key(tenant_id, namespace, key))

    async def _fetch_many(self, tenant_id: str, full_keys: List[str]) -> List[Optional[str]]:
        if self.backend.capabilities.multi_get:
            try:
                return await self.backend.mget(full_keys)
            except BackendError as e:
                logger.error(f"Cache get_many error (tenant: {tenant_id}, {len(full_keys)} keys): {e}")
                await self.metrics.record(tenant_id, CacheOperation.ERROR)
                return [None] * len(full_keys)

        results = await asyncio.gather(
            *(self.backend.get(full_key) for full_key in full_keys),
            return_exceptions=True,
        )
        values: List[Optional[str]] = []
        errors = 0
        for full_key, result in zip(full_keys, results):
            if isinstance(result, BaseException):
                if not isinstance(result, BackendError):
                    raise result
                logger.error(f"Cache get error for key {full_key} (tenant: {tenant_id}): {result}")
                errors += 1
                values.append(None)
            else:
                values.append(result)
        await self.metrics.record(tenant_id, CacheOperation.ERROR, errors)
        return values

    async def get_many(self, tenant_id: str, namespace: str, cache_keys: List[str]) -> Dict[str, Optional[Any]]:
        """
        Get multiple cache values.

        Returns:
            Mapping of each requested key to its payload or None, in input order
        """
        if not cache_keys:
            return {}
        full_keys = [keys.cache_key(tenant_id, namespace, key) for key in cache_keys]
        raw_values = await self._fetch_many(tenant_id, full_keys)

        result: Dict[str, Optional[Any]] = {}
        hits = misses = 0
        for key, full_key, raw in zip(cache_keys, full_keys, raw_values):
            entry, stale = self._decode(raw)
            if stale:
                self._discard_later(tenant_id, full_key)
            if entry is None:
                misses += 1
                result[key] = None
            else:
                hits += 1
                result[key] = entry.data

        await self.metrics.record(tenant_id, CacheOperation.HIT, hits)
        await self.metrics.record(tenant_id, CacheOperation.MISS, misses)
        return result

    async def set_many(
        self,
        tenant_id: str,
        namespace: str,
        mapping: Mapping[str, Any],
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Set multiple cache values.

        Every value is serialized before anything is written; each entry is
        then written independently.

        Returns:
            Number of entries actually stored

        Raises:
            CacheSerializationError: If any value is not JSON-serializable
        """
        prepared = [
            (keys.cache_key(tenant_id, namespace, key), *self._prepare(value, ttl, tags, None))
            for key, value in mapping.items()
        ]
        results = await asyncio.gather(
            *(
                self._write(tenant_id, full_key, payload, effective_ttl, tag_list)
                for full_key, payload, effective_ttl, tag_list in prepared
            )
        )
        return sum(1 for stored in results if stored)

    # Invalidation

    async def invalidate_by_tags(self, tenant_id: str, tags: Iterable[str]) -> int:
        """
        Invalidate cache by tags.

        Returns:
            Number of cache entries removed
        """
        deleted = await self.tags.invalidate(tenant_id, tags)
        await self.metrics.record(tenant_id, CacheOperation.DELETE, deleted)
        if deleted:
            logger.info(f"Cache INVALIDATE by tags (tenant: {tenant_id}): {deleted} keys")
        return deleted

    async def delete_keys(self, tenant_id: str, full_keys: List[str], operation: str) -> BulkDeleteResult:
        """Delete a known set of derived keys; needs no pattern enumeration."""
        try:
            deleted = await self.backend.delete(*full_keys)
        except BackendError as e:
            logger.error(f"{operation} failed (tenant: {tenant_id}): {e}")
            await self.metrics.record(tenant_id, CacheOperation.ERROR)
            return BulkDeleteResult(deleted=0, supported=True, patterns=list(full_keys))

        await self.metrics.record(tenant_id, CacheOperation.DELETE, deleted)
        if deleted:
            logger.info(f"Cache INVALIDATE: {operation} (tenant: {tenant_id}, {deleted} keys)")
        return BulkDeleteResult(deleted=deleted, supported=True, patterns=list(full_keys))

    async def delete_by_patterns(self, tenant_id: str, patterns: List[str], operation: str) -> BulkDeleteResult:
        """
        Enumerate keys by pattern and delete them in batches.

        Args:
            tenant_id: Owning tenant
            patterns: Tenant-scoped patterns built by neo_cache.keys
            operation: Name used in log messages

        Returns:
            BulkDeleteResult; unsupported when the backend cannot enumerate keys
        """
        if not self.backend.capabilities.pattern_scan:
            logger.warning(
                f"{operation} not supported with the {self.backend.provider} backend "
                f"(no pattern enumeration, tenant: {tenant_id})"
            )
            return BulkDeleteResult.unsupported(patterns)

        deleted = 0
        for pattern in patterns:
            try:
                matched = await self.backend.scan_keys(pattern)
                for start in range(0, len(matched), DELETE_BATCH_SIZE):
                    deleted += await self.backend.delete(*matched[start:start + DELETE_BATCH_SIZE])
            except BackendError as e:
                logger.error(f"{operation} failed for pattern {pattern} (tenant: {tenant_id}): {e}")
                await self.metrics.record(tenant_id, CacheOperation.ERROR)

        if deleted:
            logger.info(f"Cache INVALIDATE: {operation} (tenant: {tenant_id}, {deleted} keys)")
        return BulkDeleteResult(deleted=deleted, supported=True, patterns=list(patterns))

    async def clear_namespace(self, tenant_id: str, namespace: str) -> BulkDeleteResult:
        """Clear all cache entries of a tenant namespace."""
        return await self.delete_by_patterns(
            tenant_id, [keys.cache_namespace_pattern(tenant_id, namespace)], "Namespace cache clearing"
        )

    async def clear_tenant(self, tenant_id: str) -> BulkDeleteResult:
        """Clear all cache entries of a tenant."""
        return await self.delete_by_patterns(tenant_id, [keys.cache_tenant_pattern(tenant_id)], "Tenant cache clearing")

    # Stats

    async def get_stats(self, tenant_id: str) -> CacheStats:
        """Get cache statistics for a tenant."""
        return await self.metrics.get_stats(tenant_id)
