"""
Tag-based invalidation index.

Each (tenant, tag) pair owns a set of full cache keys. Writing a tagged entry
adds its key to every tag set and raises the set's TTL to at least the
entry's; invalidating a tag deletes every member key and then the set itself.
Members may outlive their entries until the set expires, so invalidation
tolerates keys that are already gone.
"""
import asyncio
from typing import Iterable, List

from loguru import logger

from .. import keys
from ..backends.protocols import BackendClient
from ..core.exceptions import BackendError


def _belongs_to(tenant_id: str, full_key: str) -> bool:
    parts = full_key.split(keys.SEPARATOR, 2)
    return len(parts) == 3 and parts[1] == tenant_id


class TagIndex:
    """Maintains tag -> member-key sets for one backend."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def add(self, tenant_id: str, full_key: str, tags: Iterable[str], ttl: int) -> None:
        """
        Register a cache key under each tag.

        Args:
            tenant_id: Owning tenant
            full_key: Derived key of the cache entry
            tags: Tags to register the key under
            ttl: Entry TTL in seconds; tag sets live at least this long

        Raises:
            BackendError: If the store rejects a command
        """
        for tag in dict.fromkeys(tags):
            tag_key = keys.cache_tag_key(tenant_id, tag)
            await self.backend.sadd(tag_key, full_key)
            current_ttl = await self.backend.ttl(tag_key)
            if current_ttl < ttl:
                await self.backend.expire(tag_key, ttl)

    async def members(self, tenant_id: str, tag: str) -> List[str]:
        """Member keys of a tag that belong to the tenant."""
        tag_key = keys.cache_tag_key(tenant_id, tag)
        members = await self.backend.smembers(tag_key)
        return sorted(member for member in members if _belongs_to(tenant_id, member))

    async def invalidate(self, tenant_id: str, tags: Iterable[str]) -> int:
        """
        Delete every entry registered under the given tags.

        Each tag is processed independently; a failing tag is logged and
        skipped.

        Returns:
            Number of cache keys actually removed
        """
        deleted = 0
        for tag in dict.fromkeys(tags):
            try:
                deleted += await self._invalidate_tag(tenant_id, tag)
            except BackendError as e:
                logger.error(f"Failed to invalidate cache tag {tag} (tenant: {tenant_id}): {e}")
        return deleted

    async def _invalidate_tag(self, tenant_id: str, tag: str) -> int:
        member_keys = await self.members(tenant_id, tag)
        deleted = 0
        if member_keys:
            if self.backend.capabilities.pipeline:
                deleted = await self.backend.delete(*member_keys)
            else:
                results = await asyncio.gather(
                    *(self.backend.delete(member) for member in member_keys),
                    return_exceptions=True,
                )
                for member, result in zip(member_keys, results):
                    if isinstance(result, BaseException):
                        if not isinstance(result, BackendError):
                            raise result
                        logger.warning(f"Failed to delete tagged key {member} (tenant: {tenant_id}): {result}")
                        continue
                    deleted += result
        await self.backend.delete(keys.cache_tag_key(tenant_id, tag))
        logger.debug(f"Cache tag invalidated: {tag} (tenant: {tenant_id}, {deleted} keys)")
        return deleted
