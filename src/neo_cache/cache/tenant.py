"""Tenant-bound cache facade."""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .. import keys
from .entities import BulkDeleteResult, CacheStats
from .manager import CacheManager

GENERIC_NAMESPACE = "generic"


class TenantCache:
    """
    Convenience wrapper binding one tenant id to the cache manager.

    Adds typed accessors for user and organization data and filtered lists;
    every operation is delegated to CacheManager and neo_cache.keys.
    """

    def __init__(self, tenant_id: str, manager: CacheManager):
        self.tenant_id = keys.validate_segment(tenant_id, "tenant_id")
        self.manager = manager
        self.default_ttl = manager.settings.cache_default_ttl
        self.list_ttl = manager.settings.cache_list_ttl

    def __repr__(self) -> str:
        return f"TenantCache(tenant_id={self.tenant_id!r})"

    # Generic entries

    async def get(self, key: str) -> Optional[Any]:
        return await self.manager.get(self.tenant_id, GENERIC_NAMESPACE, key)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        return await self.manager.set(self.tenant_id, GENERIC_NAMESPACE, key, value, ttl or self.default_ttl, tags)

    async def delete(self, key: str) -> bool:
        return await self.manager.delete(self.tenant_id, GENERIC_NAMESPACE, key)

    async def exists(self, key: str) -> bool:
        return await self.manager.exists_at(self.tenant_id, keys.cache_key(self.tenant_id, GENERIC_NAMESPACE, key))

    # Users

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.manager.get_at(self.tenant_id, keys.user_profile_key(self.tenant_id, user_id))

    async def set_user_profile(self, user_id: str, profile: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        return await self.manager.set_at(
            self.tenant_id, keys.user_profile_key(self.tenant_id, user_id), dict(profile), ttl or self.default_ttl
        )

    async def get_user_permissions(self, user_id: str) -> Optional[List[str]]:
        return await self.manager.get_at(self.tenant_id, keys.user_permissions_key(self.tenant_id, user_id))

    async def set_user_permissions(self, user_id: str, permissions: Iterable[str], ttl: Optional[int] = None) -> bool:
        return await self.manager.set_at(
            self.tenant_id,
            keys.user_permissions_key(self.tenant_id, user_id),
            list(permissions),
            ttl or self.default_ttl,
        )

    # Organization

    async def get_organization_profile(self) -> Optional[Dict[str, Any]]:
        return await self.manager.get_at(self.tenant_id, keys.organization_profile_key(self.tenant_id))

    async def set_organization_profile(self, profile: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        return await self.manager.set_at(
            self.tenant_id, keys.organization_profile_key(self.tenant_id), dict(profile), ttl or self.default_ttl
        )

    async def get_organization_users(self) -> Optional[List[Any]]:
        return await self.manager.get_at(self.tenant_id, keys.organization_users_key(self.tenant_id))

    async def set_organization_users(self, users: Iterable[Any], ttl: Optional[int] = None) -> bool:
        return await self.manager.set_at(
            self.tenant_id, keys.organization_users_key(self.tenant_id), list(users), ttl or self.default_ttl
        )

    # Lists

    def _list_key(self, list_type: str, filters: Optional[Mapping[str, Any]]) -> str:
        return keys.list_cache_key(self.tenant_id, list_type, keys.serialize_filters(filters))

    async def get_list(self, list_type: str, filters: Optional[Mapping[str, Any]] = None) -> Optional[List[Any]]:
        """Get a cached list; equal filters resolve to the same entry."""
        return await self.manager.get_at(self.tenant_id, self._list_key(list_type, filters))

    async def set_list(
        self,
        list_type: str,
        data: Iterable[Any],
        filters: Optional[Mapping[str, Any]] = None,
        ttl: Optional[int] = None,
    ) -> bool:
        """Cache a list, by default for the shorter list TTL."""
        return await self.manager.set_at(
            self.tenant_id, self._list_key(list_type, filters), list(data), ttl or self.list_ttl
        )

    # Invalidation

    async def invalidate_user_cache(self, user_id: str) -> BulkDeleteResult:
        """Remove the cached profile and permissions of one user."""
        return await self.manager.delete_keys(
            self.tenant_id,
            [keys.user_profile_key(self.tenant_id, user_id), keys.user_permissions_key(self.tenant_id, user_id)],
            "User cache invalidation",
        )

    async def invalidate_organization_cache(self) -> BulkDeleteResult:
        return await self.manager.delete_by_patterns(
            self.tenant_id, [keys.organization_pattern(self.tenant_id)], "Organization cache invalidation"
        )

    async def invalidate_list_cache(self, list_type: Optional[str] = None) -> BulkDeleteResult:
        """Remove every variant of one list type, or every cached list."""
        return await self.manager.delete_by_patterns(
            self.tenant_id, keys.list_cache_patterns(self.tenant_id, list_type), "List cache invalidation"
        )

    async def invalidate_by_tags(self, tags: Iterable[str]) -> int:
        return await self.manager.invalidate_by_tags(self.tenant_id, tags)

    async def clear_tenant_cache(self) -> BulkDeleteResult:
        """Remove every entry, facade key and tag set owned by the tenant."""
        return await self.manager.delete_by_patterns(
            self.tenant_id,
            [
                keys.cache_tenant_pattern(self.tenant_id),
                keys.tag_pattern(self.tenant_id),
                keys.user_pattern(self.tenant_id),
                keys.organization_pattern(self.tenant_id),
                *keys.list_cache_patterns(self.tenant_id),
            ],
            "Tenant cache clearing",
        )

    async def get_stats(self) -> CacheStats:
        return await self.manager.get_stats(self.tenant_id)
