"""Cache feature for neo-cache.

- entities: cache entry, stats and bulk delete result
- manager: tenant-scoped entry manager with metrics
- tags: tag -> key invalidation index
- patterns: cache-aside, refresh-ahead and write-through/behind helpers
- tenant: tenant-bound facade
"""

from .entities import BulkDeleteResult, CacheEntry, CacheStats
from .metrics import CacheMetrics, CacheOperation
from .tags import TagIndex
from .manager import CacheManager
from .patterns import CachePatterns
from .tenant import TenantCache

__all__ = [
    # Entities
    "CacheEntry",
    "CacheStats",
    "BulkDeleteResult",

    # Services
    "CacheManager",
    "CacheMetrics",
    "CacheOperation",
    "TagIndex",
    "CachePatterns",

    # Facade
    "TenantCache",
]
