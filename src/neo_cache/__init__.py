"""Neo-Cache - Multi-tenant Redis caching and session management.

Tenant-isolated cache entries with tag invalidation and refresh-ahead
helpers, bounded per-user sessions with activity logs, and health reporting,
on top of a REST or native Redis backend.

Logging is not configured on import; call ``setup_logging()`` from the
application if loguru's default sink is not wanted.
"""

from .__version__ import __version__

# Configuration
from .config import (
    BackendProvider,
    CacheLayerSettings,
    get_settings,
    setup_logging,
)

from .core.exceptions import (
    # Base Exception
    NeoCacheError,
    ConfigurationError,

    # Cache Exceptions
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    UnsupportedOperationError,

    # Backend Exceptions
    BackendError,
    BackendConnectionError,
    BackendTimeoutError,
    BackendResponseError,
)

# Backends
from .backends import (
    BackendClient,
    BackendCapabilities,
    BackendFactory,
    RestBackend,
    RedisBackend,
    create_backend,
)

# Cache
from .cache import (
    BulkDeleteResult,
    CacheEntry,
    CacheManager,
    CachePatterns,
    CacheStats,
    TenantCache,
)

# Sessions
from .sessions import (
    RequestSessionResolver,
    SessionActivity,
    SessionConfig,
    SessionData,
    SessionStats,
    SessionStore,
    UserIdentity,
)

from .health import HealthReporter, HealthStatus
from .tasks import BackgroundTasks
from . import keys

__all__ = [
    "__version__",

    # Configuration
    "BackendProvider",
    "CacheLayerSettings",
    "get_settings",
    "setup_logging",

    # Exceptions
    "NeoCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheKeyError",
    "CacheSerializationError",
    "UnsupportedOperationError",
    "BackendError",
    "BackendConnectionError",
    "BackendTimeoutError",
    "BackendResponseError",

    # Backends
    "BackendClient",
    "BackendCapabilities",
    "BackendFactory",
    "RestBackend",
    "RedisBackend",
    "create_backend",

    # Cache
    "BulkDeleteResult",
    "CacheEntry",
    "CacheManager",
    "CachePatterns",
    "CacheStats",
    "TenantCache",

    # Sessions
    "RequestSessionResolver",
    "SessionActivity",
    "SessionConfig",
    "SessionData",
    "SessionStats",
    "SessionStore",
    "UserIdentity",

    # Health
    "HealthReporter",
    "HealthStatus",

    # Utilities
    "BackgroundTasks",
    "keys",
]
