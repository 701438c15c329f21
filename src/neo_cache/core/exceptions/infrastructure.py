"""Cache and backend exceptions for neo-cache.

BackendError and its subclasses describe transport failures of the remote
store. They are absorbed at operation boundaries; the remaining cache errors
signal programming mistakes and propagate.
"""

from .base import NeoCacheError


# Cache Errors
class CacheError(NeoCacheError):
    """Base class for cache-related errors."""
    pass


class CacheKeyError(CacheError):
    """Raised when a tenant id, namespace or key segment is invalid."""
    pass


class CacheSerializationError(CacheError):
    """Raised when cache value serialization fails."""
    pass


class UnsupportedOperationError(CacheError):
    """Raised when the backend lacks the capability an operation needs."""
    pass


# Backend Errors
class BackendError(CacheError):
    """Base class for remote store transport errors."""
    pass


class BackendConnectionError(BackendError):
    """Raised when the remote store cannot be reached."""
    pass


class BackendTimeoutError(BackendError):
    """Raised when a remote store command times out."""
    pass


class BackendResponseError(BackendError):
    """Raised when the remote store rejects a command or answers malformed."""
    pass
