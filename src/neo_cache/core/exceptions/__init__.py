"""Exception hierarchy for neo-cache."""

from .base import NeoCacheError, ConfigurationError, create_error_response
from .infrastructure import (
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    UnsupportedOperationError,
    BackendError,
    BackendConnectionError,
    BackendTimeoutError,
    BackendResponseError,
)

__all__ = [
    "NeoCacheError",
    "ConfigurationError",
    "create_error_response",
    "CacheError",
    "CacheKeyError",
    "CacheSerializationError",
    "UnsupportedOperationError",
    "BackendError",
    "BackendConnectionError",
    "BackendTimeoutError",
    "BackendResponseError",
]
