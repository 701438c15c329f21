"""
Backend client abstraction for neo-cache.

Two remote store flavors behind one protocol: a request/response REST client
and a persistent-connection redis.asyncio client.
"""

from .protocols import BackendClient, BackendCapabilities
from .rest import RestBackend
from .native import RedisBackend
from .factory import BackendFactory, create_backend, resolve_provider

__all__ = [
    "BackendClient",
    "BackendCapabilities",
    "RestBackend",
    "RedisBackend",
    "BackendFactory",
    "create_backend",
    "resolve_provider",
]
