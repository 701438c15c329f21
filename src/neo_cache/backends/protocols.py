"""Backend client protocol for neo-cache.

One provider-neutral interface over the remote key-value store. Call sites
branch on BackendCapabilities, never on the concrete client class.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set, runtime_checkable


@dataclass(frozen=True)
class BackendCapabilities:
    """Optional features a backend flavor supports."""
    pattern_scan: bool = True
    multi_get: bool = True
    pipeline: bool = True


@runtime_checkable
class BackendClient(Protocol):
    """Protocol implemented by every remote store client.

    String values are stored and returned as ``str``. TTLs are whole seconds.
    Transport failures surface as BackendError subclasses.
    """

    provider: str
    capabilities: BackendCapabilities

    # Strings and keys
    async def get(self, key: str) -> Optional[str]:
        """Get a string value, None if the key does not exist."""
        ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a string value with an optional expiry in seconds."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""
        ...

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        """Get several string values in input order."""
        ...

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds, -1 without expiry, -2 if missing."""
        ...

    async def expire(self, key: str, ttl: int) -> bool:
        """Set a key's expiry in seconds."""
        ...

    # Hashes
    async def hgetall(self, key: str) -> Dict[str, str]:
        """Get all fields of a hash."""
        ...

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        """Atomically increment a hash field."""
        ...

    # Sets
    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set."""
        ...

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set."""
        ...

    async def smembers(self, key: str) -> Set[str]:
        """Get all members of a set."""
        ...

    # Sorted sets
    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        """Add members with scores to a sorted set."""
        ...

    async def zrange(self, key: str, start: int, end: int, desc: bool = False) -> List[str]:
        """Get members by rank range (inclusive), optionally highest first."""
        ...

    async def zremrangebyrank(self, key: str, start: int, end: int) -> int:
        """Remove members by rank range (inclusive)."""
        ...

    async def zcard(self, key: str) -> int:
        """Number of members in a sorted set."""
        ...

    # Enumeration
    async def scan_keys(self, pattern: str) -> List[str]:
        """Enumerate keys matching a glob pattern.

        Raises UnsupportedOperationError when capabilities.pattern_scan is False.
        """
        ...

    # Connectivity
    async def ping(self) -> bool:
        """Round-trip check against the store."""
        ...

    async def info(self) -> Dict[str, Any]:
        """Describe the connection; never exposes credentials."""
        ...

    async def close(self) -> None:
        """Release connections held by the client."""
        ...
