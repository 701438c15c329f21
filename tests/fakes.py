"""In-memory test doubles for neo-cache tests."""

import math
import re
from typing import Any, Dict, List, Mapping, Optional, Set

from neo_cache.backends.protocols import BackendCapabilities
from neo_cache.core.exceptions import BackendConnectionError, UnsupportedOperationError


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 0, seconds: float = 0) -> int:
        self.now += ms + int(seconds * 1000)
        return self.now


def _glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a Redis glob (with backslash escapes) to a regex."""
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                parts.append(pattern[i:end + 1])
                i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


class InMemoryBackend:
    """
    BackendClient implementation backed by dictionaries.

    Expiry follows the injected clock. Operations listed in ``failing`` raise
    BackendConnectionError, which lets tests exercise failure handling.
    """

    def __init__(
        self,
        clock: Optional[FakeClock] = None,
        capabilities: Optional[BackendCapabilities] = None,
        provider: str = "native",
    ):
        self.clock = clock or FakeClock()
        self.capabilities = capabilities or BackendCapabilities()
        self.provider = provider
        self.data: Dict[str, Any] = {}
        self.expiry: Dict[str, int] = {}
        self.failing: Set[str] = set()
        self.calls: List[str] = []
        self.closed = False

    # Test helpers

    def fail(self, *operations: str) -> None:
        self.failing.update(operations)

    def recover(self) -> None:
        self.failing.clear()

    def _op(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise BackendConnectionError(f"Simulated {name} failure", details={"operation": name})

    def _alive(self, key: str) -> bool:
        expires_at = self.expiry.get(key)
        if expires_at is not None and self.clock() >= expires_at:
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def _value(self, key: str, default: Any = None) -> Any:
        return self.data[key] if self._alive(key) else default

    def keys(self) -> List[str]:
        return sorted(key for key in list(self.data) if self._alive(key))

    # Strings and keys

    async def get(self, key: str) -> Optional[str]:
        self._op("get")
        return self._value(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        self._op("set")
        self.data[key] = value
        if ttl:
            self.expiry[key] = self.clock() + int(ttl) * 1000
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        self._op("delete")
        deleted = 0
        for key in keys:
            if self._alive(key):
                del self.data[key]
                self.expiry.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, key: str) -> bool:
        self._op("exists")
        return self._alive(key)

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        self._op("mget")
        if not self.capabilities.multi_get:
            raise UnsupportedOperationError("Multi-get is not supported")
        return [self._value(key) for key in keys]

    async def ttl(self, key: str) -> int:
        self._op("ttl")
        if not self._alive(key):
            return -2
        if key not in self.expiry:
            return -1
        return math.ceil((self.expiry[key] - self.clock()) / 1000)

    async def expire(self, key: str, ttl: int) -> bool:
        self._op("expire")
        if not self._alive(key):
            return False
        self.expiry[key] = self.clock() + int(ttl) * 1000
        return True

    # Hashes

    async def hgetall(self, key: str) -> Dict[str, str]:
        self._op("hgetall")
        return {field: str(value) for field, value in self._value(key, {}).items()}

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        self._op("hincrby")
        hash_value = self._value(key)
        if hash_value is None:
            hash_value = self.data[key] = {}
        hash_value[field] = int(hash_value.get(field, 0)) + amount
        return hash_value[field]

    # Sets

    async def sadd(self, key: str, *members: str) -> int:
        self._op("sadd")
        current = self._value(key)
        if current is None:
            current = self.data[key] = set()
        added = len(set(members) - current)
        current.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        self._op("srem")
        current = self._value(key)
        if current is None:
            return 0
        removed = len(current & set(members))
        current.difference_update(members)
        if not current:
            del self.data[key]
            self.expiry.pop(key, None)
        return removed

    async def smembers(self, key: str) -> Set[str]:
        self._op("smembers")
        return set(self._value(key, set()))

    # Sorted sets

    def _ranked(self, key: str) -> List[str]:
        scores = self._value(key, {})
        return sorted(scores, key=lambda member: (scores[member], member))

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        self._op("zadd")
        scores = self._value(key)
        if scores is None:
            scores = self.data[key] = {}
        added = sum(1 for member in mapping if member not in scores)
        scores.update(mapping)
        return added

    @staticmethod
    def _slice(items: List[str], start: int, end: int) -> List[str]:
        size = len(items)
        if start < 0:
            start = max(size + start, 0)
        if end < 0:
            end = size + end
        if start > end or start >= size:
            return []
        return items[start:end + 1]

    async def zrange(self, key: str, start: int, end: int, desc: bool = False) -> List[str]:
        self._op("zrange")
        ranked = self._ranked(key)
        if desc:
            ranked.reverse()
        return self._slice(ranked, start, end)

    async def zremrangebyrank(self, key: str, start: int, end: int) -> int:
        self._op("zremrangebyrank")
        scores = self._value(key)
        if scores is None:
            return 0
        doomed = self._slice(self._ranked(key), start, end)
        for member in doomed:
            del scores[member]
        return len(doomed)

    async def zcard(self, key: str) -> int:
        self._op("zcard")
        return len(self._value(key, {}))

    # Enumeration

    async def scan_keys(self, pattern: str) -> List[str]:
        self._op("scan_keys")
        if not self.capabilities.pattern_scan:
            raise UnsupportedOperationError("Pattern enumeration is not supported")
        regex = _glob_to_regex(pattern)
        return [key for key in self.keys() if regex.match(key)]

    # Connectivity

    async def ping(self) -> bool:
        self._op("ping")
        return True

    async def info(self) -> Dict[str, Any]:
        self._op("info")
        return {"provider": self.provider, "host": "memory", "port": 0}

    async def close(self) -> None:
        self.closed = True
