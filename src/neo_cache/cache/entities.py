"""Cache domain objects for neo-cache."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.exceptions import CacheSerializationError

ENTRY_VERSION = 1


@dataclass
class CacheEntry:
    """A cached value with its bookkeeping fields.

    Stored as one JSON object using camelCase field names. Timestamps are
    millisecond epoch integers.
    """
    data: Any
    created_at: int
    expires_at: int
    version: int = ENTRY_VERSION
    tags: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    def is_expired(self, now: int) -> bool:
        """Check if entry is past its expiry."""
        return now > self.expires_at

    def remaining_ms(self, now: int) -> int:
        """Milliseconds left before expiry (negative once expired)."""
        return self.expires_at - now

    def serialize(self) -> str:
        """Encode the entry as its stored JSON record.

        Raises:
            CacheSerializationError: If the payload is not JSON-serializable
        """
        record: Dict[str, Any] = {
            "data": self.data,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "version": self.version,
        }
        if self.tags:
            record["tags"] = list(self.tags)
        if self.metadata:
            record["metadata"] = self.metadata
        try:
            return json.dumps(record, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(
                f"Cache value is not serializable: {e}",
                details={"type": type(self.data).__name__},
            ) from e

    @classmethod
    def deserialize(cls, raw: str) -> Optional["CacheEntry"]:
        """Decode a stored record, None if it is not a valid entry."""
        try:
            record = json.loads(raw)
            return cls(
                data=record["data"],
                created_at=int(record["createdAt"]),
                expires_at=int(record["expiresAt"]),
                version=int(record.get("version", ENTRY_VERSION)),
                tags=record.get("tags"),
                metadata=record.get("metadata"),
            )
        except (TypeError, ValueError, KeyError):
            return None


@dataclass
class CacheStats:
    """Per-tenant cache counters."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0
    total_keys: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of reads that were hits."""
        reads = self.hits + self.misses
        return self.hits / reads if reads else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "totalKeys": self.total_keys,
            "hitRate": self.hit_rate,
        }


@dataclass(frozen=True)
class BulkDeleteResult:
    """Outcome of a pattern-enumeration delete.

    ``supported`` is False when the backend cannot enumerate keys, which is
    different from a supported enumeration that matched nothing.
    """
    deleted: int = 0
    supported: bool = True
    patterns: List[str] = field(default_factory=list)

    @classmethod
    def unsupported(cls, patterns: Optional[List[str]] = None) -> "BulkDeleteResult":
        return cls(deleted=0, supported=False, patterns=list(patterns or []))

    def __add__(self, other: "BulkDeleteResult") -> "BulkDeleteResult":
        return BulkDeleteResult(
            deleted=self.deleted + other.deleted,
            supported=self.supported and other.supported,
            patterns=self.patterns + other.patterns,
        )
