"""
Session domain objects.

SessionData is stored as JSON with camelCase field names; timestamps are
millisecond epoch integers.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..config.settings import CacheLayerSettings

# Fields fixed at creation; updates never overwrite them.
IDENTITY_FIELDS = frozenset({"session_id", "tenant_id", "user_id", "created_at"})


class SessionSchema(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class UserIdentity(SessionSchema):
    """Authenticated caller identity used to seed and refresh sessions."""
    tenant_id: str = Field(description="Owning tenant")
    user_id: str = Field(description="User identifier")
    email: str = Field("", description="User email")
    name: Optional[str] = Field(None, description="Display name")
    roles: List[str] = Field(default_factory=list, description="Role names")
    permissions: List[str] = Field(default_factory=list, description="Permission codes")
    organization_name: Optional[str] = Field(None, description="Organization display name")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Free-form session metadata")


class SessionData(UserIdentity):
    """A stored session record."""
    session_id: str = Field(description="Unique session identifier")
    created_at: int = Field(description="Creation time (ms)")
    last_accessed_at: int = Field(description="Last access time (ms)")
    expires_at: int = Field(description="Expiry time (ms)")

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    @property
    def duration_ms(self) -> int:
        """Time between creation and last access."""
        return self.last_accessed_at - self.created_at

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["SessionData"]:
        """Decode a stored record, None if it is missing or invalid."""
        if raw is None:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            return None


@dataclass
class SessionConfig:
    """Per-call session behaviour."""
    ttl: int = 7 * 24 * 60 * 60
    extend_on_access: bool = True
    max_sessions: int = 5
    track_activity: bool = True

    @classmethod
    def from_settings(cls, settings: CacheLayerSettings) -> "SessionConfig":
        return cls(
            ttl=settings.session_ttl,
            extend_on_access=settings.session_extend_on_access,
            max_sessions=settings.session_max_sessions,
            track_activity=settings.session_track_activity,
        )


@dataclass(frozen=True)
class SessionActivity:
    """One activity log event."""
    timestamp: int
    action: str

    def to_member(self) -> str:
        return f"{self.timestamp}:{self.action}"

    @classmethod
    def parse(cls, member: str) -> Optional["SessionActivity"]:
        """Parse a ``<timestamp>:<action>`` log member."""
        timestamp, _, action = member.partition(":")
        try:
            return cls(timestamp=int(timestamp), action=action)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "action": self.action}


@dataclass
class SessionStats:
    """Aggregate session figures for a tenant."""
    total_active_sessions: int = 0
    unique_users: int = 0
    average_session_duration: float = 0.0
    recent_activity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalActiveSessions": self.total_active_sessions,
            "uniqueUsers": self.unique_users,
            "averageSessionDuration": self.average_session_duration,
            "recentActivity": self.recent_activity,
        }
