"""
Session store.

Session records live at ``session:<tenant>:<id>`` with a TTL, each user's
active session ids in ``user_sessions:<tenant>:<user>`` and a bounded
activity log per session in ``session_activity:<tenant>:<id>``. Record and
set membership are created and removed together. Every public method absorbs
backend failures and degrades to "no session", zero or an empty list.
"""
import asyncio
import secrets
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .. import keys
from ..backends.protocols import BackendClient
from ..config.settings import CacheLayerSettings, get_settings
from ..core.exceptions import BackendError
from ..utils.clock import Clock, now_ms, seconds_until
from .entities import (
    IDENTITY_FIELDS,
    SessionActivity,
    SessionConfig,
    SessionData,
    SessionStats,
    UserIdentity,
)

RECENT_ACTIVITY_WINDOW_MS = 60 * 60 * 1000

_PROTECTED_KEYS = frozenset(IDENTITY_FIELDS | {to_camel(name) for name in IDENTITY_FIELDS})

# camelCase alias or field name -> field name
_UPDATABLE_FIELDS: Dict[str, str] = {}
for _name in SessionData.model_fields:
    if _name in IDENTITY_FIELDS:
        continue
    _UPDATABLE_FIELDS[_name] = _name
    _UPDATABLE_FIELDS[to_camel(_name)] = _name


def generate_session_id(now: int) -> str:
    """Session ids look like ``sess_<ms>_<random hex>``."""
    return f"sess_{now}_{secrets.token_hex(8)}"


class SessionStore:
    """Tenant-scoped session lifecycle on a backend client."""

    def __init__(
        self,
        backend: BackendClient,
        settings: Optional[CacheLayerSettings] = None,
        clock: Clock = now_ms,
    ):
        """
        Initialize the session store.

        Args:
            backend: Remote store client
            settings: Settings providing the default SessionConfig
            clock: Millisecond clock, injectable for tests
        """
        self.backend = backend
        self.settings = settings or get_settings()
        self.clock = clock
        self.config = SessionConfig.from_settings(self.settings)
        self.activity_limit = self.settings.session_activity_limit

    # Record helpers

    async def _load(self, tenant_id: str, session_id: str) -> Tuple[Optional[SessionData], bool]:
        """Read a record; the flag tells whether a raw value was present."""
        raw = await self.backend.get(keys.session_key(tenant_id, session_id))
        return SessionData.from_json(raw), raw is not None

    async def _save(self, session: SessionData, ttl: int) -> None:
        await self.backend.set(keys.session_key(session.tenant_id, session.session_id), session.to_json(), ttl)

    async def _remove(self, tenant_id: str, session_id: str, user_id: Optional[str]) -> None:
        """Delete a record, its activity log and its set membership."""
        await self.backend.delete(
            keys.session_key(tenant_id, session_id),
            keys.session_activity_key(tenant_id, session_id),
        )
        if user_id:
            await self.backend.srem(keys.user_sessions_key(tenant_id, user_id), session_id)

    async def _touch_user_sessions(self, tenant_id: str, user_id: str, ttl: int) -> None:
        user_key = keys.user_sessions_key(tenant_id, user_id)
        if await self.backend.ttl(user_key) < ttl:
            await self.backend.expire(user_key, ttl)

    # Activity log

    async def record_activity(self, tenant_id: str, session_id: str, action: str, ttl: Optional[int] = None) -> None:
        """
        Append an event to a session's activity log.

        The log is trimmed to the most recent entries after every append.
        Failures are logged only.
        """
        activity_key = keys.session_activity_key(tenant_id, session_id)
        activity = SessionActivity(timestamp=self.clock(), action=action)
        try:
            await self.backend.zadd(activity_key, {activity.to_member(): activity.timestamp})
            await self.backend.zremrangebyrank(activity_key, 0, -(self.activity_limit + 1))
            await self.backend.expire(activity_key, ttl or self.config.ttl)
        except BackendError as e:
            logger.warning(f"Failed to track session activity {action} for {session_id} (tenant: {tenant_id}): {e}")

    async def get_session_activity(self, tenant_id: str, session_id: str, limit: int = 50) -> List[SessionActivity]:
        """
        Get the activity log of a session, newest first.

        Args:
            tenant_id: Owning tenant
            session_id: Session identifier
            limit: Maximum number of events

        Returns:
            Parsed events; empty on failure
        """
        if limit <= 0:
            return []
        try:
            members = await self.backend.zrange(
                keys.session_activity_key(tenant_id, session_id), 0, limit - 1, desc=True
            )
        except BackendError as e:
            logger.error(f"Failed to get session activity for {session_id} (tenant: {tenant_id}): {e}")
            return []

        activities = []
        for member in members:
            activity = SessionActivity.parse(member)
            if activity is not None:
                activities.append(activity)
        return activities

    # Lifecycle

    async def create_session(
        self,
        data: Union[UserIdentity, Mapping[str, Any]],
        config: Optional[SessionConfig] = None,
    ) -> Optional[str]:
        """
        Create a session for an authenticated user.

        Stores the record, registers it in the user's session set, evicts the
        least recently accessed sessions beyond max_sessions and logs a
        "created" event.

        Args:
            data: Identity and optional metadata of the session owner
            config: Overrides the store's SessionConfig

        Returns:
            The new session id, or None if the record could not be stored
        """
        config = config or self.config
        identity = data if isinstance(data, UserIdentity) else UserIdentity.model_validate(dict(data))
        now = self.clock()
        session = SessionData(
            **identity.model_dump(include=set(UserIdentity.model_fields)),
            session_id=generate_session_id(now),
            created_at=now,
            last_accessed_at=now,
            expires_at=now + config.ttl * 1000,
        )

        try:
            await self._save(session, config.ttl)
            await self.backend.sadd(keys.user_sessions_key(session.tenant_id, session.user_id), session.session_id)
            await self._touch_user_sessions(session.tenant_id, session.user_id, config.ttl)
        except BackendError as e:
            logger.error(f"Failed to create session for user {session.user_id} (tenant: {session.tenant_id}): {e}")
            return None

        if config.max_sessions > 0:
            await self._enforce_max_sessions(session.tenant_id, session.user_id, config.max_sessions, session.session_id)
        if config.track_activity:
            await self.record_activity(session.tenant_id, session.session_id, "created", config.ttl)

        logger.info(f"Session created: {session.session_id} (user: {session.user_id}, tenant: {session.tenant_id})")
        return session.session_id

    async def _enforce_max_sessions(self, tenant_id: str, user_id: str, max_sessions: int, keep: str) -> None:
        """Evict the least recently accessed sessions beyond the limit."""
        try:
            sessions = await self._resolve_user_sessions(tenant_id, user_id)
            excess = len(sessions) - max_sessions
            if excess <= 0:
                return
            candidates = sorted(
                (s for s in sessions if s.session_id != keep),
                key=lambda s: (s.last_accessed_at, s.created_at),
            )
            for session in candidates[:excess]:
                await self._remove(tenant_id, session.session_id, user_id)
                logger.info(f"Session evicted: {session.session_id} (user: {user_id}, tenant: {tenant_id})")
        except BackendError as e:
            logger.error(f"Failed to enforce max sessions for user {user_id} (tenant: {tenant_id}): {e}")

    async def get_session(
        self,
        tenant_id: str,
        session_id: str,
        config: Optional[SessionConfig] = None,
    ) -> Optional[SessionData]:
        """
        Get a session, extending it when extend_on_access is enabled.

        Expired or unreadable records are removed and reported as absent.
        """
        config = config or self.config
        try:
            session, present = await self._load(tenant_id, session_id)
            if session is None:
                if present:
                    await self._remove(tenant_id, session_id, None)
                return None

            now = self.clock()
            if session.is_expired(now):
                logger.debug(f"Session expired: {session_id} (tenant: {tenant_id})")
                await self._remove(tenant_id, session_id, session.user_id)
                return None

            session.last_accessed_at = now
            if config.extend_on_access:
                session.expires_at = now + config.ttl * 1000
                await self._save(session, config.ttl)
                await self._touch_user_sessions(tenant_id, session.user_id, config.ttl)
            else:
                await self._save(session, max(1, seconds_until(session.expires_at, now)))
        except BackendError as e:
            logger.error(f"Failed to get session {session_id} (tenant: {tenant_id}): {e}")
            return None

        if config.track_activity:
            await self.record_activity(tenant_id, session_id, "accessed", config.ttl)
        return session

    def _apply_updates(self, session: SessionData, updates: Mapping[str, Any], now: int) -> SessionData:
        record = session.model_dump()
        for key, value in updates.items():
            field_name = _UPDATABLE_FIELDS.get(key)
            if field_name is None:
                if key not in _PROTECTED_KEYS:
                    logger.warning(f"Ignoring unknown session field {key!r}")
                continue
            record[field_name] = value
        record["last_accessed_at"] = now
        return SessionData.model_validate(record)

    async def merge_session(
        self,
        tenant_id: str,
        session_id: str,
        updates: Mapping[str, Any],
        config: Optional[SessionConfig] = None,
    ) -> Optional[SessionData]:
        """
        Merge partial fields into a session and return the stored result.

        Identity fields (session id, tenant, user, creation time) are never
        overwritten. Field names may be given in snake_case or camelCase.

        Returns:
            The merged session, or None if it does not exist, the update is
            invalid or the store failed
        """
        config = config or self.config
        try:
            session, present = await self._load(tenant_id, session_id)
            if session is None:
                if present:
                    await self._remove(tenant_id, session_id, None)
                return None

            now = self.clock()
            if session.is_expired(now):
                await self._remove(tenant_id, session_id, session.user_id)
                return None

            try:
                merged = self._apply_updates(session, updates, now)
            except ValidationError as e:
                logger.error(f"Invalid session update for {session_id} (tenant: {tenant_id}): {e}")
                return None

            if config.extend_on_access and "expires_at" not in updates and "expiresAt" not in updates:
                merged.expires_at = now + config.ttl * 1000
            ttl = seconds_until(merged.expires_at, now)
            if ttl <= 0:
                await self._remove(tenant_id, session_id, session.user_id)
                return None
            await self._save(merged, ttl)
            await self._touch_user_sessions(tenant_id, merged.user_id, ttl)
        except BackendError as e:
            logger.error(f"Failed to update session {session_id} (tenant: {tenant_id}): {e}")
            return None

        if config.track_activity:
            await self.record_activity(tenant_id, session_id, "updated", config.ttl)
        logger.debug(f"Session updated: {session_id} (tenant: {tenant_id})")
        return merged

    async def update_session(
        self,
        tenant_id: str,
        session_id: str,
        updates: Mapping[str, Any],
        config: Optional[SessionConfig] = None,
    ) -> bool:
        """Merge partial fields into a session; False if it does not exist."""
        return await self.merge_session(tenant_id, session_id, updates, config) is not None

    async def delete_session(self, tenant_id: str, session_id: str) -> bool:
        """
        Delete a session with its activity log and set membership.

        Deleting an absent session succeeds.
        """
        try:
            session, _ = await self._load(tenant_id, session_id)
            await self._remove(tenant_id, session_id, session.user_id if session else None)
        except BackendError as e:
            logger.error(f"Failed to delete session {session_id} (tenant: {tenant_id}): {e}")
            return False

        logger.info(f"Session deleted: {session_id} (tenant: {tenant_id})")
        return True

    # Per-user operations

    async def _resolve_user_sessions(self, tenant_id: str, user_id: str) -> List[SessionData]:
        """Live sessions of a user; dangling and expired ids are pruned."""
        user_key = keys.user_sessions_key(tenant_id, user_id)
        session_ids = sorted(await self.backend.smembers(user_key))
        now = self.clock()

        sessions = []
        for session_id in session_ids:
            session, _ = await self._load(tenant_id, session_id)
            if session is None:
                await self.backend.srem(user_key, session_id)
                continue
            if session.is_expired(now):
                await self._remove(tenant_id, session_id, user_id)
                continue
            sessions.append(session)
        return sessions

    async def get_user_sessions(self, tenant_id: str, user_id: str) -> List[SessionData]:
        """
        Get a user's active sessions, most recently accessed first.

        Reading does not extend the sessions or log activity.
        """
        try:
            sessions = await self._resolve_user_sessions(tenant_id, user_id)
        except BackendError as e:
            logger.error(f"Failed to get sessions of user {user_id} (tenant: {tenant_id}): {e}")
            return []
        return sorted(sessions, key=lambda s: s.last_accessed_at, reverse=True)

    async def delete_user_sessions(self, tenant_id: str, user_id: str) -> int:
        """Delete every session of a user, returning how many were removed."""
        deleted = 0
        for session in await self.get_user_sessions(tenant_id, user_id):
            if await self.delete_session(tenant_id, session.session_id):
                deleted += 1

        try:
            await self.backend.delete(keys.user_sessions_key(tenant_id, user_id))
        except BackendError as e:
            logger.error(f"Failed to clear session set of user {user_id} (tenant: {tenant_id}): {e}")

        if deleted:
            logger.info(f"Deleted {deleted} sessions of user {user_id} (tenant: {tenant_id})")
        return deleted

    # Tenant-wide operations

    async def _scan_sessions(self, tenant_id: str, operation: str) -> Optional[List[Tuple[str, Optional[str]]]]:
        """(key, raw record) pairs of every session of a tenant, None if unsupported."""
        if not self.backend.capabilities.pattern_scan:
            logger.warning(
                f"{operation} not supported with the {self.backend.provider} backend "
                f"(no pattern enumeration, tenant: {tenant_id})"
            )
            return None

        session_keys = await self.backend.scan_keys(keys.session_pattern(tenant_id))
        if not session_keys:
            return []
        if self.backend.capabilities.multi_get:
            raw_values = await self.backend.mget(session_keys)
        else:
            raw_values = await asyncio.gather(*(self.backend.get(key) for key in session_keys))
        return list(zip(session_keys, raw_values))

    async def get_session_stats(self, tenant_id: str) -> SessionStats:
        """
        Derive session figures for a tenant by enumerating its sessions.

        Returns zeros when the backend cannot enumerate keys or fails.
        """
        try:
            records = await self._scan_sessions(tenant_id, "Session statistics")
        except BackendError as e:
            logger.error(f"Failed to get session stats (tenant: {tenant_id}): {e}")
            return SessionStats()
        if not records:
            return SessionStats()

        now = self.clock()
        sessions = [
            session for session in (SessionData.from_json(raw) for _, raw in records)
            if session is not None and not session.is_expired(now)
        ]
        if not sessions:
            return SessionStats()

        return SessionStats(
            total_active_sessions=len(sessions),
            unique_users=len({s.user_id for s in sessions}),
            average_session_duration=sum(s.duration_ms for s in sessions) / len(sessions),
            recent_activity=sum(1 for s in sessions if now - s.last_accessed_at < RECENT_ACTIVITY_WINDOW_MS),
        )

    async def cleanup_expired_sessions(self, tenant_id: str) -> int:
        """
        Remove expired or unreadable session records of a tenant.

        Returns:
            Number of records removed; 0 when enumeration is unsupported
        """
        try:
            records = await self._scan_sessions(tenant_id, "Expired session cleanup")
        except BackendError as e:
            logger.error(f"Failed to clean up expired sessions (tenant: {tenant_id}): {e}")
            return 0
        if not records:
            return 0

        now = self.clock()
        deleted = 0
        for session_key, raw in records:
            if raw is None:
                continue
            session = SessionData.from_json(raw)
            if session is not None and not session.is_expired(now):
                continue
            session_id = session.session_id if session else session_key.split(keys.SEPARATOR, 2)[2]
            try:
                await self._remove(tenant_id, session_id, session.user_id if session else None)
                deleted += 1
            except BackendError as e:
                logger.error(f"Failed to remove expired session {session_id} (tenant: {tenant_id}): {e}")

        if deleted:
            logger.info(f"Cleaned up {deleted} expired sessions (tenant: {tenant_id})")
        return deleted
