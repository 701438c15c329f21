"""Session feature for neo-cache.

- entities: session record, config, activity and stats
- store: tenant-scoped session lifecycle with eviction and activity log
- request: FastAPI request-bound session resolver
"""

from .entities import SessionActivity, SessionConfig, SessionData, SessionStats, UserIdentity
from .store import SessionStore, generate_session_id
from .request import RequestSessionResolver

__all__ = [
    # Entities
    "SessionData",
    "SessionConfig",
    "SessionActivity",
    "SessionStats",
    "UserIdentity",

    # Services
    "SessionStore",
    "RequestSessionResolver",
    "generate_session_id",
]
