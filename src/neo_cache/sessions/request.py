"""
Request-bound session resolution for FastAPI applications.

Usage:
    resolver = RequestSessionResolver(store, identity_resolver=resolve_user)

    @app.get("/me")
    async def me(session: Optional[SessionData] = Depends(resolver)):
        ...
"""
from typing import Awaitable, Callable, Optional

from fastapi import Request
from loguru import logger

from .entities import SessionData, UserIdentity
from .store import SessionStore

SESSION_HEADER = "x-session-id"
SESSION_COOKIE = "session-id"

IdentityResolver = Callable[[Request], Awaitable[Optional[UserIdentity]]]


class RequestSessionResolver:
    """Resolves or creates the caller's session for an inbound request."""

    def __init__(
        self,
        store: SessionStore,
        identity_resolver: IdentityResolver,
        header_name: str = SESSION_HEADER,
        cookie_name: str = SESSION_COOKIE,
    ):
        self.store = store
        self.identity_resolver = identity_resolver
        self.header_name = header_name
        self.cookie_name = cookie_name

    def extract_session_id(self, request: Request) -> Optional[str]:
        """Session id from the header, falling back to the cookie."""
        return request.headers.get(self.header_name) or request.cookies.get(self.cookie_name) or None

    async def resolve(self, request: Request) -> Optional[SessionData]:
        """
        Get the caller's session, refreshed with the latest identity.

        A new session is created when the request carries no usable session
        id or the id belongs to another user.

        Returns:
            The session, or None when the caller is not authenticated or the
            store is unavailable
        """
        identity = await self.identity_resolver(request)
        if identity is None:
            return None

        session_id = self.extract_session_id(request)
        if session_id:
            session = await self.store.get_session(identity.tenant_id, session_id)
            if session is not None and session.user_id == identity.user_id:
                refreshed = await self.store.merge_session(
                    identity.tenant_id,
                    session_id,
                    {
                        "email": identity.email,
                        "name": identity.name,
                        "roles": identity.roles,
                        "permissions": identity.permissions,
                        "organization_name": identity.organization_name,
                    },
                )
                return refreshed or session
            if session is not None:
                logger.warning(
                    f"Session {session_id} does not belong to user {identity.user_id} "
                    f"(tenant: {identity.tenant_id})"
                )

        new_session_id = await self.store.create_session(identity)
        if new_session_id is None:
            return None
        return await self.store.get_session(identity.tenant_id, new_session_id)

    async def __call__(self, request: Request) -> Optional[SessionData]:
        return await self.resolve(request)
