import logging
from typing import Optional

from fastapi import Depends, Request

from . import crud
from .auth import SIGNED_OUT, AuthProvider, AuthSession, Subscription
from .config import SESSION_COOKIE
from .errors import AmbiguousRole, RoleNotFound
from .models import Role

logger = logging.getLogger(__name__)


class SessionContext:
    """Process-wide view of who is signed in and which role they hold.

    Roles are looked up once per auth session and kept until that session
    signs out, expires or the context is stopped.
    """

    def __init__(self, db, auth: AuthProvider):
        self.db = db
        self.auth = auth
        self._roles: dict[str, Role] = {}
        self._subscription: Optional[Subscription] = None

    @property
    def started(self) -> bool:
        return self._subscription is not None

    def start(self):
        if self._subscription is None:
            self._subscription = self.auth.on_auth_state_change(self._on_auth_change)
            logger.info("Session context subscribed to auth changes")

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._roles.clear()

    async def _on_auth_change(self, event: str, session: AuthSession):
        if event == SIGNED_OUT:
            self._roles.pop(session.token, None)

    async def current_user(self, token: Optional[str]) -> Optional[AuthSession]:
        session = await self.auth.get_session(token)
        if session is None and token:
            # expired or revoked without a sign-out event
            self._roles.pop(token, None)
        return session

    async def resolve_role(self, session: AuthSession) -> Role:
        if session.token in self._roles:
            return self._roles[session.token]
        rows = await crud.get_role_assignments(self.db, session.user.id)
        if not rows:
            raise RoleNotFound(f"No role assigned to user {session.user.id}")
        if len(rows) > 1:
            logger.warning("User %s has %d role rows", session.user.id, len(rows))
            raise AmbiguousRole(f"User {session.user.id} has more than one role")
        self._roles[session.token] = rows[0].role
        return rows[0].role


def session_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def get_session_context(request: Request) -> SessionContext:
    return request.app.state.sessions


async def get_current_session(
    request: Request, sessions: SessionContext = Depends(get_session_context)
) -> Optional[AuthSession]:
    return await sessions.current_user(session_token(request))


async def get_current_role(
    session: Optional[AuthSession] = Depends(get_current_session),
    sessions: SessionContext = Depends(get_session_context),
) -> Optional[Role]:
    """Role of the caller, or None when signed out or the role is unresolved."""
    if session is None:
        return None
    try:
        return await sessions.resolve_role(session)
    except (RoleNotFound, AmbiguousRole):
        return None
