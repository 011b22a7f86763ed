"""Password auth provider backed by the ``auth_users`` / ``auth_sessions`` collections.

Mirrors the surface of a hosted auth service: sign-up, sign-in with
password, session lookup, sign-out and a subscription to auth-state changes.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from . import crud
from .config import SESSION_TTL_HOURS
from .errors import Unauthenticated, ValidationRejected
from .models import Role
from .schemas import SignUpIn

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    full_name: str


@dataclass(frozen=True)
class AuthSession:
    token: str
    user: AuthUser
    expires_at: datetime


AuthListener = Callable[[str, AuthSession], Awaitable[None]]


class Subscription:
    def __init__(self, provider: "AuthProvider", listener: AuthListener):
        self._provider = provider
        self._listener = listener

    def unsubscribe(self):
        self._provider._listeners.discard(self._listener)


def _as_utc(value: datetime) -> datetime:
    # the store hands datetimes back naive
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class AuthProvider:
    def __init__(self, db, ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS)):
        self.db = db
        self.ttl = ttl
        self._listeners: set[AuthListener] = set()

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.add(listener)
        return Subscription(self, listener)

    async def _emit(self, event: str, session: AuthSession):
        for listener in list(self._listeners):
            await listener(event, session)

    @crud.store_call
    async def sign_up(self, email: str, password: str, full_name: str) -> AuthUser:
        email = email.lower()
        if await self.db["auth_users"].find_one({"email": email}):
            raise ValidationRejected("User already registered")
        user = AuthUser(id=crud.new_id(), email=email, full_name=full_name)
        await self.db["auth_users"].insert_one({
            "_id": user.id,
            "email": user.email,
            "full_name": full_name,
            "password_hash": generate_password_hash(password),
            "created_at": crud.now_utc(),
        })
        logger.info("Signed up user %s", user.id)
        return user

    @crud.store_call
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        row = await self.db["auth_users"].find_one({"email": email.lower()})
        if row is None or not check_password_hash(row["password_hash"], password):
            raise Unauthenticated("Invalid login credentials")
        session = AuthSession(
            token=secrets.token_urlsafe(32),
            user=AuthUser(id=row["_id"], email=row["email"], full_name=row["full_name"]),
            expires_at=crud.now_utc() + self.ttl,
        )
        await self.db["auth_sessions"].insert_one({
            "_id": crud.new_id(),
            "token": session.token,
            "user_id": session.user.id,
            "expires_at": session.expires_at,
        })
        logger.info("User %s signed in", session.user.id)
        await self._emit(SIGNED_IN, session)
        return session

    @crud.store_call
    async def get_session(self, token: Optional[str]) -> Optional[AuthSession]:
        if not token:
            return None
        row = await self.db["auth_sessions"].find_one({"token": token})
        if row is None:
            return None
        expires_at = _as_utc(row["expires_at"])
        if expires_at <= crud.now_utc():
            await self.db["auth_sessions"].delete_one({"token": token})
            return None
        user = await self.db["auth_users"].find_one({"_id": row["user_id"]})
        if user is None:
            return None
        return AuthSession(
            token=token,
            user=AuthUser(id=user["_id"], email=user["email"], full_name=user["full_name"]),
            expires_at=expires_at,
        )

    async def sign_out(self, token: Optional[str]):
        session = await self.get_session(token)
        if session is None:
            return
        await self._delete_session(token)
        logger.info("User %s signed out", session.user.id)
        await self._emit(SIGNED_OUT, session)

    @crud.store_call
    async def _delete_session(self, token: str):
        await self.db["auth_sessions"].delete_one({"token": token})


async def register_account(db, auth: AuthProvider, data: SignUpIn) -> AuthSession:
    """Sign up, create the profile and role rows, then sign the user in."""
    user = await auth.sign_up(data.email, data.password, data.full_name)
    await crud.create_profile(db, user.id, data.full_name, user.email)
    await crud.create_role_assignment(db, user.id, Role(data.role))
    return await auth.sign_in_with_password(data.email, data.password)
