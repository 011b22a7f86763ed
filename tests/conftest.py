from datetime import date, timedelta

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from campus_events import crud
from campus_events.auth import AuthProvider, register_account
from campus_events.config import SESSION_COOKIE
from campus_events.db import ensure_indexes
from campus_events.main import create_app
from campus_events.models import Role
from campus_events.schemas import EventIn, SignUpIn
from campus_events.session import SessionContext


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["campus_events_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
async def auth(db):
    return AuthProvider(db)


@pytest.fixture
async def sessions(db, auth):
    ctx = SessionContext(db, auth)
    ctx.start()
    yield ctx
    ctx.stop()


@pytest.fixture
async def app(db):
    application = create_app(db)
    application.state.sessions.start()
    yield application
    application.state.sessions.stop()


@pytest.fixture
async def client(app):
    async with client_for(app) as c:
        yield c


def event_in(**overrides) -> EventIn:
    values = {
        "title": "Robotics Workshop",
        "description": "Build a line-following robot",
        "category": "workshop",
        "event_date": (date.today() + timedelta(days=7)).isoformat(),
        "event_time": "14:00",
        "venue": "Lab 3",
        "venue_type": "physical",
        "capacity": 50,
    }
    values.update(overrides)
    return EventIn(**values)


async def make_account(db, auth, email, role="student", full_name="Test User", password="secret123"):
    return await register_account(
        db, auth, SignUpIn(email=email, password=password, full_name=full_name, role=role)
    )


async def make_admin(db, auth, email="admin@uni.edu", password="secret123"):
    user = await auth.sign_up(email, password, "Ada Admin")
    await crud.create_profile(db, user.id, "Ada Admin", email)
    await crud.create_role_assignment(db, user.id, Role.admin)
    return await auth.sign_in_with_password(email, password)


async def make_event(db, organizer_id, **overrides):
    return await crud.create_event(db, organizer_id, event_in(**overrides))


async def add_registrations(db, event_id, n):
    for i in range(n):
        await crud.create_registration(db, event_id, f"student-{i}")


def client_for(app, token=None):
    cookies = {SESSION_COOKIE: token} if token else None
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test", cookies=cookies
    )
