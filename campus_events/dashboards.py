"""Role-gated dashboard composition.

Exactly one variant is built per request. A caller whose role cannot be
resolved gets ``UnknownDashboard``, which carries no role panel at all.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

from . import crud
from .auth import AuthSession
from .errors import AmbiguousRole, RoleNotFound
from .models import AdminStats, Event, EventStatus, Role
from .session import SessionContext

logger = logging.getLogger(__name__)


@dataclass
class StudentDashboard:
    registered: list[Event]
    past: list[Event]
    counts: dict[str, int]
    kind: str = "student"


@dataclass
class OrganizerDashboard:
    upcoming: list[Event]
    past: list[Event]
    counts: dict[str, int]
    form_errors: dict[str, str] = field(default_factory=dict)
    form_values: dict = field(default_factory=lambda: empty_event_form())
    kind: str = "organizer"


@dataclass
class AdminDashboard:
    stats: AdminStats
    kind: str = "admin"


@dataclass
class UnknownDashboard:
    reason: str
    kind: str = "unknown"


Dashboard = Union[StudentDashboard, OrganizerDashboard, AdminDashboard, UnknownDashboard]


def split_by_status(events: list[Event]) -> tuple[list[Event], list[Event]]:
    upcoming = [e for e in events if e.status is EventStatus.upcoming]
    past = [e for e in events if e.status is EventStatus.completed]
    return upcoming, past


async def student_dashboard(db, user_id: str) -> StudentDashboard:
    registrations = await crud.list_student_registrations(db, user_id)
    registered, past = split_by_status([r.event for r in registrations if r.event])
    counts = await crud.count_registrations_by_event(db, [e.id for e in registered + past])
    return StudentDashboard(registered=registered, past=past, counts=counts)


async def organizer_dashboard(db, user_id: str) -> OrganizerDashboard:
    events = await crud.list_organizer_events(db, user_id)
    upcoming, past = split_by_status(events)
    counts = await crud.count_registrations_by_event(db, [e.id for e in events])
    return OrganizerDashboard(upcoming=upcoming, past=past, counts=counts)


async def admin_dashboard(db, user_id: str) -> AdminDashboard:
    return AdminDashboard(stats=await crud.admin_stats(db))


BUILDERS = {
    Role.student: student_dashboard,
    Role.organizer: organizer_dashboard,
    Role.admin: admin_dashboard,
}


async def build_dashboard(db, sessions: SessionContext, session: AuthSession) -> Dashboard:
    try:
        role = await sessions.resolve_role(session)
    except RoleNotFound:
        logger.info("No role row for user %s", session.user.id)
        return UnknownDashboard(reason="Your account has no role assigned yet.")
    except AmbiguousRole:
        return UnknownDashboard(reason="Your account has conflicting roles. Contact an administrator.")
    return await BUILDERS[role](db, session.user.id)


def empty_event_form() -> dict:
    return {
        "title": "",
        "description": "",
        "category": "academic",
        "event_date": "",
        "event_time": "",
        "venue": "",
        "venue_type": "physical",
        "capacity": 50,
    }

