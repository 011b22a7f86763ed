import logging
import math
import uuid
from datetime import datetime, timezone
from functools import wraps
from typing import Optional

from pymongo.errors import PyMongoError

from .errors import NetworkOrServer, NotFound, ValidationRejected
from .models import (
    AdminStats,
    Event,
    EventStatus,
    Feedback,
    Profile,
    Registration,
    Role,
    RoleAssignment,
)
from .schemas import EventIn

logger = logging.getLogger(__name__)

DUPLICATE_KEY = 11000


def now_utc():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def feedback_key(event_id: str, student_id: str) -> str:
    return f"{event_id}:{student_id}"


def store_call(fn):
    """Translate driver failures into the application's error kinds."""

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as exc:
            logger.warning("store call %s failed: %s", fn.__name__, exc)
            if getattr(exc, "code", None) == DUPLICATE_KEY:
                raise ValidationRejected(str(exc)) from exc
            raise NetworkOrServer(str(exc)) from exc

    return wrapper


# ---------- events ----------
@store_call
async def list_upcoming_events(db) -> list[Event]:
    cursor = db["events"].find({"status": EventStatus.upcoming.value}).sort(
        [("event_date", 1), ("event_time", 1)]
    )
    rows = await cursor.to_list(length=None)
    return [Event.model_validate(r) for r in rows]


@store_call
async def list_organizer_events(db, organizer_id: str) -> list[Event]:
    cursor = db["events"].find({"organizer_id": organizer_id}).sort("created_at", -1)
    rows = await cursor.to_list(length=None)
    return [Event.model_validate(r) for r in rows]


@store_call
async def get_event(db, event_id: str) -> Event:
    row = await db["events"].find_one({"_id": event_id})
    if row is None:
        raise NotFound("Event not found")
    return Event.model_validate(row)


@store_call
async def create_event(db, organizer_id: str, data: EventIn) -> Event:
    doc = {
        "_id": new_id(),
        "title": data.title,
        "description": data.description,
        "category": data.category.value,
        "event_date": data.event_date.isoformat(),
        "event_time": data.event_time,
        "venue": data.venue,
        "venue_type": data.venue_type.value,
        "capacity": data.capacity,
        "status": EventStatus.upcoming.value,
        "organizer_id": organizer_id,
        "created_at": now_utc(),
    }
    await db["events"].insert_one(doc)
    return Event.model_validate(doc)


# ---------- registrations ----------
@store_call
async def count_registrations(db, event_id: str) -> int:
    return await db["event_registrations"].count_documents({"event_id": event_id})


@store_call
async def count_registrations_by_event(db, event_ids: list[str]) -> dict[str, int]:
    """Registration count per event id, one aggregation for the whole page.

    Every requested id is present in the result; events nobody registered
    for map to 0.
    """
    counts = dict.fromkeys(event_ids, 0)
    if not event_ids:
        return counts
    pipeline = [
        {"$match": {"event_id": {"$in": list(counts)}}},
        {"$group": {"_id": "$event_id", "count": {"$sum": 1}}},
    ]
    rows = await db["event_registrations"].aggregate(pipeline).to_list(length=None)
    for r in rows:
        counts[r["_id"]] = r["count"]
    return counts


@store_call
async def list_student_registrations(db, student_id: str) -> list[Registration]:
    pipeline = [
        {"$match": {"student_id": student_id}},
        {"$sort": {"registered_at": -1}},
        {
            "$lookup": {
                "from": "events",
                "localField": "event_id",
                "foreignField": "_id",
                "as": "event",
            }
        },
        {"$unwind": "$event"},
    ]
    rows = await db["event_registrations"].aggregate(pipeline).to_list(length=None)
    return [Registration.model_validate(r) for r in rows]


@store_call
async def get_registration(db, event_id: str, student_id: str) -> Optional[Registration]:
    row = await db["event_registrations"].find_one(
        {"event_id": event_id, "student_id": student_id}
    )
    return Registration.model_validate(row) if row else None


@store_call
async def create_registration(db, event_id: str, student_id: str) -> Registration:
    doc = {
        "_id": new_id(),
        "event_id": event_id,
        "student_id": student_id,
        "registered_at": now_utc(),
    }
    await db["event_registrations"].insert_one(doc)
    return Registration.model_validate(doc)


@store_call
async def list_event_registrants(db, event_id: str) -> list[dict]:
    pipeline = [
        {"$match": {"event_id": event_id}},
        {"$sort": {"registered_at": 1}},
        {
            "$lookup": {
                "from": "profiles",
                "localField": "student_id",
                "foreignField": "_id",
                "as": "profile",
            }
        },
    ]
    rows = await db["event_registrations"].aggregate(pipeline).to_list(length=None)
    registrants = []
    for r in rows:
        profile = r["profile"][0] if r.get("profile") else {}
        registrants.append({
            "student_id": r["student_id"],
            "full_name": profile.get("full_name", ""),
            "email": profile.get("email", ""),
            "registered_at": r.get("registered_at"),
        })
    return registrants


# ---------- feedback ----------
@store_call
async def get_feedback(db, event_id: str, student_id: str) -> Optional[Feedback]:
    row = await db["event_feedback"].find_one({"_id": feedback_key(event_id, student_id)})
    return Feedback.model_validate(row) if row else None


@store_call
async def upsert_feedback(
    db, event_id: str, student_id: str, rating: int, comment: Optional[str]
) -> Feedback:
    now = now_utc()
    await db["event_feedback"].update_one(
        {"_id": feedback_key(event_id, student_id)},
        {
            "$set": {
                "event_id": event_id,
                "student_id": student_id,
                "rating": rating,
                "comment": comment,
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
    )
    row = await db["event_feedback"].find_one({"_id": feedback_key(event_id, student_id)})
    return Feedback.model_validate(row)


# ---------- roles & profiles ----------
@store_call
async def get_role_assignments(db, user_id: str) -> list[RoleAssignment]:
    # two rows are enough to tell "exactly one" from "ambiguous"
    rows = await db["user_roles"].find({"user_id": user_id}).limit(2).to_list(length=2)
    return [RoleAssignment.model_validate(r) for r in rows]


@store_call
async def create_role_assignment(db, user_id: str, role: Role) -> RoleAssignment:
    await db["user_roles"].insert_one({"_id": new_id(), "user_id": user_id, "role": role.value})
    return RoleAssignment(user_id=user_id, role=role)


@store_call
async def get_profile(db, user_id: str) -> Optional[Profile]:
    row = await db["profiles"].find_one({"_id": user_id})
    return Profile.model_validate(row) if row else None


@store_call
async def create_profile(db, user_id: str, full_name: str, email: Optional[str] = None) -> Profile:
    doc = {"_id": user_id, "full_name": full_name, "email": email, "created_at": now_utc()}
    await db["profiles"].insert_one(doc)
    return Profile.model_validate(doc)


# ---------- admin ----------
@store_call
async def admin_stats(db) -> AdminStats:
    total_users = await db["profiles"].count_documents({})
    total_events = await db["events"].count_documents({})
    total_registrations = await db["event_registrations"].count_documents({})
    rows = await db["event_feedback"].aggregate(
        [{"$group": {"_id": None, "avg": {"$avg": "$rating"}}}]
    ).to_list(length=None)
    average = rows[0]["avg"] if rows and rows[0].get("avg") is not None else 0
    return AdminStats(
        total_users=total_users,
        total_events=total_events,
        total_registrations=total_registrations,
        # half up: 4.25 shows as 4.3
        average_rating=math.floor(average * 10 + 0.5) / 10,
    )
