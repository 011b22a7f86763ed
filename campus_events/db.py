import logging

from motor.motor_asyncio import AsyncIOMotorClient

from .config import DB_NAME, MONGO_URI

logger = logging.getLogger(__name__)


def get_database(uri: str = MONGO_URI, name: str = DB_NAME):
    client = AsyncIOMotorClient(uri)
    return client[name]


async def ensure_indexes(db):
    await db["events"].create_index([("status", 1), ("event_date", 1)])
    await db["events"].create_index([("organizer_id", 1), ("created_at", -1)])
    await db["event_registrations"].create_index(
        [("event_id", 1), ("student_id", 1)], unique=True
    )
    await db["event_registrations"].create_index([("student_id", 1), ("registered_at", -1)])
    await db["event_feedback"].create_index(
        [("event_id", 1), ("student_id", 1)], unique=True
    )
    # not unique: duplicate role rows must stay detectable
    await db["user_roles"].create_index([("user_id", 1)])
    await db["auth_users"].create_index([("email", 1)], unique=True)
    await db["auth_sessions"].create_index([("token", 1)], unique=True)
    logger.info("Indexes ensured")
