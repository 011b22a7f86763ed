import logging
import os

from dotenv import load_dotenv

load_dotenv()

APP_TITLE = os.getenv("APP_TITLE", "Campus Events")

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/campus_events")
DB_NAME = os.getenv("DB_NAME", "campus_events")

SESSION_COOKIE = os.getenv("SESSION_COOKIE", "campus_session")
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "168"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # motor/pymongo are chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
