from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class Category(str, Enum):
    academic = "academic"
    sports = "sports"
    cultural = "cultural"
    workshop = "workshop"
    seminar = "seminar"
    other = "other"


class VenueType(str, Enum):
    physical = "physical"
    virtual = "virtual"


class EventStatus(str, Enum):
    upcoming = "upcoming"
    completed = "completed"


class Role(str, Enum):
    student = "student"
    organizer = "organizer"
    admin = "admin"


class Document(BaseModel):
    # rows come back from the store keyed by "_id"
    id: str = Field(validation_alias=AliasChoices("_id", "id"))


class Event(Document):
    title: str
    description: str
    category: Category
    event_date: date
    event_time: str
    venue: str
    venue_type: VenueType
    capacity: int
    status: EventStatus = EventStatus.upcoming
    organizer_id: str
    created_at: Optional[datetime] = None


class Registration(Document):
    event_id: str
    student_id: str
    registered_at: Optional[datetime] = None
    event: Optional[Event] = None


class Feedback(Document):
    event_id: str
    student_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Profile(Document):
    full_name: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class RoleAssignment(BaseModel):
    user_id: str
    role: Role


class EventContext(BaseModel):
    """Everything the event detail page shows, fetched in one pass."""

    event: Event
    organizer: Optional[Profile] = None
    registration_count: int = 0
    is_registered: bool = False
    feedback: Optional[Feedback] = None

    @property
    def is_full(self) -> bool:
        return self.registration_count >= self.event.capacity

    @property
    def spots_left(self) -> int:
        return max(self.event.capacity - self.registration_count, 0)


class AdminStats(BaseModel):
    total_users: int = 0
    total_events: int = 0
    total_registrations: int = 0
    average_rating: float = 0
