from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator

from .models import Category, VenueType

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$"


class EventIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: Category
    event_date: date
    event_time: str = Field(pattern=TIME_PATTERN)
    venue: str = Field(min_length=1, max_length=200)
    venue_type: VenueType
    capacity: int = Field(ge=1)

    @field_validator("event_time")
    @classmethod
    def drop_seconds(cls, value: str) -> str:
        return value[:5]


class FeedbackIn(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class SignInIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignUpIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=1, max_length=120)
    # admins are assigned out of band, never self-selected
    role: Literal["student", "organizer"] = "student"

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value


def form_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten a pydantic error into one message per form field."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__all__"
        errors.setdefault(field, err["msg"])
    return errors
