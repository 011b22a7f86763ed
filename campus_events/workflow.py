"""Event detail, registration, feedback and event creation actions.

The capacity check is advisory: it reads the count and then inserts in a
separate call, so two students racing for the last seat can both succeed.
Uniqueness of a (event, student) registration is guaranteed by the store's
unique index, not here.
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError

from . import crud
from .errors import Forbidden, Unauthenticated, ValidationRejected
from .models import Event, EventContext, Role
from .schemas import EventIn, FeedbackIn, form_errors

logger = logging.getLogger(__name__)

# (event_id, student_id) pairs with a registration insert pending
_in_flight: set[tuple[str, str]] = set()


async def load_event_context(db, event_id: str, caller_user_id: Optional[str] = None) -> EventContext:
    event = await crud.get_event(db, event_id)
    organizer = await crud.get_profile(db, event.organizer_id)
    count = await crud.count_registrations(db, event_id)
    context = EventContext(event=event, organizer=organizer, registration_count=count)
    if caller_user_id:
        registration = await crud.get_registration(db, event_id, caller_user_id)
        context.is_registered = registration is not None
        context.feedback = await crud.get_feedback(db, event_id, caller_user_id)
    return context


async def register(db, event_id: str, caller_user_id: Optional[str]) -> EventContext:
    if not caller_user_id:
        raise Unauthenticated("Sign in to register for events.")
    key = (event_id, caller_user_id)
    if key in _in_flight:
        raise ValidationRejected("Your registration is already being processed.")
    _in_flight.add(key)
    try:
        context = await load_event_context(db, event_id, caller_user_id)
        if context.is_registered:
            raise ValidationRejected("You are already registered for this event.")
        if context.is_full:
            raise ValidationRejected("This event is full.")
        await crud.create_registration(db, event_id, caller_user_id)
    finally:
        _in_flight.discard(key)
    logger.info("User %s registered for event %s", caller_user_id, event_id)
    return await load_event_context(db, event_id, caller_user_id)


async def submit_or_update_feedback(
    db, event_id: str, caller_user_id: Optional[str], rating: Union[int, str], comment: Optional[str] = None
) -> EventContext:
    if not caller_user_id:
        raise Unauthenticated("Sign in to leave feedback.")
    try:
        data = FeedbackIn(rating=rating, comment=comment)
    except ValidationError as exc:
        raise ValidationRejected("; ".join(form_errors(exc).values())) from exc
    registration = await crud.get_registration(db, event_id, caller_user_id)
    if registration is None:
        raise ValidationRejected("Register for this event before leaving feedback.")
    await crud.upsert_feedback(db, event_id, caller_user_id, data.rating, data.comment)
    logger.info("Feedback from %s on event %s: %d", caller_user_id, event_id, data.rating)
    return await load_event_context(db, event_id, caller_user_id)


async def create_event_for(db, user_id: Optional[str], role: Optional[Role], data: EventIn) -> Event:
    if not user_id:
        raise Unauthenticated("Sign in to create events.")
    if role is not Role.organizer:
        raise Forbidden("Only organizers can create events.")
    event = await crud.create_event(db, user_id, data)
    logger.info("Organizer %s created event %s (%s)", user_id, event.id, event.title)
    return event
