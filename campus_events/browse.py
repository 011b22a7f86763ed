from typing import Iterable, Optional

from .models import Event

ALL_CATEGORIES = "all"


def matches_search(event: Event, query: Optional[str]) -> bool:
    if not query:
        return True
    q = query.lower()
    return q in event.title.lower() or q in event.description.lower()


def matches_category(event: Event, category: Optional[str]) -> bool:
    if not category or category == ALL_CATEGORIES:
        return True
    return event.category.value == category


def filter_events(events: Iterable[Event], query: Optional[str] = None, category: Optional[str] = None) -> list[Event]:
    return [e for e in events if matches_search(e, query) and matches_category(e, category)]
