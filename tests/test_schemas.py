import pytest
from pydantic import ValidationError

from campus_events.schemas import EventIn, FeedbackIn, SignUpIn, form_errors

from conftest import event_in


def errors_for(**overrides):
    with pytest.raises(ValidationError) as info:
        event_in(**overrides)
    return form_errors(info.value)


def test_valid_event_strips_and_normalises_time():
    data = event_in(title="  Tech Symposium  ", event_time="18:45:00")
    assert data.title == "Tech Symposium"
    assert data.event_time == "18:45"


@pytest.mark.parametrize("field", ["title", "description", "venue"])
def test_blank_required_text_fields(field):
    assert field in errors_for(**{field: "   "})


@pytest.mark.parametrize("capacity", [0, -5, "", "ten"])
def test_capacity_must_be_positive_integer(capacity):
    assert "capacity" in errors_for(capacity=capacity)


def test_category_and_venue_type_are_enumerated():
    errors = errors_for(category="party", venue_type="hybrid")
    assert set(errors) == {"category", "venue_type"}


@pytest.mark.parametrize("value", ["", "2026-02-30", "tomorrow"])
def test_event_date_must_be_a_date(value):
    assert "event_date" in errors_for(event_date=value)


@pytest.mark.parametrize("value", ["", "25:00", "9am"])
def test_event_time_format(value):
    assert "event_time" in errors_for(event_time=value)


def test_missing_fields_reported_individually():
    with pytest.raises(ValidationError) as info:
        EventIn()
    assert set(form_errors(info.value)) == set(EventIn.model_fields)


def test_feedback_rating_bounds():
    assert FeedbackIn(rating=1).rating == 1
    assert FeedbackIn(rating=5, comment=" ok ").comment == "ok"
    with pytest.raises(ValidationError):
        FeedbackIn(rating=6)


def test_sign_up_cannot_choose_admin():
    with pytest.raises(ValidationError):
        SignUpIn(email="a@uni.edu", password="secret123", full_name="A", role="admin")
