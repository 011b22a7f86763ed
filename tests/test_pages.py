from datetime import date, timedelta

from campus_events import crud

from conftest import add_registrations, client_for, make_account, make_event


def in_days(n):
    return (date.today() + timedelta(days=n)).isoformat()


def event_form(**overrides):
    form = {
        "title": "Tech Symposium",
        "description": "Talks and demos from the CS department",
        "category": "academic",
        "event_date": in_days(5),
        "event_time": "09:30",
        "venue": "Main Auditorium",
        "venue_type": "physical",
        "capacity": "50",
    }
    form.update(overrides)
    return form


async def test_sign_up_sets_session_cookie(client):
    resp = await client.post("/auth", data={
        "mode": "signup",
        "email": "sam@uni.edu",
        "password": "secret123",
        "full_name": "Sam Student",
        "role": "student",
    })
    assert resp.status_code == 303
    assert resp.headers["location"].startswith("/?notice=")

    page = await client.get("/dashboard")
    assert page.status_code == 200
    assert 'id="student-dashboard"' in page.text


async def test_sign_in_with_wrong_password_shows_error(app, client):
    await make_account(app.state.db, app.state.auth, "sam@uni.edu")
    resp = await client.post("/auth", data={"mode": "signin", "email": "sam@uni.edu", "password": "bad"})
    assert resp.status_code == 401
    assert "Invalid login credentials" in resp.text


async def test_sign_up_validation_errors(client):
    resp = await client.post("/auth", data={
        "mode": "signup", "email": "not-an-email", "password": "123", "full_name": "X",
    })
    assert resp.status_code == 400
    assert "field-error" in resp.text


async def test_dashboard_requires_session(client):
    resp = await client.get("/dashboard")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/auth"


async def test_created_event_appears_in_browse_by_date(app):
    db, auth = app.state.db, app.state.auth
    organizer = await make_account(db, auth, "org@uni.edu", role="organizer", full_name="Olga")
    await make_event(db, "org-2", title="Spring Gala", event_date=in_days(20))
    await make_event(db, "org-2", title="Chess Open", event_date=in_days(1))

    async with client_for(app, organizer.token) as c:
        resp = await c.post("/events", data=event_form())
        assert resp.status_code == 303
        assert resp.headers["location"].startswith("/dashboard?notice=")

        browse = await c.get("/")
        dashboard = await c.get("/dashboard")

    text = browse.text
    assert text.index("Chess Open") < text.index("Tech Symposium") < text.index("Spring Gala")
    past_section = dashboard.text.split("<h2>Past Events</h2>")[1]
    assert "Tech Symposium" not in past_section
    assert "No Past Events" in past_section


async def test_browse_search_and_category(app, client):
    db = app.state.db
    await make_event(db, "org-1", title="Tech Symposium", category="academic")
    await make_event(db, "org-1", title="Football Final", category="sports", description="Match day")

    resp = await client.get("/", params={"q": "TECH", "category": "academic"})
    assert "Tech Symposium" in resp.text
    assert "Football Final" not in resp.text

    resp = await client.get("/", params={"category": "sports"})
    assert "Football Final" in resp.text
    assert "Tech Symposium" not in resp.text


async def test_create_event_form_errors_rerender(app):
    organizer = await make_account(app.state.db, app.state.auth, "org@uni.edu", role="organizer")
    async with client_for(app, organizer.token) as c:
        resp = await c.post("/events", data=event_form(capacity="0", title="   "))
    assert resp.status_code == 400
    assert "greater than or equal to 1" in resp.text
    assert await app.state.db["events"].count_documents({}) == 0


async def test_student_cannot_create_event(app):
    student = await make_account(app.state.db, app.state.auth, "stu@uni.edu", role="student")
    async with client_for(app, student.token) as c:
        resp = await c.post("/events", data=event_form())
    assert resp.status_code == 303
    assert "Only+organizers" in resp.headers["location"]
    assert await app.state.db["events"].count_documents({}) == 0


async def test_full_event_shows_disabled_register(app):
    db = app.state.db
    student = await make_account(db, app.state.auth, "stu@uni.edu", role="student")
    event = await make_event(db, "org-1", capacity=2)
    await add_registrations(db, event.id, 2)

    async with client_for(app, student.token) as c:
        page = await c.get(f"/events/{event.id}")
        resp = await c.post(f"/events/{event.id}/register")

    assert "<button type=\"submit\" disabled>Event Full</button>" in page.text
    assert "Register Now" not in page.text
    assert "2 / 2 registered" in page.text
    assert resp.status_code == 303
    assert "error=This+event+is+full." in resp.headers["location"]
    assert await crud.count_registrations(db, event.id) == 2


async def test_register_and_leave_feedback(app):
    db = app.state.db
    student = await make_account(db, app.state.auth, "stu@uni.edu", role="student")
    event = await make_event(db, "org-1")

    async with client_for(app, student.token) as c:
        resp = await c.post(f"/events/{event.id}/register")
        assert "notice=Registered" in resp.headers["location"]

        page = await c.get(f"/events/{event.id}")
        assert 'id="registered-badge"' in page.text
        assert "1 / 50 registered" in page.text
        assert "Submit Feedback" in page.text

        await c.post(f"/events/{event.id}/feedback", data={"rating": "4"})
        await c.post(f"/events/{event.id}/feedback", data={"rating": "5", "comment": "Brilliant"})
        page = await c.get(f"/events/{event.id}")

    assert "Update Feedback" in page.text
    rows = await db["event_feedback"].find({"event_id": event.id}).to_list(length=None)
    assert len(rows) == 1
    assert rows[0]["rating"] == 5
    assert rows[0]["comment"] == "Brilliant"


async def test_anonymous_register_redirects_to_auth(app, client):
    event = await make_event(app.state.db, "org-1")
    resp = await client.post(f"/events/{event.id}/register")
    assert resp.headers["location"] == "/auth"


async def test_unknown_event_redirects_home(client):
    resp = await client.get("/events/nope")
    assert resp.status_code == 303
    assert resp.headers["location"].startswith("/?error=Event+not+found")


async def test_user_without_role_sees_no_panels(app):
    auth = app.state.auth
    await auth.sign_up("ghost@uni.edu", "secret123", "Ghost")
    session = await auth.sign_in_with_password("ghost@uni.edu", "secret123")

    async with client_for(app, session.token) as c:
        page = await c.get("/dashboard")

    assert page.status_code == 200
    assert 'id="no-role"' in page.text
    for panel in ("student-dashboard", "organizer-dashboard", "admin-dashboard"):
        assert panel not in page.text


async def test_logout_clears_session(app):
    student = await make_account(app.state.db, app.state.auth, "stu@uni.edu")
    async with client_for(app, student.token) as c:
        resp = await c.post("/logout")
    assert resp.status_code == 303
    assert await app.state.auth.get_session(student.token) is None


async def test_non_numeric_rating_redirects_with_error(app):
    db = app.state.db
    student = await make_account(db, app.state.auth, "stu@uni.edu", role="student")
    event = await make_event(db, "org-1")
    await crud.create_registration(db, event.id, student.user.id)

    async with client_for(app, student.token) as c:
        resp = await c.post(f"/events/{event.id}/feedback", data={"rating": "great"})

    assert resp.status_code == 303
    assert resp.headers["location"].startswith(f"/events/{event.id}?error=")
    assert await crud.get_feedback(db, event.id, student.user.id) is None


async def test_dashboard_looks_up_session_once(app, monkeypatch):
    auth = app.state.auth
    student = await make_account(app.state.db, auth, "stu@uni.edu", role="student")
    calls = []
    get_session = auth.get_session

    async def counting_get_session(token):
        calls.append(token)
        return await get_session(token)

    monkeypatch.setattr(auth, "get_session", counting_get_session)
    async with client_for(app, student.token) as c:
        page = await c.get("/dashboard")

    assert page.status_code == 200
    assert 'id="student-dashboard"' in page.text
    assert calls == [student.token]
