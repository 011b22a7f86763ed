import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from .. import crud, workflow
from ..auth import AuthSession, register_account
from ..browse import ALL_CATEGORIES, filter_events
from ..config import APP_TITLE, SESSION_COOKIE
from ..dashboards import OrganizerDashboard, build_dashboard, organizer_dashboard
from ..errors import CampusEventsError, Forbidden, NotFound
from ..models import Category, Role, VenueType
from ..schemas import EventIn, SignInIn, SignUpIn, form_errors
from ..session import get_current_role, get_current_session, session_token

logger = logging.getLogger(__name__)

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.globals["categories"] = [c.value for c in Category]
templates.env.globals["venue_types"] = [v.value for v in VenueType]


def redirect(url: str, **params) -> RedirectResponse:
    query = {k: v for k, v in params.items() if v}
    if query:
        url = f"{url}?{urlencode(query)}"
    return RedirectResponse(url, status_code=303)


def set_session_cookie(response, session: AuthSession, request: Request):
    max_age = int(request.app.state.auth.ttl.total_seconds())
    response.set_cookie(SESSION_COOKIE, session.token, max_age=max_age, httponly=True, samesite="lax")
    return response


def base_context(request: Request, session: Optional[AuthSession], role: Optional[Role]) -> dict:
    return {
        "title": APP_TITLE,
        "user": session.user if session else None,
        "role": role.value if role else None,
        "notice": request.query_params.get("notice"),
        "error": request.query_params.get("error"),
    }


# ---------- Browse ----------
@router.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    q: str = "",
    category: str = ALL_CATEGORIES,
    session: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    db = request.app.state.db
    events = await crud.list_upcoming_events(db)
    counts = await crud.count_registrations_by_event(db, [e.id for e in events])
    ctx = base_context(request, session, caller_role)
    ctx.update({
        "events": filter_events(events, q, category),
        "counts": counts,
        "q": q,
        "category": category,
    })
    return templates.TemplateResponse(request, "index.html", ctx)


# ---------- Auth ----------
@router.get("/auth", response_class=HTMLResponse)
async def auth_page(
    request: Request,
    mode: str = "signin",
    session: Optional[AuthSession] = Depends(get_current_session),
):
    if session:
        return redirect("/")
    ctx = base_context(request, None, None)
    ctx.update({"mode": mode, "values": {}, "form_errors": {}})
    return templates.TemplateResponse(request, "auth.html", ctx)


@router.post("/auth", response_class=HTMLResponse)
async def submit_auth(
    request: Request,
    mode: str = Form("signin"),
    email: str = Form(""),
    password: str = Form(""),
    full_name: str = Form(""),
    role: str = Form("student"),
    current: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    db = request.app.state.db
    auth = request.app.state.auth
    values = {"email": email, "full_name": full_name, "role": role}
    errors: dict[str, str] = {}
    status_code = 400
    try:
        if mode == "signup":
            data = SignUpIn(email=email, password=password, full_name=full_name, role=role)
            session = await register_account(db, auth, data)
            notice = "Account created! You can now start exploring events."
        else:
            data = SignInIn(email=email, password=password)
            session = await auth.sign_in_with_password(data.email, data.password)
            notice = "Welcome back!"
    except ValidationError as exc:
        errors = form_errors(exc)
    except CampusEventsError as exc:
        errors = {"__all__": exc.message}
        status_code = exc.status_code
    else:
        return set_session_cookie(redirect("/", notice=notice), session, request)

    ctx = base_context(request, current, caller_role)
    ctx.update({"mode": mode, "values": values, "form_errors": errors})
    return templates.TemplateResponse(request, "auth.html", ctx, status_code=status_code)


@router.post("/logout")
async def logout(request: Request):
    await request.app.state.auth.sign_out(session_token(request))
    response = redirect("/")
    response.delete_cookie(SESSION_COOKIE)
    return response


# ---------- Dashboard ----------
def render_dashboard(
    request: Request, session: AuthSession, role: Optional[Role], dashboard, status_code: int = 200
):
    ctx = base_context(request, session, role)
    ctx["dashboard"] = dashboard
    return templates.TemplateResponse(request, "dashboard.html", ctx, status_code=status_code)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    session: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    if session is None:
        return redirect("/auth")
    db = request.app.state.db
    board = await build_dashboard(db, request.app.state.sessions, session)
    return render_dashboard(request, session, caller_role, board)


@router.post("/events", response_class=HTMLResponse)
async def create_event(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    event_date: str = Form(""),
    event_time: str = Form(""),
    venue: str = Form(""),
    venue_type: str = Form(""),
    capacity: str = Form(""),
    session: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    if session is None:
        return redirect("/auth")
    db = request.app.state.db
    values = {
        "title": title,
        "description": description,
        "category": category,
        "event_date": event_date,
        "event_time": event_time,
        "venue": venue,
        "venue_type": venue_type,
        "capacity": capacity,
    }
    try:
        data = EventIn(**values)
    except ValidationError as exc:
        if caller_role is not Role.organizer:
            raise Forbidden("Only organizers can create events.")
        board: OrganizerDashboard = await organizer_dashboard(db, session.user.id)
        board.form_errors = form_errors(exc)
        board.form_values = values
        return render_dashboard(request, session, caller_role, board, status_code=400)

    try:
        await workflow.create_event_for(db, session.user.id, caller_role, data)
    except CampusEventsError as exc:
        return redirect("/dashboard", error=exc.message)
    return redirect("/dashboard", notice="Event created!")


# ---------- Event detail ----------
@router.get("/events/{event_id}", response_class=HTMLResponse)
async def event_detail(
    request: Request,
    event_id: str,
    session: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    db = request.app.state.db
    try:
        context = await workflow.load_event_context(db, event_id, session.user.id if session else None)
    except NotFound as exc:
        return redirect("/", error=exc.message)
    ctx = base_context(request, session, caller_role)
    ctx["ctx"] = context
    return templates.TemplateResponse(request, "event.html", ctx)


def caller_student_id(session: Optional[AuthSession], role: Optional[Role]) -> Optional[str]:
    if session is None:
        return None
    if role is not Role.student:
        raise Forbidden("Only students can register for events.")
    return session.user.id


@router.post("/events/{event_id}/register")
async def register(
    request: Request,
    event_id: str,
    session: Optional[AuthSession] = Depends(get_current_session),
    caller_role: Optional[Role] = Depends(get_current_role),
):
    try:
        student_id = caller_student_id(session, caller_role)
        if student_id is None:
            return redirect("/auth")
        await workflow.register(request.app.state.db, event_id, student_id)
    except CampusEventsError as exc:
        return redirect(f"/events/{event_id}", error=exc.message)
    return redirect(f"/events/{event_id}", notice="Registered successfully!")


@router.post("/events/{event_id}/feedback")
async def feedback(
    request: Request,
    event_id: str,
    rating: str = Form("5"),
    comment: str = Form(""),
    session: Optional[AuthSession] = Depends(get_current_session),
):
    if session is None:
        return redirect("/auth")
    try:
        await workflow.submit_or_update_feedback(
            request.app.state.db, event_id, session.user.id, rating, comment
        )
    except CampusEventsError as exc:
        return redirect(f"/events/{event_id}", error=exc.message)
    return redirect(f"/events/{event_id}", notice="Feedback submitted! Thank you for your feedback.")
