from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder

from .. import crud, workflow
from ..auth import AuthSession, register_account
from ..browse import ALL_CATEGORIES, filter_events
from ..dashboards import build_dashboard
from ..errors import Forbidden, Unauthenticated
from ..models import EventContext, Role
from ..schemas import EventIn, FeedbackIn, SignInIn, SignUpIn
from ..session import get_current_role, get_current_session, session_token

router = APIRouter()


async def require_session(session: Optional[AuthSession] = Depends(get_current_session)) -> AuthSession:
    if session is None:
        raise Unauthenticated("Authentication required")
    return session


def session_payload(session: AuthSession) -> dict:
    return {
        "ok": True,
        "token": session.token,
        "expires_at": session.expires_at,
        "user": {"id": session.user.id, "email": session.user.email, "full_name": session.user.full_name},
    }


def context_payload(context: EventContext) -> dict:
    return {
        "event": context.event,
        "organizer": context.organizer.full_name if context.organizer else None,
        "registration_count": context.registration_count,
        "is_full": context.is_full,
        "spots_left": context.spots_left,
        "is_registered": context.is_registered,
        "feedback": context.feedback,
    }


# ---------- auth ----------
@router.post("/auth/sign-up")
async def api_sign_up(request: Request, payload: SignUpIn):
    session = await register_account(request.app.state.db, request.app.state.auth, payload)
    return session_payload(session)


@router.post("/auth/sign-in")
async def api_sign_in(request: Request, payload: SignInIn):
    session = await request.app.state.auth.sign_in_with_password(payload.email, payload.password)
    return session_payload(session)


@router.post("/auth/sign-out")
async def api_sign_out(request: Request):
    await request.app.state.auth.sign_out(session_token(request))
    return {"ok": True}


# ---------- events ----------
@router.get("/events")
async def api_list_events(request: Request, q: str = "", category: str = ALL_CATEGORIES):
    db = request.app.state.db
    events = await crud.list_upcoming_events(db)
    counts = await crud.count_registrations_by_event(db, [e.id for e in events])
    return [
        {**jsonable_encoder(e), "registration_count": counts[e.id]}
        for e in filter_events(events, q, category)
    ]


@router.get("/events/{event_id}")
async def api_get_event(
    request: Request, event_id: str, session: Optional[AuthSession] = Depends(get_current_session)
):
    context = await workflow.load_event_context(
        request.app.state.db, event_id, session.user.id if session else None
    )
    return context_payload(context)


@router.post("/events", status_code=201)
async def api_create_event(
    request: Request,
    payload: EventIn,
    session: AuthSession = Depends(require_session),
    role: Optional[Role] = Depends(get_current_role),
):
    event = await workflow.create_event_for(request.app.state.db, session.user.id, role, payload)
    return {"ok": True, "event": event}


@router.post("/events/{event_id}/registrations")
async def api_register(
    request: Request,
    event_id: str,
    session: AuthSession = Depends(require_session),
    role: Optional[Role] = Depends(get_current_role),
):
    if role is not Role.student:
        raise Forbidden("Only students can register for events.")
    context = await workflow.register(request.app.state.db, event_id, session.user.id)
    return {"ok": True, **context_payload(context)}


@router.put("/events/{event_id}/feedback")
async def api_feedback(
    request: Request, event_id: str, payload: FeedbackIn, session: AuthSession = Depends(require_session)
):
    context = await workflow.submit_or_update_feedback(
        request.app.state.db, event_id, session.user.id, payload.rating, payload.comment
    )
    return {"ok": True, **context_payload(context)}


@router.get("/dashboard")
async def api_dashboard(request: Request, session: AuthSession = Depends(require_session)):
    board = await build_dashboard(request.app.state.db, request.app.state.sessions, session)
    return jsonable_encoder(board)


@router.get("/me")
async def api_me(
    request: Request,
    session: AuthSession = Depends(require_session),
    role: Optional[Role] = Depends(get_current_role),
):
    profile = await crud.get_profile(request.app.state.db, session.user.id)
    return {
        "id": session.user.id,
        "email": session.user.email,
        "full_name": profile.full_name if profile else session.user.full_name,
        "role": role.value if role else None,
    }
