import csv
import io
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from openpyxl import Workbook

from .. import crud
from ..auth import AuthSession
from ..errors import Forbidden, Unauthenticated
from ..models import Event, Role
from ..session import get_current_role, get_current_session

router = APIRouter()

HEADER = ["Event ID", "Event", "Student ID", "Name", "Email", "Registered At"]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def load_for_export(
    request: Request,
    event_id: str,
    session: Optional[AuthSession] = Depends(get_current_session),
    role: Optional[Role] = Depends(get_current_role),
) -> tuple[Event, list[dict]]:
    if session is None:
        raise Unauthenticated("Authentication required")
    db = request.app.state.db
    event = await crud.get_event(db, event_id)
    if role is not Role.admin and event.organizer_id != session.user.id:
        raise Forbidden("Only the event organizer can export registrations.")
    return event, await crud.list_event_registrants(db, event_id)


def export_rows(event: Event, registrants: list[dict]) -> list[list]:
    rows = []
    for r in registrants:
        registered_at = r.get("registered_at")
        rows.append([
            event.id,
            event.title,
            r["student_id"],
            r["full_name"],
            r["email"] or "",
            registered_at.isoformat() if registered_at else "",
        ])
    return rows


def build_excel(event: Event, registrants: list[dict]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Registrations"

    ws.append(HEADER)
    for row in export_rows(event, registrants):
        ws.append(row)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


@router.get("/events/{event_id}/export/registrations.csv")
async def export_registrations_csv(export: tuple[Event, list[dict]] = Depends(load_for_export)):
    event, registrants = export

    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(HEADER)
    w.writerows(export_rows(event, registrants))
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="registrations_{event.id}.csv"'},
    )


@router.get("/events/{event_id}/export/registrations.xlsx")
async def export_registrations_xlsx(export: tuple[Event, list[dict]] = Depends(load_for_export)):
    event, registrants = export
    return StreamingResponse(
        iter([build_excel(event, registrants)]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="registrations_{event.id}.xlsx"'},
    )
