import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from .auth import AuthProvider
from .config import APP_TITLE, configure_logging
from .db import ensure_indexes, get_database
from .errors import CampusEventsError
from .routes.api import router as api_router
from .routes.export_registrations import router as export_router
from .routes.pages import router as pages_router, templates
from .session import SessionContext

logger = logging.getLogger(__name__)


def create_app(db=None) -> FastAPI:
    db = db if db is not None else get_database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await ensure_indexes(db)
        except PyMongoError as e:
            logger.warning("Could not ensure indexes, store unreachable: %s", e)
        app.state.sessions.start()
        try:
            yield
        finally:
            app.state.sessions.stop()

    app = FastAPI(title=APP_TITLE, version="1.0.0", lifespan=lifespan)
    app.state.db = db
    app.state.auth = AuthProvider(db)
    app.state.sessions = SessionContext(db, app.state.auth)

    app.include_router(pages_router)
    app.include_router(api_router, prefix="/api", tags=["API"])
    app.include_router(export_router, tags=["Export"])

    @app.exception_handler(CampusEventsError)
    async def handle_campus_error(request: Request, exc: CampusEventsError):
        if request.url.path.startswith("/api"):
            return JSONResponse(
                status_code=exc.status_code,
                content={"ok": False, "error": exc.kind, "message": exc.message},
            )
        return templates.TemplateResponse(
            request,
            "error.html",
            {"title": APP_TITLE, "message": exc.message, "status_code": exc.status_code},
            status_code=exc.status_code,
        )

    return app


configure_logging()
app = create_app()
