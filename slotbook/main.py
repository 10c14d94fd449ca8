import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.api.routes import admin, bookings, slots
from slotbook.core.config import _ENV_FILE, settings
from slotbook.core.db import async_session_maker, get_session, session_dependency
from slotbook.core.exceptions import BookingError
from slotbook.core.periodic import PeriodicTask
from slotbook.services.booking_service import ProviderLocks
from slotbook.services.notifier import Notifier
from slotbook.services.reminder_service import run_reminder_sweep

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


def create_app(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    notifier: Notifier | None = None,
    run_reminders: bool | None = None,
) -> FastAPI:
    session_maker = session_maker or async_session_maker
    notifier = notifier or Notifier()
    run_reminders = settings.reminders_enabled if run_reminders is None else run_reminders

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
        if not settings.email_enabled:
            logger.warning("Email: NOT configured, messages are logged only (set SMTP_* and FROM_EMAIL)")
        reminder_task = PeriodicTask(
            "reminder-sweep",
            lambda: run_reminder_sweep(session_maker, notifier),
            settings.reminder_interval_seconds,
            run_on_start=True,
        )
        app.state.reminder_task = reminder_task
        if run_reminders:
            reminder_task.start()
        yield
        await reminder_task.stop()

    app = FastAPI(
        title="SlotBook API",
        description="Provider availability, bookings and reminders",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if session_maker is not async_session_maker:
        app.dependency_overrides[get_session] = session_dependency(session_maker)
    app.state.notifier = notifier
    app.state.provider_locks = ProviderLocks()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(slots.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
            headers=_cors_headers(request.headers.get("origin")),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Return the error as JSON; include CORS so 500 responses are not blocked by the browser."""
        headers = _cors_headers(request.headers.get("origin"))
        if isinstance(exc, HTTPException):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": f"{type(exc).__name__}: {str(exc)}"},
            headers=headers,
        )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
