# dept_helpdesk/backend/app/main.py
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .api.v1.admin import router as admin_router
from .api.v1.auth import router as auth_router
from .api.v1.departments import router as departments_router
from .api.v1.email_logs import router as email_logs_router
from .api.v1.tickets import router as tickets_router
from .api.v1.users import router as users_router
from .auth import get_password_hash
from .config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    FRONTEND_URL,
    LOG_LEVEL,
    OVERDUE_RENOTIFY_MINUTES,
    OVERDUE_SWEEP_ENABLED,
    OVERDUE_SWEEP_INTERVAL_SECONDS,
    SMTP_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USER,
)
from .db import SessionLocal
from .lifecycle.errors import TicketError
from .lifecycle.mailer import EmailSender, SmtpEmailSender
from .lifecycle.overdue import OverdueScheduler, OverdueSweep
from .models.user import User

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def seed_initial_admin(session_factory: Callable[[], Session]) -> None:
    db = session_factory()
    try:
        # only admin; departments come from the initial migration
        if not db.query(User).filter_by(is_admin=True).first():
            db.add(
                User(
                    name="Admin",
                    email=ADMIN_EMAIL,
                    password_hash=get_password_hash(ADMIN_PASSWORD),
                    is_admin=True,
                    must_change_password=True,
                )
            )
            db.commit()
            logger.info("Seeded initial admin %s", ADMIN_EMAIL)
    finally:
        db.close()


def build_email_sender() -> EmailSender:
    sender = SmtpEmailSender(
        host=SMTP_HOST,
        port=SMTP_PORT,
        username=SMTP_USER,
        password=SMTP_PASSWORD,
        from_address=SMTP_FROM,
        use_tls=SMTP_USE_TLS,
    )
    if not sender.is_configured:
        logger.warning("SMTP is not configured; notifications will be logged as failed")
    return sender


def create_app(
    sender: Optional[EmailSender] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    run_scheduler: bool = OVERDUE_SWEEP_ENABLED,
) -> FastAPI:
    """Wire the mail sender, the overdue sweep and the routers together."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        seed_initial_admin(session_factory)
        scheduler = None
        if run_scheduler:
            scheduler = OverdueScheduler(
                app.state.overdue_sweep, interval_seconds=OVERDUE_SWEEP_INTERVAL_SECONDS
            )
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(title="Departmental Helpdesk", lifespan=lifespan)

    app.state.email_sender = sender or build_email_sender()
    renotify = (
        timedelta(minutes=OVERDUE_RENOTIFY_MINUTES) if OVERDUE_RENOTIFY_MINUTES > 0 else None
    )
    app.state.overdue_sweep = OverdueSweep(
        session_factory,
        app.state.email_sender,
        FRONTEND_URL,
        renotify_after=renotify,
    )

    @app.exception_handler(TicketError)
    async def ticket_error_handler(request: Request, exc: TicketError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(departments_router)
    app.include_router(users_router)
    app.include_router(tickets_router)
    app.include_router(email_logs_router)
    app.include_router(admin_router)
    return app


app = create_app()
