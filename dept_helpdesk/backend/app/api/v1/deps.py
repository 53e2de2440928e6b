# dept_helpdesk/backend/app/api/v1/deps.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL
from ...db import get_db
from ...lifecycle.engine import TicketEngine
from ...lifecycle.history import HistoryRecorder
from ...lifecycle.mailer import EmailSender
from ...lifecycle.notifications import NotificationDispatcher


def get_email_sender(request: Request) -> EmailSender:
    """The process-wide sender built at startup (see main.create_app)."""
    return request.app.state.email_sender


def get_history_recorder(db: Session = Depends(get_db)) -> HistoryRecorder:
    return HistoryRecorder(db)


def get_ticket_engine(
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
    recorder: HistoryRecorder = Depends(get_history_recorder),
) -> TicketEngine:
    dispatcher = NotificationDispatcher(db, sender, FRONTEND_URL, recorder=recorder)
    return TicketEngine(db, dispatcher, recorder=recorder)
