# dept_helpdesk/backend/app/lifecycle/notifications.py
"""
Ticket e-mail notifications.

Every attempt is written to email_logs whatever the outcome. Delivery
errors are returned as a failed DispatchOutcome, never raised.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.email_log import (
    EMAIL_ASSIGNED,
    EMAIL_CLOSED,
    EMAIL_OVERDUE,
    EMAIL_REASSIGNED,
    EmailLog,
)
from ..models.ticket import Ticket
from ..models.ticket_history import CHANGE_EMAIL_SENT
from .history import HistoryRecorder
from .mailer import EmailSender

logger = logging.getLogger(__name__)

_SUBJECT_PREFIX = {
    EMAIL_ASSIGNED: "Ticket Assigned",
    EMAIL_REASSIGNED: "Ticket Reassigned",
    EMAIL_CLOSED: "Ticket Closed",
    EMAIL_OVERDUE: "OVERDUE",
}


@dataclass
class DispatchOutcome:
    kind: str
    ticket_id: int
    recipients: List[str]
    subject: str
    success: bool
    error: Optional[str] = None


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%Y-%m-%d %H:%M UTC")


def render(kind: str, ticket: Ticket, frontend_url: str) -> Tuple[str, str]:
    """Build (subject, html body) for one notification kind."""
    if kind not in _SUBJECT_PREFIX:
        raise ValueError(f"Unknown notification kind '{kind}'")

    subject = f"{_SUBJECT_PREFIX[kind]}: {ticket.title}"
    department = escape(ticket.department.name if ticket.department else "")
    ticket_url = f"{frontend_url.rstrip('/')}/tickets/{ticket.id}"

    if kind == EMAIL_ASSIGNED:
        heading = f"<h2>New Ticket Assigned to {department}</h2>"
    elif kind == EMAIL_REASSIGNED:
        heading = f"<h2>Ticket Reassigned to {department}</h2>"
    elif kind == EMAIL_CLOSED:
        heading = "<h2>Your Ticket Has Been Closed</h2>"
    else:
        heading = '<h2 style="color: red;">Ticket Overdue</h2>'

    lines = [
        heading,
        f"<p><strong>Ticket ID:</strong> #{ticket.id}</p>",
        f"<p><strong>Title:</strong> {escape(ticket.title)}</p>",
        f"<p><strong>Status:</strong> {escape(ticket.status)}</p>",
        f"<p><strong>Assigned Department:</strong> {department}</p>",
    ]
    if kind == EMAIL_CLOSED:
        lines.append(
            f"<p><strong>Closed At:</strong> {_format_time(ticket.closed_at)}</p>"
        )
    else:
        lines.append(f"<p><strong>Deadline:</strong> {_format_time(ticket.deadline)}</p>")
        lines.append("<p><strong>Description:</strong></p>")
        lines.append(f"<p>{escape(ticket.description)}</p>")
    if kind == EMAIL_OVERDUE:
        lines.append(
            '<p style="color: red;"><strong>This ticket has passed its deadline '
            "and requires immediate attention.</strong></p>"
        )
    lines.append(f'<p><a href="{ticket_url}">View Ticket</a></p>')

    return subject, "\n".join(lines)


class NotificationDispatcher:
    def __init__(
        self,
        db: Session,
        sender: EmailSender,
        frontend_url: str,
        recorder: Optional[HistoryRecorder] = None,
    ):
        self.db = db
        self.sender = sender
        self.frontend_url = frontend_url
        self.recorder = recorder or HistoryRecorder(db)

    def dispatch(
        self,
        kind: str,
        recipients: Sequence[str],
        ticket: Ticket,
        acting_user_id: Optional[int] = None,
    ) -> DispatchOutcome:
        recipients = list(recipients)
        subject, body = render(kind, ticket, self.frontend_url)

        error = None
        try:
            self.sender.send(recipients, subject, body)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            logger.error(
                "Failed to send %s email for ticket #%s: %s", kind, ticket.id, error
            )
        else:
            logger.info(
                "Ticket %s email sent to: %s", kind, ", ".join(recipients)
            )

        outcome = DispatchOutcome(
            kind=kind,
            ticket_id=ticket.id,
            recipients=recipients,
            subject=subject,
            success=error is None,
            error=error,
        )
        self._log(outcome, acting_user_id)

        if outcome.success and acting_user_id is not None:
            self.recorder.append(
                ticket.id,
                acting_user_id,
                CHANGE_EMAIL_SENT,
                description=(
                    f"{kind.capitalize()} email sent to "
                    f"{len(recipients)} recipient(s)"
                ),
            )
        return outcome

    def _log(self, outcome: DispatchOutcome, acting_user_id: Optional[int]) -> None:
        try:
            self.db.add(
                EmailLog(
                    ticket_id=outcome.ticket_id,
                    email_type=outcome.kind,
                    recipient_emails=", ".join(outcome.recipients),
                    subject=outcome.subject,
                    sent_by=acting_user_id,
                    success=outcome.success,
                    error_message=outcome.error,
                )
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to write email log for ticket #%s", outcome.ticket_id)

    # Convenience wrappers, one per notification kind

    def ticket_closed(self, recipient: str, ticket, acting_user_id=None):
        return self.dispatch(EMAIL_CLOSED, [recipient], ticket, acting_user_id)

    def ticket_overdue(self, recipients, ticket):
        return self.dispatch(EMAIL_OVERDUE, recipients, ticket, None)
