# dept_helpdesk/backend/app/models/email_log.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    event,
)

from ..db import Base, utcnow
from .ticket_history import _refuse_update

EMAIL_ASSIGNED = "assigned"
EMAIL_REASSIGNED = "reassigned"
EMAIL_CLOSED = "closed"
EMAIL_OVERDUE = "overdue"
EMAIL_TYPES = (EMAIL_ASSIGNED, EMAIL_REASSIGNED, EMAIL_CLOSED, EMAIL_OVERDUE)


class EmailLog(Base):
    """One notification attempt, successful or not."""

    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    email_type = Column(String(100), nullable=False, index=True)
    recipient_emails = Column(Text, nullable=False)
    subject = Column(String(500), nullable=True)
    sent_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)

    sent_at = Column(DateTime, default=utcnow, nullable=False, index=True)


event.listen(EmailLog, "before_update", _refuse_update)
event.listen(EmailLog, "before_delete", _refuse_update)
