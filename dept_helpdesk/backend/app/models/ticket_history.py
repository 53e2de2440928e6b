# dept_helpdesk/backend/app/models/ticket_history.py

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from ..db import Base, utcnow

CHANGE_CREATED = "created"
CHANGE_STATUS = "status_changed"
CHANGE_REASSIGNED = "reassigned"
CHANGE_FIELD = "field_updated"
CHANGE_EMAIL_SENT = "email_sent"


class TicketHistory(Base):
    __tablename__ = "ticket_history"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL only for rows written by the system itself
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    change_type = Column(String(100), nullable=False)
    field_name = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    ticket = relationship("Ticket", back_populates="history_entries")
    changed_by_user = relationship("User")


class AppendOnlyError(RuntimeError):
    """Raised when something tries to rewrite an audit row."""


def _refuse_update(mapper, connection, target):
    raise AppendOnlyError(f"{target.__tablename__} rows are append-only")


event.listen(TicketHistory, "before_update", _refuse_update)
event.listen(TicketHistory, "before_delete", _refuse_update)
