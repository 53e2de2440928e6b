# dept_helpdesk/backend/app/models/ticket.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..db import Base, utcnow

STATUS_OPEN = "Open"
STATUS_PENDING = "Pending"
STATUS_CLOSED = "Closed"
TICKET_STATUSES = (STATUS_OPEN, STATUS_PENDING, STATUS_CLOSED)


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(
            "status IN ('Open', 'Pending', 'Closed')", name="ck_tickets_status"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    description_image_url = Column(String(500), nullable=True)

    status = Column(String(50), nullable=False, default=STATUS_OPEN, index=True)

    created_by = Column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_department_id = Column(
        Integer,
        ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    deadline = Column(DateTime, nullable=False, index=True)

    # Customer details
    customer_name = Column(String(255), nullable=True)
    customer_mobile = Column(String(50), nullable=True)
    car_bought = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)

    # Set by the overdue sweep when it claims the ticket
    overdue_notified_at = Column(DateTime, nullable=True)

    creator = relationship("User")
    department = relationship("Department")
    history_entries = relationship(
        "TicketHistory", back_populates="ticket", passive_deletes=True
    )

    # Joined display fields for API responses

    @property
    def creator_name(self):
        return self.creator.name if self.creator else None

    @property
    def creator_email(self):
        return self.creator.email if self.creator else None

    @property
    def department_name(self):
        return self.department.name if self.department else None
