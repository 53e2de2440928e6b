# dept_helpdesk/backend/app/models/__init__.py

from .department import Department
from .user import User
from .ticket import Ticket
from .ticket_history import TicketHistory
from .email_log import EmailLog

__all__ = ["Department", "User", "Ticket", "TicketHistory", "EmailLog"]
