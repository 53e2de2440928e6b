# dept_helpdesk/backend/app/lifecycle/history.py
"""
Append-only ticket audit trail.

Writes here are best-effort: a failed insert is logged and dropped so it
never undoes the ticket change it describes.
"""
import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from ..models.department import Department
from ..models.ticket_history import TicketHistory
from ..models.user import User

logger = logging.getLogger(__name__)


def stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class HistoryRecorder:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        ticket_id: int,
        changed_by: Optional[int],
        change_type: str,
        field_name: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
        description: Optional[str] = None,
    ) -> Optional[TicketHistory]:
        entry = TicketHistory(
            ticket_id=ticket_id,
            changed_by=changed_by,
            change_type=change_type,
            field_name=field_name,
            old_value=stringify(old_value),
            new_value=stringify(new_value),
            description=description,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Failed to log %s history for ticket %s", change_type, ticket_id
            )
            return None
        return entry

    def read(self, ticket_id: int) -> List[dict]:
        """History for one ticket, most recent first, with changer details."""
        changer = aliased(User)
        changer_dept = aliased(Department)
        rows = (
            self.db.query(TicketHistory, changer.name, changer_dept.name)
            .outerjoin(changer, TicketHistory.changed_by == changer.id)
            .outerjoin(changer_dept, changer.department_id == changer_dept.id)
            .filter(TicketHistory.ticket_id == ticket_id)
            .order_by(TicketHistory.created_at.desc(), TicketHistory.id.desc())
            .all()
        )
        return [
            {
                "id": entry.id,
                "ticket_id": entry.ticket_id,
                "changed_by": entry.changed_by,
                "change_type": entry.change_type,
                "field_name": entry.field_name,
                "old_value": entry.old_value,
                "new_value": entry.new_value,
                "description": entry.description,
                "created_at": entry.created_at,
                "changer_name": changer_name,
                "changer_department": department_name,
            }
            for entry, changer_name, department_name in rows
        ]
