# dept_helpdesk/backend/app/lifecycle/directory.py
"""Recipient lookups over users and departments."""
from typing import List

from sqlalchemy.orm import Session

from ..models.user import User


def department_user_emails(db: Session, department_id: int) -> List[str]:
    rows = (
        db.query(User.email)
        .filter(User.department_id == department_id, User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )
    return [email for (email,) in rows]


def all_active_user_emails(db: Session) -> List[str]:
    rows = db.query(User.email).filter(User.is_active.is_(True)).order_by(User.id).all()
    return [email for (email,) in rows]
