# dept_helpdesk/backend/app/api/v1/tickets.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ...auth import get_current_user
from ...db import get_db
from ...lifecycle.engine import TicketEngine
from ...lifecycle.history import HistoryRecorder
from ...models.ticket import STATUS_CLOSED, STATUS_OPEN, STATUS_PENDING, Ticket
from ...models.user import User
from ...schemas.ticket import TicketCreate, TicketHistoryRead, TicketRead, TicketUpdate
from .deps import get_history_recorder, get_ticket_engine

router = APIRouter(prefix="/tickets", tags=["tickets"])

_STATUS_FILTERS = {
    "open": (STATUS_OPEN, STATUS_PENDING),
    "closed": (STATUS_CLOSED,),
}


def _ticket_query(db: Session):
    return db.query(Ticket).options(
        joinedload(Ticket.creator), joinedload(Ticket.department)
    )


@router.get("", response_model=List[TicketRead])
def list_tickets(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _ticket_query(db).order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()


@router.get("/status/{status_filter}", response_model=List[TicketRead])
def list_tickets_by_status(
    status_filter: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    statuses = _STATUS_FILTERS.get(status_filter)
    if statuses is None:
        raise HTTPException(status_code=400, detail="Invalid status filter")
    return (
        _ticket_query(db)
        .filter(Ticket.status.in_(statuses))
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .all()
    )


@router.get("/my-department", response_model=List[TicketRead])
def list_my_department_tickets(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not current_user.department_id:
        return []
    return (
        _ticket_query(db)
        .filter(Ticket.assigned_department_id == current_user.department_id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .all()
    )


@router.get("/{ticket_id}/history", response_model=List[TicketHistoryRead])
def get_ticket_history(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    return recorder.read(ticket_id)


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ticket = _ticket_query(db).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    current_user: User = Depends(get_current_user),
    engine: TicketEngine = Depends(get_ticket_engine),
):
    result = engine.create(payload.model_dump(), current_user)
    return result.ticket


@router.put("/{ticket_id}", response_model=TicketRead)
@router.patch("/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    current_user: User = Depends(get_current_user),
    engine: TicketEngine = Depends(get_ticket_engine),
):
    """
    Partial edit. Only the fields present in the body are applied, and every
    changed field is recorded in ticket_history.
    """
    result = engine.update(ticket_id, current_user, payload.model_dump(exclude_unset=True))
    return result.ticket
