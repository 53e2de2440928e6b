# dept_helpdesk/backend/app/lifecycle/engine.py
"""
Ticket state engine.

create/update validate and authorize first, commit the ticket row in one
statement, then record history and send notifications. Anything that goes
wrong after the commit ends up in MutationResult.side_effect_errors
instead of being raised.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import to_utc_naive, utcnow
from ..models.department import Department
from ..models.email_log import EMAIL_ASSIGNED, EMAIL_REASSIGNED
from ..models.ticket import STATUS_CLOSED, STATUS_OPEN, TICKET_STATUSES, Ticket
from ..models.ticket_history import (
    CHANGE_CREATED,
    CHANGE_FIELD,
    CHANGE_REASSIGNED,
    CHANGE_STATUS,
    TicketHistory,
)
from ..models.user import User
from .directory import department_user_emails
from .errors import Forbidden, InvalidReference, MissingField, NoChanges, NotFound
from .history import HistoryRecorder
from .notifications import DispatchOutcome, NotificationDispatcher

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE = timedelta(hours=24)

# Order here is the order history rows are written in
EDITABLE_FIELDS = (
    "title",
    "description",
    "description_image_url",
    "status",
    "assigned_department_id",
    "deadline",
    "customer_name",
    "customer_mobile",
    "car_bought",
)
NOT_NULL_FIELDS = ("title", "description", "status", "assigned_department_id", "deadline")
ADMIN_ONLY_FIELDS = ("description", "description_image_url")


@dataclass
class MutationResult:
    ticket: Ticket
    history: List[TicketHistory] = field(default_factory=list)
    notifications: List[DispatchOutcome] = field(default_factory=list)
    side_effect_errors: List[str] = field(default_factory=list)


class TicketEngine:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        recorder: Optional[HistoryRecorder] = None,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.recorder = recorder or HistoryRecorder(db)
        self.clock = clock

    # create

    def create(self, fields: Mapping[str, Any], actor: User) -> MutationResult:
        title = fields.get("title")
        description = fields.get("description")
        department_id = fields.get("assigned_department_id")
        if not title or not description or not department_id:
            raise MissingField("Title, description, and assigned department are required")

        department = self.db.get(Department, department_id)
        if department is None:
            raise InvalidReference("Invalid department ID")

        now = self.clock()
        deadline = fields.get("deadline")
        deadline = to_utc_naive(deadline) if deadline else now + DEFAULT_DEADLINE

        ticket = Ticket(
            title=title,
            description=description,
            description_image_url=fields.get("description_image_url") or None,
            status=STATUS_OPEN,
            created_by=actor.id,
            assigned_department_id=department.id,
            deadline=deadline,
            customer_name=fields.get("customer_name") or None,
            customer_mobile=fields.get("customer_mobile") or None,
            car_bought=fields.get("car_bought") or None,
            created_at=now,
            updated_at=now,
        )
        self._commit(ticket)
        logger.info("Ticket #%s created by user %s", ticket.id, actor.id)

        result = MutationResult(ticket=ticket)
        self._notify_department(result, EMAIL_ASSIGNED, department.id, actor)
        self._record(
            result,
            actor,
            CHANGE_CREATED,
            description=f"Ticket created and assigned to {department.name}",
        )
        return result

    # update

    def update(self, ticket_id: int, actor: User, changes: Mapping[str, Any]) -> MutationResult:
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFound("Ticket not found")

        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if not changes:
            raise NoChanges("No updates provided")

        self._authorize(ticket, actor, changes)

        for name in NOT_NULL_FIELDS:
            if name in changes and changes[name] is None:
                raise MissingField(f"{name} cannot be empty")
        if "status" in changes and changes["status"] not in TICKET_STATUSES:
            raise InvalidReference(f"Invalid status '{changes['status']}'")
        if "deadline" in changes:
            changes["deadline"] = to_utc_naive(changes["deadline"])

        new_department = None
        if (
            "assigned_department_id" in changes
            and changes["assigned_department_id"] != ticket.assigned_department_id
        ):
            new_department = self.db.get(Department, changes["assigned_department_id"])
            if new_department is None:
                raise InvalidReference("Invalid department ID")

        before = {name: getattr(ticket, name) for name in changes}
        old_department_name = ticket.department.name if ticket.department else None
        closing = changes.get("status") == STATUS_CLOSED and ticket.status != STATUS_CLOSED

        now = self.clock()
        for name, value in changes.items():
            setattr(ticket, name, value)
        ticket.updated_at = now
        if closing:
            ticket.closed_at = now
            ticket.overdue_notified_at = None
        if "deadline" in changes and changes["deadline"] > before["deadline"]:
            ticket.overdue_notified_at = None
        self._commit(ticket)

        result = MutationResult(ticket=ticket)
        for name in EDITABLE_FIELDS:
            if name not in changes or before[name] == changes[name]:
                continue
            old, new = before[name], changes[name]
            if name == "status":
                self._record(
                    result, actor, CHANGE_STATUS, name, old, new,
                    f"Status changed from {old} to {new}",
                )
            elif name == "assigned_department_id":
                self._record(
                    result, actor, CHANGE_REASSIGNED, name,
                    old_department_name, new_department.name,
                    f"Ticket reassigned from {old_department_name} to {new_department.name}",
                )
            elif name == "deadline":
                self._record(result, actor, CHANGE_FIELD, name, old, new, "Deadline modified")
            elif name == "description_image_url":
                self._record(
                    result, actor, CHANGE_FIELD, name, old, new, "Description image updated"
                )
            else:
                self._record(result, actor, CHANGE_FIELD, name, old, new)

        if new_department is not None:
            self._notify_department(result, EMAIL_REASSIGNED, new_department.id, actor)
        if closing:
            self._notify_creator_closed(result, actor)

        return result

    # helpers

    def _authorize(self, ticket: Ticket, actor: User, changes: Mapping[str, Any]) -> None:
        if "deadline" in changes and not (actor.is_admin or ticket.created_by == actor.id):
            raise Forbidden("Only admin or ticket creator can modify deadline")
        if any(name in changes for name in ADMIN_ONLY_FIELDS) and not actor.is_admin:
            raise Forbidden("Only admin can modify ticket description")

    def _commit(self, ticket: Ticket) -> None:
        try:
            self.db.add(ticket)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(ticket)

    def _record(
        self,
        result: MutationResult,
        actor: User,
        change_type: str,
        field_name: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
        description: Optional[str] = None,
    ) -> None:
        entry = self.recorder.append(
            result.ticket.id,
            actor.id,
            change_type,
            field_name,
            old_value,
            new_value,
            description,
        )
        if entry is None:
            result.side_effect_errors.append(
                f"history: could not record {change_type} {field_name or ''}".strip()
            )
        else:
            result.history.append(entry)

    def _notify_department(
        self, result: MutationResult, kind: str, department_id: int, actor: User
    ) -> None:
        try:
            emails = department_user_emails(self.db, department_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Could not resolve recipients for department %s", department_id)
            result.side_effect_errors.append(f"notification: {exc}")
            return
        if not emails:
            logger.info("No active users in department %s, skipping email", department_id)
            return
        outcome = self.dispatcher.dispatch(kind, emails, result.ticket, actor.id)
        self._collect(result, outcome)

    def _notify_creator_closed(self, result: MutationResult, actor: User) -> None:
        try:
            creator = self.db.get(User, result.ticket.created_by)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Could not load creator of ticket #%s", result.ticket.id)
            result.side_effect_errors.append(f"notification: {exc}")
            return
        outcome = self.dispatcher.ticket_closed(creator.email, result.ticket, actor.id)
        self._collect(result, outcome)

    @staticmethod
    def _collect(result: MutationResult, outcome: DispatchOutcome) -> None:
        result.notifications.append(outcome)
        if not outcome.success:
            result.side_effect_errors.append(f"notification: {outcome.kind}: {outcome.error}")
