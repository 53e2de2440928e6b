# dept_helpdesk/backend/app/lifecycle/overdue.py
"""
Overdue detection.

A ticket is notified once per overdue occurrence: the sweep claims it by
stamping overdue_notified_at with a conditional UPDATE before sending, so
later sweeps (or an overlapping one) skip it. The engine clears the marker
when the ticket closes or its deadline moves later. With a re-notify
interval configured, a stale marker makes the ticket eligible again.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..db import utcnow
from ..models.ticket import STATUS_CLOSED, Ticket
from .directory import all_active_user_emails
from .mailer import EmailSender
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    checked_at: datetime
    matched: List[int] = field(default_factory=list)
    notified: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)


class OverdueSweep:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: EmailSender,
        frontend_url: str,
        renotify_after: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.sender = sender
        self.frontend_url = frontend_url
        self.renotify_after = renotify_after
        self.clock = clock

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or self.clock()
        report = SweepReport(checked_at=now)
        logger.info("Checking for overdue tickets...")

        db = self.session_factory()
        try:
            candidates = self._find_candidates(db, now)
            if not candidates:
                logger.info("No overdue tickets found")
                return report

            recipients = all_active_user_emails(db)
            if not recipients:
                logger.warning(
                    "%d overdue ticket(s) but no active users to notify", len(candidates)
                )
                report.matched.extend(ticket_id for ticket_id, _ in candidates)
                report.skipped.extend(ticket_id for ticket_id, _ in candidates)
                return report

            dispatcher = NotificationDispatcher(db, self.sender, self.frontend_url)
            for ticket_id, marker in candidates:
                report.matched.append(ticket_id)
                try:
                    if not self._claim(db, ticket_id, marker, now):
                        logger.debug("Ticket #%s already claimed, skipping", ticket_id)
                        report.skipped.append(ticket_id)
                        continue
                    ticket = db.get(Ticket, ticket_id)
                    logger.info("Sending overdue notification for ticket #%s", ticket_id)
                    outcome = dispatcher.ticket_overdue(recipients, ticket)
                except Exception:
                    db.rollback()
                    logger.exception("Error processing overdue ticket #%s", ticket_id)
                    report.failed.append(ticket_id)
                    continue
                if outcome.success:
                    report.notified.append(ticket_id)
                else:
                    report.failed.append(ticket_id)

            logger.info("Processed %d overdue ticket(s)", len(report.matched))
        except Exception:
            db.rollback()
            logger.exception("Error checking overdue tickets")
        finally:
            db.close()
        return report

    def _find_candidates(self, db: Session, now: datetime) -> List[Tuple[int, Optional[datetime]]]:
        marker = Ticket.overdue_notified_at
        query = db.query(Ticket.id, marker).filter(
            Ticket.status != STATUS_CLOSED,
            Ticket.deadline < now,
        )
        if self.renotify_after:
            query = query.filter(or_(marker.is_(None), marker <= now - self.renotify_after))
        else:
            query = query.filter(marker.is_(None))
        return [(row[0], row[1]) for row in query.order_by(Ticket.deadline, Ticket.id).all()]

    def _claim(
        self, db: Session, ticket_id: int, marker: Optional[datetime], now: datetime
    ) -> bool:
        """Compare-and-set the marker; False if someone else got there first."""
        stmt = update(Ticket).where(
            Ticket.id == ticket_id,
            Ticket.status != STATUS_CLOSED,
        )
        if marker is None:
            stmt = stmt.where(Ticket.overdue_notified_at.is_(None))
        else:
            stmt = stmt.where(Ticket.overdue_notified_at == marker)
        # keep updated_at: the sweep is not an edit
        stmt = stmt.values(
            overdue_notified_at=now, updated_at=Ticket.updated_at
        ).execution_options(synchronize_session=False)

        claimed = db.execute(stmt).rowcount == 1
        db.commit()
        return claimed


class OverdueScheduler:
    """Runs an OverdueSweep on a fixed interval in a background thread."""

    JOB_ID = "overdue_sweep"

    def __init__(self, sweep: OverdueSweep, interval_seconds: int = 60):
        self.sweep = sweep
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        self.scheduler.add_job(
            self.sweep.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="Check overdue tickets",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info(
                "Overdue sweep started - checking every %s seconds", self.interval_seconds
            )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Overdue sweep stopped")
