# dept_helpdesk/backend/app/api/v1/email_logs.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...db import get_db, utcnow
from ...models.email_log import EmailLog
from ...models.user import User
from ...schemas.email_log import EmailLogRead, EmailPeriodStats, EmailStats, EmailTypeCount

router = APIRouter(prefix="/email-logs", tags=["email"])


def _period_stats(db: Session, since: datetime) -> EmailPeriodStats:
    rows = (
        db.query(EmailLog.email_type, EmailLog.success, func.count(EmailLog.id))
        .filter(EmailLog.sent_at >= since)
        .group_by(EmailLog.email_type, EmailLog.success)
        .all()
    )
    successful = sum(count for _, ok, count in rows if ok)
    failed = sum(count for _, ok, count in rows if not ok)

    by_type: dict = {}
    for email_type, _, count in rows:
        by_type[email_type] = by_type.get(email_type, 0) + count

    return EmailPeriodStats(
        total=successful + failed,
        successful=successful,
        failed=failed,
        byType=[
            EmailTypeCount(email_type=name, count=count)
            for name, count in sorted(by_type.items(), key=lambda item: -item[1])
        ],
    )


@router.get("/stats", response_model=EmailStats)
def email_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    now = utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)
    return EmailStats(
        today=_period_stats(db, start_of_day),
        month=_period_stats(db, start_of_month),
    )


@router.get("", response_model=List[EmailLogRead])
def list_email_logs(
    ticket_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(EmailLog)
    if ticket_id is not None:
        query = query.filter(EmailLog.ticket_id == ticket_id)
    return query.order_by(EmailLog.sent_at.desc(), EmailLog.id.desc()).limit(limit).all()
