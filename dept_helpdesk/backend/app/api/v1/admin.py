# dept_helpdesk/backend/app/api/v1/admin.py
from datetime import timezone

from fastapi import APIRouter, Depends, Request

from ...auth import require_admin
from ...models.user import User

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/overdue-sweep")
def run_overdue_sweep_now(request: Request, admin: User = Depends(require_admin)):
    """Run one overdue sweep immediately instead of waiting for the scheduler."""
    report = request.app.state.overdue_sweep.run_once()
    return {
        "checked_at": report.checked_at.replace(tzinfo=timezone.utc),
        "matched": report.matched,
        "notified": report.notified,
        "failed": report.failed,
        "skipped": report.skipped,
    }
