# dept_helpdesk/backend/app/schemas/email_log.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .ticket import UtcDateTime


class EmailLogRead(BaseModel):
    id: int
    ticket_id: Optional[int] = None
    email_type: str
    recipient_emails: str
    subject: Optional[str] = None
    sent_by: Optional[int] = None
    success: bool
    error_message: Optional[str] = None
    sent_at: UtcDateTime

    model_config = ConfigDict(from_attributes=True)


class EmailTypeCount(BaseModel):
    email_type: str
    count: int


class EmailPeriodStats(BaseModel):
    total: int
    successful: int
    failed: int
    byType: List[EmailTypeCount]


class EmailStats(BaseModel):
    today: EmailPeriodStats
    month: EmailPeriodStats
