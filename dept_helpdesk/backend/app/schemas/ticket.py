# dept_helpdesk/backend/app/schemas/ticket.py

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

TicketStatus = Literal["Open", "Pending", "Closed"]


def _as_utc(value: datetime) -> datetime:
    # columns hold naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Serialized with an explicit offset ("...Z")
UtcDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class TicketCreate(BaseModel):
    """Naive datetimes in requests are taken as UTC."""

    title: str = Field(..., max_length=500)
    description: str
    assigned_department_id: int
    deadline: Optional[datetime] = None
    description_image_url: Optional[str] = Field(None, max_length=500)
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_mobile: Optional[str] = Field(None, max_length=50)
    car_bought: Optional[str] = Field(None, max_length=255)


class TicketUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    description_image_url: Optional[str] = Field(None, max_length=500)
    status: Optional[TicketStatus] = None
    assigned_department_id: Optional[int] = None
    deadline: Optional[datetime] = None
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_mobile: Optional[str] = Field(None, max_length=50)
    car_bought: Optional[str] = Field(None, max_length=255)


class TicketRead(BaseModel):
    id: int
    title: str
    description: str
    description_image_url: Optional[str] = None
    status: str
    created_by: int
    assigned_department_id: int
    deadline: UtcDateTime
    customer_name: Optional[str] = None
    customer_mobile: Optional[str] = None
    car_bought: Optional[str] = None
    created_at: UtcDateTime
    updated_at: UtcDateTime
    closed_at: Optional[UtcDateTime] = None

    creator_name: Optional[str] = None
    creator_email: Optional[str] = None
    department_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TicketHistoryRead(BaseModel):
    id: int
    ticket_id: int
    changed_by: Optional[int] = None
    change_type: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: Optional[str] = None
    created_at: UtcDateTime
    changer_name: Optional[str] = None
    changer_department: Optional[str] = None
