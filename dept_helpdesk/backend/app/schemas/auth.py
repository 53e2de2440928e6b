# dept_helpdesk/backend/app/schemas/auth.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .ticket import UtcDateTime

MIN_PASSWORD_LENGTH = 6


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_change_password: bool = False


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    is_admin: bool = False
    department_id: Optional[int] = None


class UserUpdate(BaseModel):
    """Only fields present in the body are applied; department_id may be null."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
    department_id: Optional[int] = None


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    is_admin: bool
    is_active: bool
    must_change_password: bool = False
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    created_at: Optional[UtcDateTime] = None

    model_config = ConfigDict(from_attributes=True)


class DepartmentCreate(BaseModel):
    name: str = Field(..., max_length=255)


class DepartmentRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)
