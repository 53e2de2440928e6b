# dept_helpdesk/backend/app/api/v1/departments.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...db import get_db
from ...models.department import Department
from ...models.user import User
from ...schemas.auth import DepartmentCreate, DepartmentRead, UserRead

router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=List[DepartmentRead])
def list_departments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return db.query(Department).order_by(Department.name).all()


@router.post("", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Department name is required")
    if db.query(Department.id).filter(Department.name == name).first():
        raise HTTPException(status_code=400, detail="Department already exists")

    department = Department(name=name)
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


@router.get("/{department_id}/users", response_model=List[UserRead])
def list_department_users(
    department_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active members only; these are the people assignment mails go to."""
    return (
        db.query(User)
        .filter(User.department_id == department_id, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
