# dept_helpdesk/backend/app/api/v1/users.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ...auth import get_password_hash, require_admin
from ...db import get_db, utcnow
from ...models.department import Department
from ...models.user import User
from ...schemas.auth import PasswordReset, UserCreate, UserRead, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _check_email_free(db: Session, email: str, user_id: Optional[int] = None) -> None:
    query = db.query(User.id).filter(User.email == email)
    if user_id is not None:
        query = query.filter(User.id != user_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Email already exists")


def _check_department(db: Session, department_id: Optional[int]) -> None:
    if department_id is not None and db.get(Department, department_id) is None:
        raise HTTPException(status_code=400, detail="Invalid department ID")


@router.get("", response_model=List[UserRead])
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return (
        db.query(User)
        .options(joinedload(User.department))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _check_email_free(db, payload.email)
    _check_department(db, payload.department_id)

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        is_admin=payload.is_admin,
        department_id=payload.department_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s created by admin %s", user.id, admin.id)
    return user


@router.put("/{user_id}", response_model=UserRead)
@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No updates provided")
    for name in ("name", "email", "is_active"):
        if name in changes and changes[name] is None:
            raise HTTPException(status_code=400, detail=f"{name} cannot be empty")
    if "email" in changes:
        _check_email_free(db, changes["email"], user_id)
    if "department_id" in changes:
        _check_department(db, changes["department_id"])

    for name, value in changes.items():
        setattr(user, name, value)
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def _set_active(db: Session, user_id: int, active: bool) -> User:
    user = _get_user_or_404(db, user_id)
    user.is_active = active
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


@router.post("/{user_id}/deactivate", response_model=UserRead)
def deactivate_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Deactivated users cannot log in and stop receiving notifications."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    return _set_active(db, user_id, False)


@router.post("/{user_id}/activate", response_model=UserRead)
def activate_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _set_active(db, user_id, True)


@router.post("/{user_id}/change-password", response_model=UserRead)
def reset_user_password(
    user_id: int,
    payload: PasswordReset,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    user.password_hash = get_password_hash(payload.new_password)
    user.must_change_password = True
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user
