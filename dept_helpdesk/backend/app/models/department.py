# dept_helpdesk/backend/app/models/department.py
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..db import Base, utcnow


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    users = relationship("User", back_populates="department")
