# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["OVERDUE_SWEEP_ENABLED"] = "false"

from dataclasses import dataclass  # noqa: E402
from typing import List  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from dept_helpdesk.backend.app import models  # noqa: E402,F401
from dept_helpdesk.backend.app.db import Base  # noqa: E402
from dept_helpdesk.backend.app.lifecycle.engine import TicketEngine  # noqa: E402
from dept_helpdesk.backend.app.lifecycle.mailer import EmailSender  # noqa: E402
from dept_helpdesk.backend.app.lifecycle.notifications import (  # noqa: E402
    NotificationDispatcher,
)
from dept_helpdesk.backend.app.models.department import Department  # noqa: E402
from dept_helpdesk.backend.app.models.user import User  # noqa: E402

FRONTEND_URL = "http://helpdesk.test"

# In-memory SQLite shared by every session in a test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@dataclass
class SentEmail:
    recipients: List[str]
    subject: str
    html_body: str


class RecordingSender(EmailSender):
    """Collects messages instead of talking to a mail server."""

    def __init__(self):
        self.sent: List[SentEmail] = []
        self.fail_with = None

    def send(self, recipients, subject, html_body):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentEmail(list(recipients), subject, html_body))


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def dispatcher(db_session, sender):
    return NotificationDispatcher(db_session, sender, FRONTEND_URL)


@pytest.fixture
def ticket_engine(db_session, dispatcher):
    return TicketEngine(db_session, dispatcher)


@pytest.fixture
def make_department(db_session):
    def _make(name):
        department = Department(name=name)
        db_session.add(department)
        db_session.commit()
        db_session.refresh(department)
        return department

    return _make


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(name=None, department=None, is_admin=False, is_active=True, password_hash="x"):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            password_hash=password_hash,
            is_admin=is_admin,
            is_active=is_active,
            department_id=department.id if department else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def workshop(make_department, make_user):
    """Two departments, two active service agents, a creator and an admin."""
    service = make_department("Service")
    sales = make_department("Sales")
    empty = make_department("Procurement")
    return {
        "service": service,
        "sales": sales,
        "empty": empty,
        "agent1": make_user("Agent One", department=service),
        "agent2": make_user("Agent Two", department=service),
        "inactive": make_user("Old Agent", department=service, is_active=False),
        "seller": make_user("Seller", department=sales),
        "creator": make_user("Creator"),
        "admin": make_user("Admin", is_admin=True),
    }


@pytest.fixture
def session_factory():
    return TestingSessionLocal
