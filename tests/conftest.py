"""
Shared fixtures: a file-backed SQLite database per test, a club, identities
and helpers that drive an event through its lifecycle.
"""

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clubhub.core.config import settings
from clubhub.core.db import Base, get_db, get_session_factory
from clubhub.models import Club
from clubhub.schemas.event import EventCreate, EventStatus
from clubhub.services.roster_service import RosterService
from clubhub.utils.policy import Identity, Role
from clubhub.utils.security import rate_limiter
from clubhub.utils.timeutil import utcnow

CLUB_ID = "club-robotics"
COORDINATOR_ID = "coord-1"

ORGANIZER = Identity(user_id="teacher-1", role=Role.teacher)
OTHER_TEACHER = Identity(user_id="teacher-2", role=Role.teacher)
ADMIN = Identity(user_id="admin-1", role=Role.admin)
COORDINATOR = Identity(user_id=COORDINATOR_ID, role=Role.student)


def student(user_id: str) -> Identity:
    return Identity(user_id=user_id, role=Role.student)


@pytest.fixture
def engine(tmp_path):
    """Create test database engine"""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def club(db_session):
    club = Club(id=CLUB_ID, name="Robotics Club", category="technology", coordinator_id=COORDINATOR_ID)
    db_session.add(club)
    db_session.commit()
    return club


@pytest.fixture
def make_event(db_session, club):
    """Factory creating an event and moving it to ``status``"""

    def _make(capacity=2, status=EventStatus.published, deadline_in=timedelta(days=7), title="Robot Build Night"):
        now = utcnow()
        payload = EventCreate(
            club_id=CLUB_ID,
            title=title,
            capacity=capacity,
            registration_deadline=now + deadline_in,
            event_date=now + deadline_in + timedelta(days=1),
        )
        event = RosterService.create_event(db_session, ORGANIZER, payload)
        path = {
            EventStatus.draft: [],
            EventStatus.published: [EventStatus.published],
            EventStatus.upcoming: [EventStatus.published, EventStatus.upcoming],
            EventStatus.ongoing: [EventStatus.published, EventStatus.ongoing],
            EventStatus.completed: [EventStatus.published, EventStatus.completed],
        }[status]
        for step in path:
            event = RosterService.transition_status(db_session, ORGANIZER, event.id, step)
        return event

    return _make


@pytest.fixture
def attended_event(db_session, make_event):
    """Completed event attended by alice and bob; carol registered but absent"""
    event = make_event(capacity=10)
    for name in ("alice", "bob", "carol"):
        RosterService.register(db_session, student(name), event.id)
    RosterService.transition_status(db_session, ORGANIZER, event.id, EventStatus.ongoing)
    RosterService.mark_attendance(db_session, ORGANIZER, event.id, ["alice", "bob"])
    return RosterService.transition_status(db_session, ORGANIZER, event.id, EventStatus.completed)


@pytest.fixture
def client(session_factory):
    """TestClient bound to the per-test database"""
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    rate_limiter.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(identity: Identity, token: str = None) -> dict:
    token = token or settings.GATEWAY_TOKEN
    return {
        "Authorization": f"Bearer {token}",
        "X-User-Id": identity.user_id,
        "X-User-Role": identity.role.value,
    }
