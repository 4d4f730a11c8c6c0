"""
Unit tests for the usage / audit event log.
"""
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models.usage import UsageEvent
from app.services.session_service import create_session, activate_session, complete_session
from app.services.usage_service import (
    record_event,
    get_month_event_counts,
    list_session_events,
    SESSION_CREATED,
    FEEDBACK_BASIC_GENERATED,
)


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


def test_month_key_format():
    assert UsageEvent.get_month_key(datetime(2026, 1, 15)) == "2026-01"
    assert len(UsageEvent.get_month_key()) == 7


def test_record_event_commit(db):
    event = record_event(db, SESSION_CREATED, user_id="user-1", session_id="s-1", details={"k": "v"}, commit=True)

    assert event.id is not None
    assert event.month_key == UsageEvent.get_month_key(event.occurred_at)
    assert event.expires_at > event.occurred_at
    assert event.details == {"k": "v"}


def test_record_event_joins_caller_transaction(db):
    record_event(db, SESSION_CREATED, user_id="user-1")
    db.rollback()

    assert db.query(UsageEvent).count() == 0


def test_month_event_counts(db):
    for _ in range(3):
        record_event(db, SESSION_CREATED, user_id="user-1")
    record_event(db, FEEDBACK_BASIC_GENERATED, user_id="user-1")
    record_event(db, SESSION_CREATED, user_id="user-2")
    db.commit()

    counts = get_month_event_counts(db, "user-1")

    assert counts == {SESSION_CREATED: 3, FEEDBACK_BASIC_GENERATED: 1}
    assert get_month_event_counts(db, "user-1", month_key="1999-01") == {}


def test_session_lifecycle_events_in_order(db):
    session = create_session(db, user_id="user-1", job_title="SRE")
    activate_session(db, session.id)
    complete_session(db, session.id)

    events = list_session_events(db, session.id)

    assert [event.event_type for event in events] == ["session_created", "session_started", "session_completed"]
    assert all(event.user_id == "user-1" for event in events)
