"""
Unit tests for the session state machine.
Tests transitions, idempotent re-entry, conflicting terminal states and timing.
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models.interview_session import InterviewSession, SessionStatus, FeedbackStatus
from app.db.models.usage import UsageEvent
from app.core.clock import utcnow, seconds_between
from app.core.exceptions import SessionNotFoundError, InvalidSessionStateError
from app.services.session_service import (
    create_session,
    get_session,
    activate_session,
    engage_fallback,
    complete_session,
    fail_session,
    soft_delete_session,
    handle_transport_signal,
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


@pytest.fixture
def pending_session(db):
    return create_session(
        db,
        user_id="user-1",
        job_title="Backend Engineer",
        company="Acme",
        interview_type="technical",
        jd_context="Python, Postgres and Kafka",
        resume_snapshot={"skills": ["python", "postgres"]},
    )


def _event_types(db, session_id):
    return [
        event.event_type
        for event in db.query(UsageEvent)
        .filter(UsageEvent.session_id == session_id)
        .order_by(UsageEvent.id)
        .all()
    ]


def test_create_session_defaults(db, pending_session):
    """New sessions start PENDING with no feedback and a retention expiry."""
    assert pending_session.status == SessionStatus.PENDING
    assert pending_session.feedback_status == FeedbackStatus.NONE.value
    assert pending_session.fallback_mode is False
    assert pending_session.openai_session_id is None
    assert pending_session.expires_at > utcnow() + timedelta(days=364)
    assert _event_types(db, pending_session.id) == ["session_created"]


def test_resume_snapshot_is_copied(db):
    resume = {"skills": ["python"]}
    session = create_session(db, user_id="user-1", job_title="Engineer", resume_snapshot=resume)
    resume["skills"].append("go")

    assert get_session(db, session.id).resume_snapshot == {"skills": ["python"]}


def test_get_session_not_found(db):
    with pytest.raises(SessionNotFoundError):
        get_session(db, "missing")


def test_activate_live(db, pending_session):
    result = activate_session(db, pending_session.id, openai_session_id="sess_live_1")

    assert result.changed is True
    assert result.session.status == SessionStatus.ACTIVE
    assert result.session.openai_session_id == "sess_live_1"
    assert result.session.fallback_mode is False
    assert result.session.started_at is not None
    assert result.session.start_time is not None
    assert result.session.is_terminal is False


def test_activate_without_link_uses_fallback(db, pending_session):
    result = activate_session(db, pending_session.id)

    assert result.session.status == SessionStatus.ACTIVE
    assert result.session.fallback_mode is True
    assert result.session.openai_session_id is None


def test_activate_twice_is_noop(db, pending_session):
    first = activate_session(db, pending_session.id, openai_session_id="sess_a")
    started_at = first.session.started_at

    second = activate_session(db, pending_session.id, openai_session_id="sess_b")

    assert second.changed is False
    assert second.session.openai_session_id == "sess_a"
    assert second.session.started_at == started_at
    assert _event_types(db, pending_session.id).count("session_started") == 1


def test_engage_fallback_on_active_session(db, pending_session):
    activate_session(db, pending_session.id, openai_session_id="sess_live")

    result = engage_fallback(db, pending_session.id)
    assert result.changed is True
    assert result.session.fallback_mode is True
    # live link id is kept for diagnostics
    assert result.session.openai_session_id == "sess_live"

    assert engage_fallback(db, pending_session.id).changed is False


def test_engage_fallback_on_pending_session_activates(db, pending_session):
    result = engage_fallback(db, pending_session.id)

    assert result.changed is True
    assert result.session.status == SessionStatus.ACTIVE
    assert result.session.fallback_mode is True


def test_complete_sets_timing(db, pending_session):
    """duration_seconds is derived from the started_at / ended_at pair."""
    activate_session(db, pending_session.id, openai_session_id="sess_live")
    session = get_session(db, pending_session.id)
    session.started_at = utcnow() - timedelta(seconds=95)
    session.start_time = session.started_at
    db.commit()

    result = complete_session(db, pending_session.id)

    session = result.session
    assert result.changed is True
    assert session.status == SessionStatus.COMPLETED
    assert session.ended_at is not None
    assert session.end_time is not None
    assert session.duration_seconds == seconds_between(session.started_at, session.ended_at)
    assert 94 <= session.duration_seconds <= 100
    assert session.duration == seconds_between(session.start_time, session.end_time)


def test_complete_uses_transport_end_time_for_call_clock(db, pending_session):
    start = utcnow() - timedelta(minutes=10)
    activate_session(db, pending_session.id, openai_session_id="sess_live", start_time=start)

    result = complete_session(db, pending_session.id, end_time=start + timedelta(minutes=7))

    assert result.session.duration == 420


def test_offset_transport_times_are_stored_as_utc(db, pending_session):
    """A start at 12:00+02:00 and an end at 10:30Z are thirty minutes apart."""
    start = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    end = datetime(2026, 1, 1, 10, 30, tzinfo=timezone.utc)

    handle_transport_signal(db, pending_session.id, "connected", openai_session_id="sess_live", timestamp=start)
    result = handle_transport_signal(db, pending_session.id, "ended", timestamp=end)

    session = result.session
    assert session.start_time == datetime(2026, 1, 1, 10, 0)
    assert session.end_time == datetime(2026, 1, 1, 10, 30)
    assert session.duration == 1800


def test_double_completion_is_single_transition(db, pending_session):
    """Two end-of-call signals: one transition, the second observes COMPLETED."""
    activate_session(db, pending_session.id)
    first = complete_session(db, pending_session.id)
    ended_at = first.session.ended_at

    second = complete_session(db, pending_session.id)

    assert first.changed is True
    assert second.changed is False
    assert second.session.ended_at == ended_at
    assert _event_types(db, pending_session.id).count("session_completed") == 1


def test_lost_completion_race_is_noop(db, pending_session):
    """A writer holding a stale ACTIVE snapshot loses the compare-and-swap quietly."""
    activate_session(db, pending_session.id)

    racing_db = sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)()
    try:
        stale = racing_db.query(InterviewSession).filter(InterviewSession.id == pending_session.id).first()
        assert stale.status == SessionStatus.ACTIVE

        complete_session(db, pending_session.id)

        result = complete_session(racing_db, pending_session.id)
        assert result.changed is False
        assert result.session.status == SessionStatus.COMPLETED
    finally:
        racing_db.close()

    assert _event_types(db, pending_session.id).count("session_completed") == 1


def test_complete_pending_session_fails(db, pending_session):
    with pytest.raises(InvalidSessionStateError):
        complete_session(db, pending_session.id)


def test_fail_then_complete_conflicts(db, pending_session):
    activate_session(db, pending_session.id)
    result = fail_session(db, pending_session.id, reason="connection lost, no fallback")

    assert result.changed is True
    assert result.session.status == SessionStatus.FAILED
    assert result.session.failure_reason == "connection lost, no fallback"
    assert result.session.feedback_status == FeedbackStatus.NONE.value

    with pytest.raises(InvalidSessionStateError):
        complete_session(db, pending_session.id)


def test_complete_then_fail_conflicts(db, pending_session):
    activate_session(db, pending_session.id)
    complete_session(db, pending_session.id)

    with pytest.raises(InvalidSessionStateError):
        fail_session(db, pending_session.id, reason="late error")

    assert get_session(db, pending_session.id).status == SessionStatus.COMPLETED


def test_fail_twice_is_noop(db, pending_session):
    fail_session(db, pending_session.id, reason="invalid resume")
    second = fail_session(db, pending_session.id, reason="other")

    assert second.changed is False
    assert second.session.failure_reason == "invalid resume"


def test_terminal_session_ignores_activation(db, pending_session):
    activate_session(db, pending_session.id)
    complete_session(db, pending_session.id)

    assert activate_session(db, pending_session.id).changed is False
    assert engage_fallback(db, pending_session.id).changed is False
    assert get_session(db, pending_session.id).status == SessionStatus.COMPLETED
    assert get_session(db, pending_session.id).is_terminal is True

def test_soft_delete_hides_session(db, pending_session):
    soft_delete_session(db, pending_session.id)

    with pytest.raises(SessionNotFoundError):
        get_session(db, pending_session.id)
    assert get_session(db, pending_session.id, include_deleted=True).deleted_at is not None


def test_transport_signals(db, pending_session):
    assert handle_transport_signal(db, pending_session.id, "connected", openai_session_id="sess_x").changed
    assert handle_transport_signal(db, pending_session.id, "fallback_engaged").changed
    result = handle_transport_signal(db, pending_session.id, "ended")

    assert result.changed is True
    assert result.session.status == SessionStatus.COMPLETED
    assert result.session.fallback_mode is True
    assert _event_types(db, pending_session.id) == [
        "session_created",
        "session_started",
        "session_completed",
    ]


def test_transport_error_fails_session(db, pending_session):
    handle_transport_signal(db, pending_session.id, "connected", openai_session_id="sess_x")
    result = handle_transport_signal(db, pending_session.id, "errored", reason="socket closed")

    assert result.session.status == SessionStatus.FAILED
    assert result.session.failure_reason == "socket closed"


def test_unknown_transport_signal(db, pending_session):
    with pytest.raises(ValueError):
        handle_transport_signal(db, pending_session.id, "paused")

