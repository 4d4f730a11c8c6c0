"""
Unit tests for the transcript log.
Tests ordering, state guards and sequence-number collision handling.
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models.transcript import Transcript
from app.core import config
from app.core.clock import utcnow
from app.core.exceptions import InvalidSessionStateError, ConcurrencyConflictError
from app.services import transcript_service
from app.services.session_service import create_session, activate_session, complete_session, fail_session, get_session
from app.services.transcript_service import append_turn, list_turns, normalize_role


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
def active_session(db):
    session = create_session(db, user_id="user-1", job_title="Data Engineer")
    return activate_session(db, session.id, openai_session_id="sess_live").session


def _count_turns(db, session_id):
    return db.query(Transcript).filter(Transcript.session_id == session_id).count()


def test_sequence_numbers_are_contiguous(db, active_session):
    for i in range(5):
        append_turn(db, active_session.id, "interviewer" if i % 2 == 0 else "candidate", f"turn {i}")

    turns = list_turns(db, active_session.id)
    assert [turn.sequence_number for turn in turns] == [1, 2, 3, 4, 5]
    assert [turn.content for turn in turns] == [f"turn {i}" for i in range(5)]


def test_list_turns_orders_by_sequence_not_timestamp(db, active_session):
    """Wall clocks jitter; sequence_number is the authoritative order."""
    now = utcnow()
    append_turn(db, active_session.id, "interviewer", "first", timestamp=now)
    append_turn(db, active_session.id, "candidate", "second", timestamp=now - timedelta(seconds=30))
    append_turn(db, active_session.id, "interviewer", "third", timestamp=now - timedelta(seconds=60))

    assert [turn.content for turn in list_turns(db, active_session.id)] == ["first", "second", "third"]


def test_turn_fields_and_retention(db, active_session):
    turn = append_turn(
        db,
        active_session.id,
        "user",
        "I built the ingestion pipeline.",
        confidence=0.87,
        metadata={"source": "realtime"},
    )

    assert turn.role == "candidate"
    assert turn.confidence == pytest.approx(0.87)
    assert turn.turn_metadata == {"source": "realtime"}
    assert turn.timestamp is not None
    assert turn.expires_at > utcnow() + timedelta(days=364)


def test_role_aliases():
    assert normalize_role("assistant").value == "interviewer"
    assert normalize_role("User").value == "candidate"
    with pytest.raises(ValueError):
        normalize_role("system")


def test_append_to_pending_session_fails(db):
    session = create_session(db, user_id="user-1", job_title="Data Engineer")

    with pytest.raises(InvalidSessionStateError):
        append_turn(db, session.id, "candidate", "hello?")
    assert _count_turns(db, session.id) == 0


def test_append_to_completed_session_fails(db, active_session):
    append_turn(db, active_session.id, "interviewer", "Tell me about yourself.")
    complete_session(db, active_session.id)

    with pytest.raises(InvalidSessionStateError):
        append_turn(db, active_session.id, "candidate", "late answer")
    assert _count_turns(db, active_session.id) == 1


def test_append_to_failed_session_fails(db, active_session):
    fail_session(db, active_session.id, reason="connection lost")

    with pytest.raises(InvalidSessionStateError):
        append_turn(db, active_session.id, "candidate", "anyone there?")
    assert _count_turns(db, active_session.id) == 0


def test_completion_between_check_and_insert_rejects_turn(db, active_session, monkeypatch):
    """The end-of-call signal commits after the ACTIVE check but before the insert."""
    append_turn(db, active_session.id, "interviewer", "Tell me about yourself.")
    real_next = transcript_service._next_sequence_number

    def complete_meanwhile(db, session_id):
        other_db = TestSessionLocal()
        try:
            complete_session(other_db, session_id)
        finally:
            other_db.close()
        return real_next(db, session_id)

    monkeypatch.setattr(transcript_service, "_next_sequence_number", complete_meanwhile)

    with pytest.raises(InvalidSessionStateError):
        append_turn(db, active_session.id, "candidate", "late answer")

    assert _count_turns(db, active_session.id) == 1
    assert get_session(db, active_session.id).status.value == "COMPLETED"


def test_offset_turn_timestamp_is_stored_as_utc(db, active_session):
    spoken_at = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    turn = append_turn(db, active_session.id, "candidate", "Hello", timestamp=spoken_at)

    assert turn.timestamp == datetime(2026, 1, 1, 10, 0)


def test_rejects_empty_content_and_bad_confidence(db, active_session):
    with pytest.raises(ValueError):
        append_turn(db, active_session.id, "candidate", "   ")
    with pytest.raises(ValueError):
        append_turn(db, active_session.id, "candidate", "answer", confidence=1.5)
    assert _count_turns(db, active_session.id) == 0


def test_sequence_collision_retries(db, active_session, monkeypatch):
    """A writer that read a stale max collides on the unique constraint and retries."""
    append_turn(db, active_session.id, "interviewer", "Question one")

    real_next = transcript_service._next_sequence_number
    calls = {"count": 0}

    def stale_then_real(db, session_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return 1  # another writer already took 1
        return real_next(db, session_id)

    monkeypatch.setattr(transcript_service, "_next_sequence_number", stale_then_real)

    turn = append_turn(db, active_session.id, "candidate", "Answer one")

    assert turn.sequence_number == 2
    assert calls["count"] == 2
    assert [t.sequence_number for t in list_turns(db, active_session.id)] == [1, 2]


def test_sequence_collision_gives_up(db, active_session, monkeypatch):
    append_turn(db, active_session.id, "interviewer", "Question one")
    monkeypatch.setattr(transcript_service, "_next_sequence_number", lambda db, session_id: 1)

    with pytest.raises(ConcurrencyConflictError):
        append_turn(db, active_session.id, "candidate", "Answer one")
    assert _count_turns(db, active_session.id) == 1


def test_retry_budget_comes_from_config(db, active_session, monkeypatch):
    append_turn(db, active_session.id, "interviewer", "Question one")
    attempts = {"count": 0}

    def always_taken(db, session_id):
        attempts["count"] += 1
        return 1

    monkeypatch.setattr(config, "TRANSCRIPT_APPEND_MAX_RETRIES", 3)
    monkeypatch.setattr(transcript_service, "_next_sequence_number", always_taken)

    with pytest.raises(ConcurrencyConflictError):
        append_turn(db, active_session.id, "candidate", "Answer one")
    assert attempts["count"] == 3
