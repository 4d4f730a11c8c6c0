"""
Session lifecycle service.

PENDING -> ACTIVE -> {COMPLETED, FAILED}. Every status change is a
compare-and-swap on the current status so duplicate signals (retried webhooks,
two near-simultaneous "end call" events) resolve to exactly one transition.
A request for a state the session already reached is a no-op.
"""
import copy
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, Iterable

from sqlalchemy.orm import Session

from app.core.clock import utcnow, as_utc_naive, seconds_between
from app.core.exceptions import (
    SessionNotFoundError,
    InvalidSessionStateError,
    ConcurrencyConflictError,
)
from app.core.retention import compute_expires_at
from app.db.models.interview_session import InterviewSession, SessionStatus, FeedbackStatus, COMPLETED_STATUSES
from app.services import usage_service

logger = logging.getLogger(__name__)


class TransportSignal(str, enum.Enum):
    """Lifecycle signals emitted by the real-time transport."""
    CONNECTED = "connected"
    FALLBACK_ENGAGED = "fallback_engaged"
    ENDED = "ended"
    ERRORED = "errored"


@dataclass
class TransitionResult:
    """Outcome of a transition request. changed is False for no-ops."""
    session: InterviewSession
    changed: bool


def create_session(
    db: Session,
    user_id: str,
    job_title: str,
    company: Optional[str] = None,
    interview_type: Optional[str] = None,
    jd_context: Optional[str] = None,
    resume_snapshot: Optional[Dict[str, Any]] = None,
    audio_url: Optional[str] = None,
) -> InterviewSession:
    """
    Create a PENDING interview session.

    The resume is deep-copied so later edits to the caller's resume never
    leak into the snapshot.
    """
    now = utcnow()
    session = InterviewSession(
        user_id=user_id,
        job_title=job_title,
        company=company,
        interview_type=interview_type,
        jd_context=jd_context,
        resume_snapshot=copy.deepcopy(resume_snapshot) if resume_snapshot is not None else None,
        audio_url=audio_url,
        status=SessionStatus.PENDING,
        feedback_status=FeedbackStatus.NONE.value,
        fallback_mode=False,
        expires_at=compute_expires_at("interview_session", now),
    )
    db.add(session)
    db.flush()
    usage_service.record_event(
        db,
        usage_service.SESSION_CREATED,
        user_id=user_id,
        session_id=session.id,
        details={"job_title": job_title, "interview_type": interview_type},
    )
    db.commit()
    db.refresh(session)

    logger.info(f"Interview session created: session_id={session.id}, user_id={user_id}")
    return session


def get_session(db: Session, session_id: str, include_deleted: bool = False) -> InterviewSession:
    """Load a session or raise SessionNotFoundError. Soft-deleted sessions are not found."""
    query = db.query(InterviewSession).filter(InterviewSession.id == session_id)
    if not include_deleted:
        query = query.filter(InterviewSession.deleted_at.is_(None))
    session = query.first()
    if not session:
        raise SessionNotFoundError(session_id)
    return session


def _swap_status(
    db: Session,
    session: InterviewSession,
    expected: Iterable[SessionStatus],
    values: Dict[str, Any],
    event_type: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Apply `values` only if the row is still in one of the `expected` states.

    The usage event joins the same transaction, so a lost race writes nothing.

    Raises:
        ConcurrencyConflictError: Another writer moved the row first
    """
    expected = list(expected)
    values = dict(values, updated_at=utcnow())
    updated = (
        db.query(InterviewSession)
        .filter(
            InterviewSession.id == session.id,
            InterviewSession.status.in_(expected),
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ConcurrencyConflictError(
            f"Session {session.id} left {[s.value for s in expected]} before the update applied"
        )

    if event_type:
        usage_service.record_event(
            db, event_type, user_id=session.user_id, session_id=session.id, details=details
        )
    db.commit()
    # commit expires the instance, so the next attribute access reloads the row
    db.refresh(session)


def activate_session(
    db: Session,
    session_id: str,
    openai_session_id: Optional[str] = None,
    start_time: Optional[datetime] = None,
) -> TransitionResult:
    """
    PENDING -> ACTIVE.

    With an openai_session_id the session runs live; without one it runs in
    fallback mode. Already ACTIVE or terminal sessions are left untouched.
    """
    session = get_session(db, session_id)
    if session.status != SessionStatus.PENDING:
        logger.debug(f"activate_session no-op: session_id={session_id}, status={session.status.value}")
        return TransitionResult(session, False)

    now = utcnow()
    values = {
        "status": SessionStatus.ACTIVE,
        "started_at": now,
        "start_time": as_utc_naive(start_time) or now,
        "openai_session_id": openai_session_id,
        "fallback_mode": openai_session_id is None,
    }
    try:
        _swap_status(
            db, session, (SessionStatus.PENDING,), values,
            event_type=usage_service.SESSION_STARTED,
            details={"fallback_mode": openai_session_id is None},
        )
    except ConcurrencyConflictError:
        logger.info(f"Lost activation race, treating as no-op: session_id={session_id}")
        return TransitionResult(get_session(db, session_id), False)

    logger.info(
        f"Interview session active: session_id={session_id}, "
        f"mode={'fallback' if session.fallback_mode else 'live'}"
    )
    return TransitionResult(session, True)


def engage_fallback(db: Session, session_id: str) -> TransitionResult:
    """Switch a session to fallback mode; a PENDING session is activated in fallback mode."""
    session = get_session(db, session_id)
    if session.status == SessionStatus.PENDING:
        return activate_session(db, session_id)
    if session.is_terminal or session.fallback_mode:
        return TransitionResult(session, False)

    try:
        _swap_status(db, session, (SessionStatus.ACTIVE,), {"fallback_mode": True})
    except ConcurrencyConflictError:
        return TransitionResult(get_session(db, session_id), False)

    logger.warning(f"Real-time link lost, fallback mode engaged: session_id={session_id}")
    return TransitionResult(session, True)


def complete_session(
    db: Session,
    session_id: str,
    end_time: Optional[datetime] = None,
) -> TransitionResult:
    """
    ACTIVE -> COMPLETED.

    duration_seconds comes from the server-side started_at/ended_at pair and is
    authoritative; duration comes from the transport's start_time/end_time pair.
    The caller enqueues basic feedback when the result reports changed.

    Raises:
        InvalidSessionStateError: Session never started or already FAILED
    """
    session = get_session(db, session_id)
    if session.status in COMPLETED_STATUSES:
        return TransitionResult(session, False)
    if session.status != SessionStatus.ACTIVE:
        raise InvalidSessionStateError(session_id, session.status.value, "complete")

    now = utcnow()
    end_time = as_utc_naive(end_time) or now
    values = {
        "status": SessionStatus.COMPLETED,
        "ended_at": now,
        "end_time": end_time,
        "duration_seconds": seconds_between(session.started_at, now),
        "duration": seconds_between(session.start_time, end_time),
    }
    try:
        _swap_status(
            db, session, (SessionStatus.ACTIVE,), values,
            event_type=usage_service.SESSION_COMPLETED,
            details={"duration_seconds": values["duration_seconds"], "fallback_mode": session.fallback_mode},
        )
    except ConcurrencyConflictError:
        session = get_session(db, session_id)
        if session.status in COMPLETED_STATUSES:
            logger.info(f"Duplicate end-of-call signal ignored: session_id={session_id}")
            return TransitionResult(session, False)
        raise InvalidSessionStateError(session_id, session.status.value, "complete")

    logger.info(
        f"Interview session completed: session_id={session_id}, "
        f"duration_seconds={session.duration_seconds}"
    )
    return TransitionResult(session, True)


def fail_session(db: Session, session_id: str, reason: Optional[str] = None) -> TransitionResult:
    """
    PENDING|ACTIVE -> FAILED. feedback_status is left as it was.

    Raises:
        InvalidSessionStateError: Session already ended gracefully
    """
    session = get_session(db, session_id)
    if session.status == SessionStatus.FAILED:
        return TransitionResult(session, False)
    if session.status in COMPLETED_STATUSES:
        raise InvalidSessionStateError(session_id, session.status.value, "fail")

    now = utcnow()
    values = {
        "status": SessionStatus.FAILED,
        "failure_reason": reason,
        "ended_at": now,
        "duration_seconds": seconds_between(session.started_at, now),
    }
    try:
        _swap_status(
            db, session, (SessionStatus.PENDING, SessionStatus.ACTIVE), values,
            event_type=usage_service.SESSION_FAILED,
            details={"reason": reason},
        )
    except ConcurrencyConflictError:
        session = get_session(db, session_id)
        if session.status == SessionStatus.FAILED:
            return TransitionResult(session, False)
        raise InvalidSessionStateError(session_id, session.status.value, "fail")

    logger.warning(f"Interview session failed: session_id={session_id}, reason={reason}")
    return TransitionResult(session, True)


def soft_delete_session(db: Session, session_id: str) -> InterviewSession:
    """Mark a session deleted. The retention sweeper removes it later."""
    session = get_session(db, session_id, include_deleted=True)
    if session.deleted_at is None:
        session.deleted_at = utcnow()
        db.commit()
        db.refresh(session)
        logger.info(f"Interview session soft-deleted: session_id={session_id}")
    return session


def handle_transport_signal(
    db: Session,
    session_id: str,
    signal: str,
    openai_session_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> TransitionResult:
    """
    Translate a transport lifecycle signal into a transition.

    Raises:
        ValueError: Unknown signal
    """
    signal = TransportSignal(signal)
    logger.debug(f"Transport signal: session_id={session_id}, signal={signal.value}")

    if signal == TransportSignal.CONNECTED:
        return activate_session(db, session_id, openai_session_id=openai_session_id, start_time=timestamp)
    if signal == TransportSignal.FALLBACK_ENGAGED:
        return engage_fallback(db, session_id)
    if signal == TransportSignal.ENDED:
        return complete_session(db, session_id, end_time=timestamp)
    return fail_session(db, session_id, reason=reason or "transport error")
