"""
Transcript log service.

Turns are appended with sequence_number = current max + 1. Concurrent appends
for the same session race on the (session_id, sequence_number) unique
constraint; the loser re-reads the max and tries again.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.clock import utcnow, as_utc_naive
from app.core.exceptions import InvalidSessionStateError, ConcurrencyConflictError
from app.core.retention import compute_expires_at
from app.db.models.interview_session import InterviewSession, SessionStatus
from app.db.models.transcript import Transcript, TranscriptRole, ROLE_ALIASES
from app.services.session_service import get_session

logger = logging.getLogger(__name__)


def normalize_role(role: str) -> TranscriptRole:
    """
    Map a transport role onto interviewer/candidate.

    Raises:
        ValueError: Unknown role
    """
    key = (role or "").strip().lower()
    if key not in ROLE_ALIASES:
        raise ValueError(f"Unknown transcript role '{role}'")
    return ROLE_ALIASES[key]


def _next_sequence_number(db: Session, session_id: str) -> int:
    current = (
        db.query(func.max(Transcript.sequence_number))
        .filter(Transcript.session_id == session_id)
        .scalar()
    )
    return (current or 0) + 1


def _lock_active_session(db: Session, session_id: str) -> Optional[InterviewSession]:
    # Row lock held until commit; transitions update the same row and wait for it
    return (
        db.query(InterviewSession)
        .filter(
            InterviewSession.id == session_id,
            InterviewSession.status == SessionStatus.ACTIVE,
        )
        .with_for_update()
        .first()
    )


def append_turn(
    db: Session,
    session_id: str,
    role: str,
    content: str,
    confidence: Optional[float] = None,
    metadata: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> Transcript:
    """
    Append one turn to an ACTIVE session.

    Args:
        db: Database session
        session_id: Owning session
        role: interviewer/candidate (assistant/user accepted)
        content: Turn text
        confidence: Speech-to-text confidence 0..1
        metadata: Free-form turn extras
        timestamp: When the turn occurred (defaults to now); informational only

    Returns:
        The persisted Transcript row

    Raises:
        SessionNotFoundError: Unknown session
        InvalidSessionStateError: Session is not ACTIVE
        ConcurrencyConflictError: Could not claim a sequence number within the retry budget
        ValueError: Empty content, unknown role or confidence outside 0..1
    """
    normalized_role = normalize_role(role)
    if not content or not content.strip():
        raise ValueError("Transcript content must not be empty")
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be within 0..1, got {confidence}")

    session = get_session(db, session_id)
    if session.status != SessionStatus.ACTIVE:
        raise InvalidSessionStateError(session_id, session.status.value, "append a turn to")

    now = utcnow()
    timestamp = as_utc_naive(timestamp) or now
    for attempt in range(1, config.TRANSCRIPT_APPEND_MAX_RETRIES + 1):
        sequence_number = _next_sequence_number(db, session_id)
        if _lock_active_session(db, session_id) is None:
            db.rollback()
            current = get_session(db, session_id)
            logger.info(f"Session left ACTIVE before the turn was stored: session_id={session_id}")
            raise InvalidSessionStateError(session_id, current.status.value, "append a turn to")
        turn = Transcript(
            session_id=session_id,
            role=normalized_role.value,
            content=content,
            confidence=confidence,
            timestamp=timestamp,
            sequence_number=sequence_number,
            turn_metadata=metadata,
            expires_at=compute_expires_at("transcript", now),
        )
        db.add(turn)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(
                f"Sequence number collision, retrying: session_id={session_id}, "
                f"sequence_number={turn.sequence_number}, attempt={attempt}"
            )
            continue
        db.refresh(turn)
        logger.debug(
            f"Turn appended: session_id={session_id}, sequence_number={turn.sequence_number}, "
            f"role={turn.role}"
        )
        return turn

    logger.error(
        f"Gave up appending turn after {config.TRANSCRIPT_APPEND_MAX_RETRIES} attempts: session_id={session_id}"
    )
    raise ConcurrencyConflictError(f"Could not assign a sequence number for session {session_id}")


def list_turns(db: Session, session_id: str) -> List[Transcript]:
    """All turns of a session ordered by sequence_number (never by timestamp)."""
    get_session(db, session_id)
    return (
        db.query(Transcript)
        .filter(Transcript.session_id == session_id)
        .order_by(Transcript.sequence_number.asc())
        .all()
    )
