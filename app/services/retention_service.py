"""
Retention sweep.

Deletes rows whose expires_at has passed. Children go first so a session is
never removed while its transcripts or feedback still reference it; a session
whose children have not expired yet is kept until they do.
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import exists
from sqlalchemy.orm import Session

from app.core.clock import utcnow, as_utc_naive
from app.db.models.feedback import Feedback
from app.db.models.interview_session import InterviewSession
from app.db.models.transcript import Transcript
from app.db.models.usage import UsageEvent

logger = logging.getLogger(__name__)


def purge_expired(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Delete every expired row.

    Args:
        db: Database session
        now: Reference time (defaults to the current UTC time)

    Returns:
        Number of deleted rows per entity type
    """
    now = as_utc_naive(now) or utcnow()
    counts: Dict[str, int] = {}

    counts["transcript"] = (
        db.query(Transcript)
        .filter(Transcript.expires_at <= now)
        .delete(synchronize_session=False)
    )
    counts["feedback"] = (
        db.query(Feedback)
        .filter(Feedback.expires_at <= now)
        .delete(synchronize_session=False)
    )
    counts["usage_event"] = (
        db.query(UsageEvent)
        .filter(UsageEvent.expires_at <= now)
        .delete(synchronize_session=False)
    )
    counts["interview_session"] = (
        db.query(InterviewSession)
        .filter(
            InterviewSession.expires_at <= now,
            ~exists().where(Transcript.session_id == InterviewSession.id),
            ~exists().where(Feedback.session_id == InterviewSession.id),
        )
        .delete(synchronize_session=False)
    )
    db.commit()

    logger.info(f"Retention sweep complete: now={now.isoformat()}, deleted={counts}")
    return counts
