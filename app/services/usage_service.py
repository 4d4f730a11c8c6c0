"""
Usage event service.

Append-only audit / metering log consumed by the billing collaborator.
Events are written in the same transaction as the change they describe
(commit=False) unless the caller asks otherwise.
"""
import logging
from typing import Dict, Optional, Any
from sqlalchemy.orm import Session
from sqlalchemy import func, and_

from app.core.clock import utcnow
from app.core.retention import compute_expires_at
from app.db.models.usage import UsageEvent

logger = logging.getLogger(__name__)

# Event types written by the core
SESSION_CREATED = "session_created"
SESSION_STARTED = "session_started"
SESSION_COMPLETED = "session_completed"
SESSION_FAILED = "session_failed"
FEEDBACK_BASIC_GENERATED = "feedback_basic_generated"
FEEDBACK_ENHANCED_GENERATED = "feedback_enhanced_generated"


def record_event(
    db: Session,
    event_type: str,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    commit: bool = False,
) -> UsageEvent:
    """
    Append a usage event.

    Args:
        db: Database session
        event_type: One of the event type constants above
        user_id: Owner, if the event is user-scoped
        session_id: Interview session the event belongs to
        details: Free-form JSON payload
        commit: Commit immediately instead of joining the caller's transaction

    Returns:
        The (pending or committed) UsageEvent
    """
    now = utcnow()
    event = UsageEvent(
        user_id=user_id,
        session_id=session_id,
        event_type=event_type,
        details=details or {},
        occurred_at=now,
        month_key=UsageEvent.get_month_key(now),
        expires_at=compute_expires_at("usage_event", now),
    )
    db.add(event)
    if commit:
        db.commit()
        db.refresh(event)

    logger.debug(f"Usage event: type={event_type}, user_id={user_id}, session_id={session_id}")
    return event


def get_month_event_counts(db: Session, user_id: str, month_key: Optional[str] = None) -> Dict[str, int]:
    """
    Get per-event-type counts for a user in a given month.

    Args:
        db: Database session
        user_id: User ID
        month_key: Month key in "YYYY-MM" format (defaults to the current month)

    Returns:
        Dictionary mapping event types to counts
    """
    month_key = month_key or UsageEvent.get_month_key()
    rows = db.query(
        UsageEvent.event_type,
        func.count(UsageEvent.id).label('total')
    ).filter(
        and_(
            UsageEvent.user_id == user_id,
            UsageEvent.month_key == month_key
        )
    ).group_by(UsageEvent.event_type).all()

    return {event_type: int(total) for event_type, total in rows}


def list_session_events(db: Session, session_id: str) -> list[UsageEvent]:
    """All events for a session in the order they occurred."""
    return (
        db.query(UsageEvent)
        .filter(UsageEvent.session_id == session_id)
        .order_by(UsageEvent.occurred_at, UsageEvent.id)
        .all()
    )
