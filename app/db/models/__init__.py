"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.interview_session import InterviewSession, SessionStatus, FeedbackStatus
from app.db.models.transcript import Transcript, TranscriptRole
from app.db.models.feedback import Feedback
from app.db.models.usage import UsageEvent

__all__ = [
    "InterviewSession",
    "SessionStatus",
    "FeedbackStatus",
    "Transcript",
    "TranscriptRole",
    "Feedback",
    "UsageEvent",
]
