"""
InterviewSession model: one row per interview attempt.
"""
import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, JSON, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class SessionStatus(str, enum.Enum):
    """Lifecycle status of an interview session."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    # Legacy value kept for schema compatibility; feedback progress lives on feedback_status
    FEEDBACK_GENERATED = "FEEDBACK_GENERATED"


class FeedbackStatus(str, enum.Enum):
    """Progress of a feedback tier, tracked independently of SessionStatus."""
    NONE = "NONE"
    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"


# COMPLETED and the legacy FEEDBACK_GENERATED both mean "ended gracefully"
COMPLETED_STATUSES = (SessionStatus.COMPLETED, SessionStatus.FEEDBACK_GENERATED)
TERMINAL_STATUSES = COMPLETED_STATUSES + (SessionStatus.FAILED,)


def _new_session_id() -> str:
    return str(uuid.uuid4())


class InterviewSession(Base):
    """
    InterviewSession model.

    Holds the context snapshot taken at creation (job, JD, resume), the real-time
    linkage (openai_session_id / fallback_mode), two timing pairs and two
    independent status axes: status (session lifecycle) and feedback_status
    (basic feedback tier).
    """
    __tablename__ = "interview_sessions"

    id = Column(String(36), primary_key=True, default=_new_session_id)
    user_id = Column(String, nullable=False, index=True)

    # Context snapshot
    job_title = Column(String, nullable=False)
    company = Column(String, nullable=True)
    interview_type = Column(String, nullable=True)  # "behavioral", "technical", "mixed"
    jd_context = Column(Text, nullable=True)
    resume_snapshot = Column(JSON, nullable=True)  # frozen at creation, never updated

    # Real-time linkage
    openai_session_id = Column(String, nullable=True, index=True)
    fallback_mode = Column(Boolean, nullable=False, default=False)

    # Call clock (from the transport) vs record clock (server)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Integer, nullable=True)  # seconds, call clock
    duration_seconds = Column(Integer, nullable=True)  # seconds, record clock (authoritative)

    # Status axes
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.PENDING, index=True)
    failure_reason = Column(Text, nullable=True)
    feedback_status = Column(String, nullable=False, default=FeedbackStatus.NONE.value)
    feedback_error = Column(Text, nullable=True)
    feedback_claimed_at = Column(DateTime(timezone=True), nullable=True)

    audio_url = Column(String, nullable=True)

    # Retention
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    transcripts = relationship(
        "Transcript",
        back_populates="session",
        order_by="Transcript.sequence_number",
        cascade="all, delete-orphan",
    )
    feedback = relationship(
        "Feedback",
        back_populates="session",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_sessions_user_created", "user_id", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<InterviewSession(id={self.id}, status='{self.status}', feedback_status='{self.feedback_status}')>"
