"""
Transcript model: one row per conversational turn.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class TranscriptRole(str, enum.Enum):
    """Speaker of a turn."""
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"


# Realtime transports speak in chat roles
ROLE_ALIASES = {
    "assistant": TranscriptRole.INTERVIEWER,
    "interviewer": TranscriptRole.INTERVIEWER,
    "user": TranscriptRole.CANDIDATE,
    "candidate": TranscriptRole.CANDIDATE,
}


class Transcript(Base):
    """
    Transcript turn.

    sequence_number is the authoritative order within a session; timestamp is
    informational only (wall clocks jitter under reconnects).
    """
    __tablename__ = "transcripts"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(36), ForeignKey("interview_sessions.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # "interviewer" / "candidate"
    content = Column(Text, nullable=False)
    confidence = Column(Float, nullable=True)  # speech-to-text confidence 0..1
    timestamp = Column(DateTime(timezone=True), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    turn_metadata = Column("metadata", JSON, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("InterviewSession", back_populates="transcripts")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence_number", name="uq_transcripts_session_sequence"),
        Index("idx_transcripts_session_sequence", "session_id", "sequence_number"),
    )

    def __repr__(self):
        return f"<Transcript(session_id={self.session_id}, seq={self.sequence_number}, role='{self.role}')>"
