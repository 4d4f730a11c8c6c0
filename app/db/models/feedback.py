"""
Feedback model: the single scoring artifact of a session.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, Boolean, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
from app.db.models.interview_session import FeedbackStatus


class Feedback(Base):
    """
    Feedback model.

    One row per session (unique session_id). The basic tier is written once when
    the row is created; the enhanced tier is filled in later on the same row and
    is only meaningful while enhanced_feedback_generated is true.
    """
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(36), ForeignKey("interview_sessions.id"), nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    # Basic tier (scores 0-100)
    summary = Column(Text, nullable=True)
    strengths = Column(JSON, nullable=True, default=list)
    areas_for_improvement = Column(JSON, nullable=True, default=list)
    filler_word_count = Column(Integer, nullable=False, default=0)
    transcript_score = Column(Float, nullable=True)
    clarity_score = Column(Float, nullable=True)
    conciseness_score = Column(Float, nullable=True)
    technical_depth_score = Column(Float, nullable=True)
    star_method_score = Column(Float, nullable=True)
    overall_score = Column(Float, nullable=True, index=True)
    structured_data = Column(JSON, nullable=True)  # raw scoring breakdown

    # Enhanced tier
    enhanced_feedback_generated = Column(Boolean, nullable=False, default=False)
    enhanced_report_data = Column(JSON, nullable=True)
    tone_analysis = Column(JSON, nullable=True)
    sentiment_progression = Column(JSON, nullable=True)
    keyword_relevance_score = Column(Float, nullable=True)
    enhanced_generated_at = Column(DateTime(timezone=True), nullable=True)

    # Enhanced tier claim bookkeeping
    enhanced_status = Column(String, nullable=False, default=FeedbackStatus.NONE.value)
    enhanced_claimed_at = Column(DateTime(timezone=True), nullable=True)
    enhanced_error = Column(Text, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    session = relationship("InterviewSession", back_populates="feedback")

    __table_args__ = (
        Index("idx_feedback_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Feedback(session_id={self.session_id}, overall={self.overall_score}, enhanced={self.enhanced_feedback_generated})>"
