from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from datetime import datetime
from app.core.clock import utcnow
from app.db.base import Base


class UsageEvent(Base):
    """
    Append-only audit / metering log.

    Carries a month_key for fast monthly aggregation by the billing collaborator.
    """
    __tablename__ = "usage_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=True, index=True)
    session_id = Column(String(36), nullable=True, index=True)
    event_type = Column(String, nullable=False, index=True)  # "session_completed", "feedback_basic_generated", ...
    details = Column(JSON, nullable=True)
    occurred_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    month_key = Column(String(7), nullable=False, index=True)  # "YYYY-MM" format for fast monthly queries
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Composite index for fast monthly aggregation queries
    __table_args__ = (
        Index('idx_usage_user_type_month', 'user_id', 'event_type', 'month_key'),
    )

    @staticmethod
    def get_month_key(date: datetime = None) -> str:
        """Generate month_key string in YYYY-MM format."""
        if date is None:
            date = utcnow()
        return date.strftime("%Y-%m")
