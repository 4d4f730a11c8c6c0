"""
Pydantic schemas for interview session endpoints.
"""
from typing import Optional, Any, Dict, Literal
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models.interview_session import SessionStatus


class SessionCreate(BaseModel):
    """Request schema for POST /sessions."""
    user_id: str = Field(..., min_length=1, description="Owner of the session (opaque id)")
    job_title: str = Field(..., min_length=1, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    interview_type: Optional[str] = Field(None, description="behavioral, technical or mixed")
    jd_context: Optional[str] = Field(None, description="Job description text")
    resume_snapshot: Optional[Dict[str, Any]] = Field(None, description="Resume frozen at creation")
    audio_url: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user-123",
                "job_title": "Backend Engineer",
                "company": "Acme",
                "interview_type": "mixed",
                "jd_context": "We are looking for a Python engineer with Postgres and Kafka experience.",
                "resume_snapshot": {"skills": ["python", "postgres"], "summary": "5 years backend"},
            }
        }


class TransportEvent(BaseModel):
    """Request schema for POST /sessions/{id}/events."""
    signal: Literal["connected", "fallback_engaged", "ended", "errored"]
    openai_session_id: Optional[str] = Field(None, description="Live real-time session id (connected only)")
    timestamp: Optional[datetime] = Field(None, description="Call-clock time of the signal")
    reason: Optional[str] = Field(None, description="Failure reason (errored only)")


class SessionResponse(BaseModel):
    """Response schema for an interview session."""
    id: str
    user_id: str
    job_title: str
    company: Optional[str] = None
    interview_type: Optional[str] = None
    status: SessionStatus
    feedback_status: str
    feedback_error: Optional[str] = None
    failure_reason: Optional[str] = None
    openai_session_id: Optional[str] = None
    fallback_mode: bool
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, description="Seconds, call clock")
    duration_seconds: Optional[int] = Field(None, description="Seconds, record clock (authoritative)")
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransitionResponse(BaseModel):
    """Response schema for POST /sessions/{id}/events."""
    changed: bool = Field(..., description="False when the signal was a no-op")
    feedback_scheduled: bool = False
    session: SessionResponse
