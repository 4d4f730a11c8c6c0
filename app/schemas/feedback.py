"""
Pydantic schemas for feedback endpoints.
"""
from typing import Optional, Any, Dict, List
from datetime import datetime
from pydantic import BaseModel, Field


class FeedbackResponse(BaseModel):
    """Basic and (once generated) enhanced feedback for a session."""
    session_id: str
    user_id: str

    # Basic tier, 0-100
    summary: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    filler_word_count: int
    transcript_score: Optional[float] = None
    clarity_score: Optional[float] = None
    conciseness_score: Optional[float] = None
    technical_depth_score: Optional[float] = None
    star_method_score: Optional[float] = None
    overall_score: Optional[float] = None
    structured_data: Optional[Dict[str, Any]] = None

    # Enhanced tier, only meaningful when enhanced_feedback_generated is true
    enhanced_feedback_generated: bool
    enhanced_status: str
    enhanced_error: Optional[str] = None
    enhanced_report_data: Optional[Dict[str, Any]] = None
    tone_analysis: Optional[Dict[str, Any]] = None
    sentiment_progression: Optional[List[Dict[str, Any]]] = None
    keyword_relevance_score: Optional[float] = None
    enhanced_generated_at: Optional[datetime] = None

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeedbackStatusResponse(BaseModel):
    """Returned when feedback is not (yet) available, e.g. a claim is held elsewhere."""
    session_id: str
    feedback_status: str = Field(..., description="NONE, PENDING, READY or FAILED")
    feedback_error: Optional[str] = None
    feedback: Optional[FeedbackResponse] = None


class EnhancedFeedbackStatusResponse(BaseModel):
    """Returned by the enhanced trigger; the tier itself is computed in the background."""
    session_id: str
    enhanced_status: str = Field(..., description="NONE, PENDING, READY or FAILED")
    enhanced_error: Optional[str] = None
    scheduled: bool = Field(..., description="True when a background run was queued by this request")
    feedback: FeedbackResponse
