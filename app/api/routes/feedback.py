"""
Feedback endpoints.

POST triggers are idempotent: once a tier exists they return it unchanged.
Basic feedback is computed in the request; a trigger that finds it claimed by
another worker reports the current status instead of failing. The enhanced
tier is queued as a background job.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.core.exceptions import InterviewCoreError
from app.db.session import get_db
from app.schemas.feedback import FeedbackResponse, FeedbackStatusResponse, EnhancedFeedbackStatusResponse
from app.services import feedback_service, feedback_jobs, session_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Feedback"])


def _status_response(db: Session, session_id: str, feedback) -> FeedbackStatusResponse:
    session = session_service.get_session(db, session_id)
    return FeedbackStatusResponse(
        session_id=session_id,
        feedback_status=session.feedback_status,
        feedback_error=session.feedback_error,
        feedback=FeedbackResponse.model_validate(feedback) if feedback else None,
    )


@router.post("/{session_id}/feedback", response_model=FeedbackStatusResponse)
def generate_basic_feedback(session_id: str, db: Session = Depends(get_db)):
    """Compute (or return the existing) basic feedback for a completed session."""
    try:
        feedback = feedback_service.compute_basic_feedback(db, session_id)
        return _status_response(db, session_id, feedback)
    except InterviewCoreError as e:
        logger.info(f"Basic feedback request failed: session_id={session_id}, error={e}")
        raise to_http_exception(e)


@router.post(
    "/{session_id}/feedback/enhanced",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=EnhancedFeedbackStatusResponse,
)
def generate_enhanced_feedback(
    session_id: str,
    background_tasks: BackgroundTasks,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Queue the enhanced tier in the background.

    Returns 200 with the finished tier when it already exists; otherwise 202
    with the current enhanced_status. Poll GET /sessions/{id}/feedback.
    """
    try:
        feedback = feedback_service.get_feedback(db, session_id)
    except InterviewCoreError as e:
        logger.info(f"Enhanced feedback request rejected: session_id={session_id}, error={e}")
        raise to_http_exception(e)

    scheduled = not feedback.enhanced_feedback_generated
    if scheduled:
        background_tasks.add_task(feedback_jobs.run_enhanced_feedback, session_id)
    else:
        response.status_code = status.HTTP_200_OK

    return EnhancedFeedbackStatusResponse(
        session_id=session_id,
        enhanced_status=feedback.enhanced_status,
        enhanced_error=feedback.enhanced_error,
        scheduled=scheduled,
        feedback=FeedbackResponse.model_validate(feedback),
    )


@router.get("/{session_id}/feedback", response_model=FeedbackResponse)
def get_feedback(session_id: str, db: Session = Depends(get_db)):
    try:
        return feedback_service.get_feedback(db, session_id)
    except InterviewCoreError as e:
        raise to_http_exception(e)
