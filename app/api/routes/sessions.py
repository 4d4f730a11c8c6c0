"""
Interview session endpoints.

Thin adapter for the real-time transport: lifecycle signals become state
transitions and turn events become transcript appends.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Body, Response
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.core.exceptions import InterviewCoreError
from app.core.logging_config import sanitize_log_data
from app.db.session import get_db
from app.schemas.session import SessionCreate, SessionResponse, TransportEvent, TransitionResponse
from app.schemas.transcript import TurnCreate, TurnResponse, TurnListResponse
from app.services import session_service, transcript_service, feedback_jobs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Interview Sessions"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
def create_session(
    request: SessionCreate = Body(...),
    db: Session = Depends(get_db),
):
    """Create a PENDING interview session with a frozen job/resume snapshot."""
    logger.debug(f"Create session request: {sanitize_log_data(request.model_dump())}")
    try:
        return session_service.create_session(
            db,
            user_id=request.user_id,
            job_title=request.job_title,
            company=request.company,
            interview_type=request.interview_type,
            jd_context=request.jd_context,
            resume_snapshot=request.resume_snapshot,
            audio_url=request.audio_url,
        )
    except Exception as e:
        logger.error(f"Error creating interview session: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create interview session"
        )


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, db: Session = Depends(get_db)):
    try:
        return session_service.get_session(db, session_id)
    except InterviewCoreError as e:
        raise to_http_exception(e)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: str, db: Session = Depends(get_db)):
    """Soft-delete a session; the retention sweeper removes it later."""
    try:
        session_service.soft_delete_session(db, session_id)
    except InterviewCoreError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/events", response_model=TransitionResponse)
def post_transport_event(
    session_id: str,
    background_tasks: BackgroundTasks,
    event: TransportEvent = Body(...),
    db: Session = Depends(get_db),
):
    """
    Apply a transport lifecycle signal (connected, fallback_engaged, ended, errored).

    Duplicate signals are no-ops and report changed=false. The first "ended"
    signal schedules basic feedback in the background.
    """
    try:
        result = session_service.handle_transport_signal(
            db,
            session_id,
            event.signal,
            openai_session_id=event.openai_session_id,
            timestamp=event.timestamp,
            reason=event.reason,
        )
    except InterviewCoreError as e:
        logger.info(f"Transport signal rejected: session_id={session_id}, signal={event.signal}, error={e}")
        raise to_http_exception(e)

    feedback_scheduled = event.signal == "ended" and result.changed
    if feedback_scheduled:
        background_tasks.add_task(feedback_jobs.run_basic_feedback, session_id)

    return TransitionResponse(
        changed=result.changed,
        feedback_scheduled=feedback_scheduled,
        session=SessionResponse.model_validate(result.session),
    )


@router.post("/{session_id}/turns", status_code=status.HTTP_201_CREATED, response_model=TurnResponse)
def append_turn(
    session_id: str,
    turn: TurnCreate = Body(...),
    db: Session = Depends(get_db),
):
    try:
        return transcript_service.append_turn(
            db,
            session_id,
            role=turn.role,
            content=turn.content,
            confidence=turn.confidence,
            metadata=turn.metadata,
            timestamp=turn.timestamp,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except InterviewCoreError as e:
        raise to_http_exception(e)


@router.get("/{session_id}/turns", response_model=TurnListResponse)
def list_turns(session_id: str, db: Session = Depends(get_db)):
    """Transcript in sequence_number order."""
    try:
        turns = transcript_service.list_turns(db, session_id)
    except InterviewCoreError as e:
        raise to_http_exception(e)
    return TurnListResponse(
        session_id=session_id,
        turns=[TurnResponse.model_validate(turn) for turn in turns],
    )
