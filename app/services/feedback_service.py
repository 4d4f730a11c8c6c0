"""
Feedback scoring pipeline.

Two tiers, both keyed by session_id and both idempotent:

- Basic: computed once after COMPLETED. Writes the single Feedback row and
  moves session.feedback_status NONE -> PENDING -> READY (or FAILED).
- Enhanced: computed later on the same row. enhanced_feedback_generated flips
  false -> true exactly once.

Each tier is claimed by a compare-and-swap on its status column before any
analysis call, so duplicate triggers never double-bill the analysis backend.
A claim older than FEEDBACK_CLAIM_TTL_SECONDS is treated as abandoned.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.clock import utcnow
from app.core.exceptions import (
    InvalidSessionStateError,
    InsufficientTranscriptError,
    AnalysisBackendError,
    ConcurrencyConflictError,
    FeedbackNotFoundError,
)
from app.core.retention import compute_expires_at
from app.core.scoring_config import (
    OVERALL_WEIGHTS,
    TRANSCRIPT_SCORE_WEIGHTS,
    TARGET_CANDIDATE_TURNS,
    DEFAULT_STT_CONFIDENCE,
    SCORE_MAX,
    clamp_score,
)
from app.db.models.feedback import Feedback
from app.db.models.interview_session import InterviewSession, FeedbackStatus, COMPLETED_STATUSES
from app.db.models.transcript import Transcript, TranscriptRole
from app.services import text_analysis, usage_service
from app.services.analysis_backend import (
    AnalysisBackend,
    AnalysisRequest,
    TurnInput,
    get_analysis_backend,
)
from app.services.session_service import get_session

logger = logging.getLogger(__name__)


# ============================================
# Pure scoring functions
# ============================================

def compute_overall_score(
    clarity: float,
    conciseness: float,
    technical_depth: float,
    star_method: float,
    weights: Dict[str, float] = OVERALL_WEIGHTS,
) -> float:
    """Weighted combination of the four dimension scores, rounded to 2 decimals."""
    total = (
        clarity * weights["clarity"]
        + conciseness * weights["conciseness"]
        + technical_depth * weights["technical_depth"]
        + star_method * weights["star_method"]
    )
    return round(clamp_score(total), 2)


def compute_transcript_score(turns: Sequence[Any]) -> float:
    """
    Transcript completeness / quality proxy on 0-100.

    Independent of the four dimension scores. Combines:
    - coverage: candidate turns relative to TARGET_CANDIDATE_TURNS
    - answer_rate: share of interviewer turns answered by the next turn
    - confidence: mean speech-to-text confidence of candidate turns

    Args:
        turns: Ordered Transcript rows or TurnInput objects
    """
    if not turns:
        return 0.0

    candidate = [turn for turn in turns if turn.role == TranscriptRole.CANDIDATE]
    coverage = min(1.0, len(candidate) / TARGET_CANDIDATE_TURNS)

    questions = [i for i, turn in enumerate(turns) if turn.role != TranscriptRole.CANDIDATE]
    if questions:
        answered = sum(
            1 for i in questions
            if i + 1 < len(turns) and turns[i + 1].role == TranscriptRole.CANDIDATE
        )
        answer_rate = answered / len(questions)
    else:
        answer_rate = 1.0 if candidate else 0.0

    if candidate:
        confidence = sum(
            turn.confidence if turn.confidence is not None else DEFAULT_STT_CONFIDENCE
            for turn in candidate
        ) / len(candidate)
    else:
        confidence = 0.0

    score = SCORE_MAX * (
        coverage * TRANSCRIPT_SCORE_WEIGHTS["coverage"]
        + answer_rate * TRANSCRIPT_SCORE_WEIGHTS["answer_rate"]
        + confidence * TRANSCRIPT_SCORE_WEIGHTS["confidence"]
    )
    return round(clamp_score(score), 2)


def compute_keyword_relevance(candidate_text: str, keywords: List[str]) -> Tuple[float, List[str]]:
    """Share of context keywords the candidate actually used (0-100) and which ones."""
    if not keywords:
        return 0.0, []
    matched = text_analysis.keyword_overlap(candidate_text, keywords)
    return round(SCORE_MAX * len(matched) / len(keywords), 2), matched


def _load_turns(db: Session, session_id: str) -> List[Transcript]:
    return (
        db.query(Transcript)
        .filter(Transcript.session_id == session_id)
        .order_by(Transcript.sequence_number.asc())
        .all()
    )


def build_analysis_request(
    session: InterviewSession, turns: Sequence[Transcript]
) -> Tuple[AnalysisRequest, Dict[str, int]]:
    """Analysis input plus per-word filler counts over candidate turns only."""
    inputs = [TurnInput.model_validate(turn) for turn in turns]
    filler_counts = text_analysis.merge_counts(
        text_analysis.count_filler_words(turn.content) for turn in inputs if turn.is_candidate
    )
    request = AnalysisRequest(
        session_id=session.id,
        job_title=session.job_title,
        company=session.company,
        interview_type=session.interview_type,
        jd_context=session.jd_context,
        resume_snapshot=session.resume_snapshot,
        duration_seconds=session.duration_seconds,
        turns=inputs,
        filler_word_count=text_analysis.total_filler_count(filler_counts),
        context_keywords=text_analysis.context_keywords(
            session.jd_context, session.resume_snapshot, session.job_title
        ),
    )
    return request, filler_counts


def _ensure_scorable(session_id: str, request: AnalysisRequest) -> None:
    candidate = request.candidate_turns
    words = sum(text_analysis.word_count(turn.content) for turn in candidate)
    if len(candidate) < config.MIN_CANDIDATE_TURNS or words < config.MIN_CANDIDATE_WORDS:
        raise InsufficientTranscriptError(session_id, len(candidate), words)


def _describe(error: Exception) -> str:
    cause = getattr(error, "cause", None)
    if cause is not None:
        return f"{error} (cause: {type(cause).__name__}: {cause})"
    return str(error)


# ============================================
# Lookups
# ============================================

def find_feedback(db: Session, session_id: str) -> Optional[Feedback]:
    return db.query(Feedback).filter(Feedback.session_id == session_id).first()


def get_feedback(db: Session, session_id: str) -> Feedback:
    """
    Feedback for a session.

    Raises:
        SessionNotFoundError: Unknown session
        FeedbackNotFoundError: Basic tier not computed yet
    """
    get_session(db, session_id)
    feedback = find_feedback(db, session_id)
    if not feedback:
        raise FeedbackNotFoundError(session_id)
    return feedback


# ============================================
# Basic tier
# ============================================

def _claim_basic(db: Session, session_id: str) -> datetime:
    """
    NONE | FAILED | stale PENDING -> PENDING.

    Returns the claim timestamp; later writes by this worker are conditional on it.

    Raises:
        ConcurrencyConflictError: Someone else holds a live claim
    """
    now = utcnow()
    stale_before = now - timedelta(seconds=config.FEEDBACK_CLAIM_TTL_SECONDS)
    claimed = (
        db.query(InterviewSession)
        .filter(
            InterviewSession.id == session_id,
            or_(
                InterviewSession.feedback_status.in_([FeedbackStatus.NONE.value, FeedbackStatus.FAILED.value]),
                and_(
                    InterviewSession.feedback_status == FeedbackStatus.PENDING.value,
                    or_(
                        InterviewSession.feedback_claimed_at.is_(None),
                        InterviewSession.feedback_claimed_at < stale_before,
                    ),
                ),
            ),
        )
        .update(
            {
                "feedback_status": FeedbackStatus.PENDING.value,
                "feedback_claimed_at": now,
                "feedback_error": None,
            },
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise ConcurrencyConflictError(f"Basic feedback for session {session_id} is already claimed")
    db.commit()
    return now


def _release_basic(db: Session, session_id: str, claimed_at: datetime, error: str) -> None:
    db.rollback()
    # A takeover after our claim went stale owns the status now
    db.query(InterviewSession).filter(
        InterviewSession.id == session_id,
        InterviewSession.feedback_claimed_at == claimed_at,
    ).update(
        {"feedback_status": FeedbackStatus.FAILED.value, "feedback_error": error},
        synchronize_session=False,
    )
    db.commit()


def compute_basic_feedback(
    db: Session,
    session_id: str,
    backend: Optional[AnalysisBackend] = None,
) -> Optional[Feedback]:
    """
    Compute the basic feedback tier for a COMPLETED session.

    Idempotent: an existing basic row is returned unchanged. A caller that
    loses the claim gets the existing row (or None while the winner is still
    working) instead of an error.

    Args:
        db: Database session
        session_id: Session to score
        backend: Analysis backend (defaults to get_analysis_backend())

    Returns:
        The Feedback row, or None if another worker holds the claim

    Raises:
        SessionNotFoundError: Unknown session
        InvalidSessionStateError: Session is not COMPLETED
        InsufficientTranscriptError: No usable candidate content (feedback_status -> FAILED)
        AnalysisBackendError: Analysis failed or timed out (feedback_status -> FAILED)
    """
    session = get_session(db, session_id)
    if session.status not in COMPLETED_STATUSES:
        raise InvalidSessionStateError(session_id, session.status.value, "score")

    existing = find_feedback(db, session_id)
    if existing:
        logger.debug(f"Basic feedback already exists, no-op: session_id={session_id}")
        return existing

    try:
        claimed_at = _claim_basic(db, session_id)
    except ConcurrencyConflictError:
        logger.info(f"Basic feedback claimed elsewhere, skipping: session_id={session_id}")
        return find_feedback(db, session_id)

    try:
        request, filler_counts = build_analysis_request(session, _load_turns(db, session_id))
        _ensure_scorable(session_id, request)
        analysis_backend = backend or get_analysis_backend()
        result = analysis_backend.analyze_basic(request)
    except (InsufficientTranscriptError, AnalysisBackendError) as e:
        logger.warning(f"Basic feedback failed: session_id={session_id}, error={_describe(e)}")
        _release_basic(db, session_id, claimed_at, _describe(e))
        raise
    except Exception as e:
        logger.error(f"Unexpected analysis error: session_id={session_id}, error={e}", exc_info=True)
        _release_basic(db, session_id, claimed_at, f"{type(e).__name__}: {e}")
        raise AnalysisBackendError("Basic feedback analysis failed", cause=e) from e

    overall = compute_overall_score(
        result.clarity_score,
        result.conciseness_score,
        result.technical_depth_score,
        result.star_method_score,
    )
    transcript_score = compute_transcript_score(request.turns)
    now = utcnow()

    feedback = Feedback(
        session_id=session_id,
        user_id=session.user_id,
        summary=result.summary,
        strengths=result.strengths,
        areas_for_improvement=result.areas_for_improvement,
        filler_word_count=request.filler_word_count,
        transcript_score=transcript_score,
        clarity_score=result.clarity_score,
        conciseness_score=result.conciseness_score,
        technical_depth_score=result.technical_depth_score,
        star_method_score=result.star_method_score,
        overall_score=overall,
        structured_data={
            "filler_words": filler_counts,
            "top_fillers": text_analysis.most_common_fillers(filler_counts),
            "weights": dict(OVERALL_WEIGHTS),
            "context_keywords": request.context_keywords,
            "candidate_turns": len(request.candidate_turns),
            "total_turns": len(request.turns),
            "details": result.details,
            "backend": result.backend,
            "model": result.model,
            "tokens_in": result.tokens_in,
            "tokens_out": result.tokens_out,
            "cost_estimate": result.cost_estimate,
        },
        enhanced_feedback_generated=False,
        enhanced_status=FeedbackStatus.NONE.value,
        expires_at=compute_expires_at("feedback", now),
    )
    db.add(feedback)
    still_claimed = db.query(InterviewSession).filter(
        InterviewSession.id == session_id,
        InterviewSession.feedback_claimed_at == claimed_at,
    ).update(
        {"feedback_status": FeedbackStatus.READY.value, "feedback_error": None},
        synchronize_session=False,
    )
    if still_claimed != 1:
        db.rollback()
        logger.info(f"Basic feedback claim taken over, discarding result: session_id={session_id}")
        return find_feedback(db, session_id)
    usage_service.record_event(
        db,
        usage_service.FEEDBACK_BASIC_GENERATED,
        user_id=session.user_id,
        session_id=session_id,
        details={"backend": result.backend, "model": result.model, "overall_score": overall},
    )
    try:
        db.commit()
    except IntegrityError:
        # a stale-claim takeover raced us to the insert
        db.rollback()
        logger.info(f"Basic feedback inserted concurrently, keeping existing row: session_id={session_id}")
        return find_feedback(db, session_id)

    db.refresh(feedback)
    logger.info(
        f"Basic feedback ready: session_id={session_id}, overall_score={overall}, "
        f"backend={result.backend}"
    )
    return feedback


# ============================================
# Enhanced tier
# ============================================

def _claim_enhanced(db: Session, feedback_id: int) -> datetime:
    """
    Returns the claim timestamp.

    Raises:
        ConcurrencyConflictError: Already generated or claimed elsewhere
    """
    now = utcnow()
    stale_before = now - timedelta(seconds=config.FEEDBACK_CLAIM_TTL_SECONDS)
    claimed = (
        db.query(Feedback)
        .filter(
            Feedback.id == feedback_id,
            Feedback.enhanced_feedback_generated == False,  # noqa: E712
            or_(
                Feedback.enhanced_status.in_([FeedbackStatus.NONE.value, FeedbackStatus.FAILED.value]),
                and_(
                    Feedback.enhanced_status == FeedbackStatus.PENDING.value,
                    or_(
                        Feedback.enhanced_claimed_at.is_(None),
                        Feedback.enhanced_claimed_at < stale_before,
                    ),
                ),
            ),
        )
        .update(
            {
                "enhanced_status": FeedbackStatus.PENDING.value,
                "enhanced_claimed_at": now,
                "enhanced_error": None,
            },
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise ConcurrencyConflictError(f"Enhanced feedback {feedback_id} is already generated or claimed")
    db.commit()
    return now


def _release_enhanced(db: Session, feedback_id: int, claimed_at: datetime, error: str) -> None:
    db.rollback()
    db.query(Feedback).filter(
        Feedback.id == feedback_id,
        Feedback.enhanced_claimed_at == claimed_at,
        Feedback.enhanced_feedback_generated == False,  # noqa: E712
    ).update(
        {"enhanced_status": FeedbackStatus.FAILED.value, "enhanced_error": error},
        synchronize_session=False,
    )
    db.commit()


def compute_enhanced_feedback(
    db: Session,
    session_id: str,
    backend: Optional[AnalysisBackend] = None,
) -> Feedback:
    """
    Compute the enhanced tier on top of an existing basic Feedback row.

    Once enhanced_feedback_generated is true every further call returns the
    row unchanged; enhanced_generated_at is written by the single call that
    flips the gate.

    Raises:
        SessionNotFoundError: Unknown session
        FeedbackNotFoundError: Basic tier missing
        AnalysisBackendError: Analysis failed or timed out (gate untouched, retryable)
    """
    session = get_session(db, session_id)
    feedback = find_feedback(db, session_id)
    if not feedback:
        raise FeedbackNotFoundError(session_id)
    if feedback.enhanced_feedback_generated:
        logger.debug(f"Enhanced feedback already generated, no-op: session_id={session_id}")
        return feedback

    feedback_id = feedback.id
    try:
        claimed_at = _claim_enhanced(db, feedback_id)
    except ConcurrencyConflictError:
        logger.info(f"Enhanced feedback claimed elsewhere, skipping: session_id={session_id}")
        return find_feedback(db, session_id)

    try:
        request, _ = build_analysis_request(session, _load_turns(db, session_id))
        analysis_backend = backend or get_analysis_backend()
        result = analysis_backend.analyze_enhanced(request)
    except AnalysisBackendError as e:
        logger.warning(f"Enhanced feedback failed: session_id={session_id}, error={_describe(e)}")
        _release_enhanced(db, feedback_id, claimed_at, _describe(e))
        raise
    except Exception as e:
        logger.error(f"Unexpected analysis error: session_id={session_id}, error={e}", exc_info=True)
        _release_enhanced(db, feedback_id, claimed_at, f"{type(e).__name__}: {e}")
        raise AnalysisBackendError("Enhanced feedback analysis failed", cause=e) from e

    candidate_text = " ".join(turn.content for turn in request.candidate_turns)
    relevance, matched = compute_keyword_relevance(candidate_text, request.context_keywords)
    progression = [sample.model_dump() for sample in result.sentiment_progression]
    now = utcnow()

    report = {
        "overall_score": feedback.overall_score,
        "tone_analysis": result.tone_analysis,
        "sentiment_progression": progression,
        "keyword_relevance": {
            "score": relevance,
            "matched": matched,
            "missing": [keyword for keyword in request.context_keywords if keyword not in matched],
        },
        "answer_analysis": result.answer_analysis,
        "action_plan": result.action_plan,
        "backend": result.backend,
        "model": result.model,
        "tokens_in": result.tokens_in,
        "tokens_out": result.tokens_out,
        "cost_estimate": result.cost_estimate,
        "generated_at": now.isoformat(),
    }

    # The gate in the WHERE clause makes this the only write that can flip it
    updated = (
        db.query(Feedback)
        .filter(
            Feedback.id == feedback_id,
            Feedback.enhanced_feedback_generated == False,  # noqa: E712
        )
        .update(
            {
                "enhanced_feedback_generated": True,
                "enhanced_generated_at": now,
                "enhanced_report_data": report,
                "tone_analysis": result.tone_analysis,
                "sentiment_progression": progression,
                "keyword_relevance_score": relevance,
                "enhanced_status": FeedbackStatus.READY.value,
                "enhanced_error": None,
                "updated_at": now,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        logger.info(f"Enhanced feedback written concurrently, keeping existing: session_id={session_id}")
        return find_feedback(db, session_id)

    usage_service.record_event(
        db,
        usage_service.FEEDBACK_ENHANCED_GENERATED,
        user_id=session.user_id,
        session_id=session_id,
        details={"backend": result.backend, "model": result.model, "keyword_relevance_score": relevance},
    )
    db.commit()
    db.refresh(feedback)

    logger.info(
        f"Enhanced feedback ready: session_id={session_id}, "
        f"keyword_relevance_score={relevance}, backend={result.backend}"
    )
    return feedback
