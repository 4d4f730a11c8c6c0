"""
Background entry points for the feedback pipeline.

Each job opens its own DB session because it runs after the request that
scheduled it has closed its session.
"""
import logging

from app.core.exceptions import InterviewCoreError
from app.db.session import SessionLocal
from app.services import feedback_service

logger = logging.getLogger(__name__)


def run_basic_feedback(session_id: str) -> None:
    db = SessionLocal()
    try:
        feedback_service.compute_basic_feedback(db, session_id)
    except InterviewCoreError as e:
        # Failure is already recorded on feedback_status; a retry trigger can pick it up
        logger.warning(f"Background basic feedback did not complete: session_id={session_id}, error={e}")
    except Exception as e:
        logger.error(f"Background basic feedback crashed: session_id={session_id}, error={e}", exc_info=True)
        raise
    finally:
        db.close()


def run_enhanced_feedback(session_id: str) -> None:
    db = SessionLocal()
    try:
        feedback_service.compute_enhanced_feedback(db, session_id)
    except InterviewCoreError as e:
        logger.warning(f"Background enhanced feedback did not complete: session_id={session_id}, error={e}")
    except Exception as e:
        logger.error(f"Background enhanced feedback crashed: session_id={session_id}, error={e}", exc_info=True)
        raise
    finally:
        db.close()
