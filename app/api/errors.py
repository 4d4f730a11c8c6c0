"""
Translate service-layer errors into HTTP responses.
"""
from fastapi import HTTPException, status

from app.core.exceptions import (
    InterviewCoreError,
    SessionNotFoundError,
    FeedbackNotFoundError,
    InvalidSessionStateError,
    InsufficientTranscriptError,
    AnalysisBackendError,
    ConcurrencyConflictError,
)

_STATUS_CODES = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    FeedbackNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidSessionStateError: status.HTTP_409_CONFLICT,
    InsufficientTranscriptError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AnalysisBackendError: status.HTTP_502_BAD_GATEWAY,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: InterviewCoreError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(
        status_code=status_code,
        detail={
            "error": type(error).__name__,
            "message": str(error),
            "retryable": error.retryable,
        },
    )
