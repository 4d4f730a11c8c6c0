"""
Domain errors raised by the session, transcript and feedback services.

Routes translate these into HTTP responses; background jobs log them.
"""
from typing import Optional


class InterviewCoreError(Exception):
    """Base class for all service-layer errors."""
    retryable = False


class SessionNotFoundError(InterviewCoreError):
    def __init__(self, session_id: str):
        super().__init__(f"Interview session {session_id} not found")
        self.session_id = session_id


class FeedbackNotFoundError(InterviewCoreError):
    def __init__(self, session_id: str):
        super().__init__(f"No basic feedback exists for session {session_id}")
        self.session_id = session_id


class InvalidSessionStateError(InterviewCoreError):
    """Operation attempted in a session state that forbids it."""

    def __init__(self, session_id: str, current: str, operation: str):
        super().__init__(f"Cannot {operation} session {session_id} in state {current}")
        self.session_id = session_id
        self.current = current
        self.operation = operation


class InsufficientTranscriptError(InterviewCoreError):
    """Basic scoring attempted on an empty or too-short transcript."""
    retryable = True

    def __init__(self, session_id: str, candidate_turns: int, candidate_words: int):
        super().__init__(
            f"Transcript for session {session_id} is too short to score "
            f"(candidate_turns={candidate_turns}, candidate_words={candidate_words})"
        )
        self.session_id = session_id
        self.candidate_turns = candidate_turns
        self.candidate_words = candidate_words


class AnalysisBackendError(InterviewCoreError):
    """The external analysis call failed, timed out or returned garbage."""
    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConcurrencyConflictError(InterviewCoreError):
    """Lost a compare-and-swap race. Callers resolve this as a silent no-op."""
    retryable = True
