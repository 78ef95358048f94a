"""
Exception hierarchy for the interview session engine.

Endpoints map these onto HTTP status codes; see ``status_code``.
"""


class InterviewError(Exception):
    """Base class for interview engine errors."""

    status_code: int = 500


class SessionNotFoundError(InterviewError):
    """Raised when a session does not exist."""

    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class QuestionNotFoundError(InterviewError):
    """Raised when no QA record exists for a session/question number."""

    status_code = 404

    def __init__(self, session_id: str, question_number: int):
        super().__init__(
            f"Question {question_number} not found for session {session_id}"
        )
        self.session_id = session_id
        self.question_number = question_number


class PolicyViolationError(InterviewError):
    """Raised when a request breaks an interview rule."""

    status_code = 400


class HintNotAllowedError(PolicyViolationError):
    """Raised when a hint is requested for a question that is not hard."""

    status_code = 403

    def __init__(self, difficulty: str | None):
        label = difficulty or "unrated"
        super().__init__(
            f"Hints are only available for hard questions; this question is {label}"
        )
        self.difficulty = difficulty


class StateTransitionError(PolicyViolationError):
    """Raised when an invalid state transition is attempted."""

    status_code = 409


class InterviewCompletedError(PolicyViolationError):
    """Raised when the question budget is exhausted."""

    status_code = 409

    def __init__(self, session_id: str, total_questions: int):
        super().__init__(
            f"Interview completed: all {total_questions} questions already asked "
            f"for session {session_id}"
        )
        self.session_id = session_id


class UpstreamUnavailableError(InterviewError):
    """Raised when an AI capability without a safe fallback fails."""

    status_code = 503


class DuplicateQuestionError(InterviewError):
    """Raised when a QA record already exists for a session/question number."""

    status_code = 409

    def __init__(self, session_id: str, question_number: int):
        super().__init__(
            f"Question {question_number} already exists for session {session_id}"
        )
        self.session_id = session_id
        self.question_number = question_number


class ConcurrentUpdateError(InterviewError):
    """Raised when a conditional store update loses a race."""

    status_code = 409
