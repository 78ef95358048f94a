"""
Session and QA record persistence.

Every mutating operation is a conditional update evaluated entirely inside
the store, so callers never read-modify-write a record.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from prepvoice.core.exceptions import DuplicateQuestionError, SessionNotFoundError
from prepvoice.models.base import utcnow
from prepvoice.models.qa import AnswerUpdate, QuestionAnswer
from prepvoice.models.session import InterviewSession, SessionStatus, TabSwitchResult

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Storage contract for sessions and their QA records."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    # =========================================================================
    # SESSIONS
    # =========================================================================

    @abstractmethod
    async def insert_session(self, session: InterviewSession) -> None:
        """Persist a new session."""

    @abstractmethod
    async def get_session(self, session_id: str) -> InterviewSession | None:
        """Get a session by ID."""

    @abstractmethod
    async def transition_status(
        self,
        session_id: str,
        from_status: SessionStatus,
        to_status: SessionStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> InterviewSession | None:
        """
        Move a session to ``to_status`` if it is still in ``from_status``.

        Returns:
            The updated session, or None when the status had already changed

        Raises:
            SessionNotFoundError: If the session does not exist
        """

    @abstractmethod
    async def advance_question_index(
        self, session_id: str, expected_index: int, new_index: int
    ) -> bool:
        """Set the question index if it still equals ``expected_index``."""

    @abstractmethod
    async def record_tab_switch(
        self, session_id: str, occurred_at: datetime, limit: int
    ) -> TabSwitchResult:
        """
        Atomically count a tab switch for an active session.

        Terminal sessions are left untouched. The call that brings the count
        to ``limit`` also cancels the session and is the only one that sees
        ``should_terminate=True``.

        Raises:
            SessionNotFoundError: If the session does not exist
        """

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a session and, by cascade, its QA records."""

    # =========================================================================
    # QA RECORDS
    # =========================================================================

    @abstractmethod
    async def insert_qa(self, qa: QuestionAnswer) -> None:
        """
        Persist a new QA record.

        Raises:
            DuplicateQuestionError: If the question number is already taken
        """

    @abstractmethod
    async def get_qa(
        self, session_id: str, question_number: int
    ) -> QuestionAnswer | None:
        """Get the QA record for a question number."""

    @abstractmethod
    async def list_qas(self, session_id: str) -> list[QuestionAnswer]:
        """List QA records ordered by question number."""

    @abstractmethod
    async def update_qa_answer(
        self, session_id: str, question_number: int, answer: AnswerUpdate
    ) -> QuestionAnswer | None:
        """Write every answer field of a QA record in one update."""


class InMemorySessionStore(SessionStore):
    """
    Dict-backed store for development and tests.

    Methods never await between reading and writing, so each call is
    atomic on the event loop. Records are copied in and out.
    """

    def __init__(self):
        self._sessions: dict[str, InterviewSession] = {}
        self._qas: dict[str, dict[int, QuestionAnswer]] = {}

    async def insert_session(self, session: InterviewSession) -> None:
        self._sessions[session.session_id] = session.model_copy(deep=True)
        self._qas.setdefault(session.session_id, {})

    async def get_session(self, session_id: str) -> InterviewSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    def _require(self, session_id: str) -> InterviewSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def transition_status(
        self,
        session_id: str,
        from_status: SessionStatus,
        to_status: SessionStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> InterviewSession | None:
        session = self._require(session_id)
        if session.status != from_status:
            return None

        session.status = to_status
        if started_at is not None:
            session.started_at = started_at
        if completed_at is not None:
            session.completed_at = completed_at
        session.updated_at = utcnow()
        return session.model_copy(deep=True)

    async def advance_question_index(
        self, session_id: str, expected_index: int, new_index: int
    ) -> bool:
        session = self._require(session_id)
        if session.current_question_index != expected_index:
            return False
        session.current_question_index = new_index
        session.updated_at = utcnow()
        return True

    async def record_tab_switch(
        self, session_id: str, occurred_at: datetime, limit: int
    ) -> TabSwitchResult:
        session = self._require(session_id)
        if session.status.is_terminal:
            return TabSwitchResult(tab_switches=session.tab_switches)

        session.tab_switches += 1
        session.tab_switch_timestamps.append(occurred_at)
        session.updated_at = utcnow()

        should_terminate = session.tab_switches >= limit
        if should_terminate:
            session.status = SessionStatus.CANCELLED
            session.terminated_for_tab_switches = True
            session.completed_at = occurred_at

        return TabSwitchResult(
            tab_switches=session.tab_switches,
            should_terminate=should_terminate,
        )

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._qas.pop(session_id, None)

    async def insert_qa(self, qa: QuestionAnswer) -> None:
        self._require(qa.session_id)
        records = self._qas.setdefault(qa.session_id, {})
        if qa.question_number in records:
            raise DuplicateQuestionError(qa.session_id, qa.question_number)
        records[qa.question_number] = qa.model_copy(deep=True)

    async def get_qa(
        self, session_id: str, question_number: int
    ) -> QuestionAnswer | None:
        qa = self._qas.get(session_id, {}).get(question_number)
        return qa.model_copy(deep=True) if qa else None

    async def list_qas(self, session_id: str) -> list[QuestionAnswer]:
        records = self._qas.get(session_id, {})
        return [records[n].model_copy(deep=True) for n in sorted(records)]

    async def update_qa_answer(
        self, session_id: str, question_number: int, answer: AnswerUpdate
    ) -> QuestionAnswer | None:
        records = self._qas.get(session_id, {})
        qa = records.get(question_number)
        if qa is None:
            return None
        if qa.is_answered:
            logger.info(
                f"Overwriting answer for session {session_id} question {question_number}"
            )
        records[question_number] = qa.with_answer(answer)
        return records[question_number].model_copy(deep=True)
