"""
Interview Orchestrator - State machine for managing interview lifecycle.

This is the central coordinator for an interview session. It validates
state transitions against an explicit table, drives the per-question
lifecycle (generate -> speak -> transcribe -> evaluate -> persist) and
counts tab switches. All writes go through conditional store updates.
"""

import logging
import time
from typing import Awaitable, Callable

from prepvoice.config.settings import Settings, get_settings
from prepvoice.core.evaluation_gateway import EvaluationGateway
from prepvoice.core.exceptions import (
    ConcurrentUpdateError,
    HintNotAllowedError,
    InterviewCompletedError,
    PolicyViolationError,
    QuestionNotFoundError,
    SessionNotFoundError,
    StateTransitionError,
)
from prepvoice.core.report_generator import ReportGenerator
from prepvoice.core.session_store import SessionStore
from prepvoice.models.base import utcnow
from prepvoice.models.evaluation import Difficulty, QuestionCategory, QuestionHint
from prepvoice.models.qa import AnswerResult, AnswerUpdate, NextQuestion, QuestionAnswer
from prepvoice.models.report import SessionResults
from prepvoice.models.session import InterviewSession, SessionStatus, TabSwitchResult

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[str, SessionStatus, SessionStatus], Awaitable[None]]

# Trailing words of live transcript sent as chunk context
MAX_CONTEXT_WORDS = 50


class InterviewOrchestrator:
    """
    Manages the interview lifecycle using a state machine pattern.

    States:
        PENDING → IN_PROGRESS → COMPLETED
            ↓           ↓
        CANCELLED ←─────┘   (tab-switch termination)

    The orchestrator coordinates between:
    - Evaluation Gateway (questions, evaluation, hints, STT, TTS)
    - Session Store (sessions and QA records)
    - Report Generator (results aggregation)
    """

    VALID_TRANSITIONS: dict[SessionStatus, list[SessionStatus]] = {
        SessionStatus.PENDING: [SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED],
        SessionStatus.IN_PROGRESS: [SessionStatus.COMPLETED, SessionStatus.CANCELLED],
        SessionStatus.COMPLETED: [],  # Terminal state
        SessionStatus.CANCELLED: [],  # Terminal state
    }

    def __init__(
        self,
        store: SessionStore,
        gateway: EvaluationGateway,
        report_generator: ReportGenerator | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the orchestrator with component dependencies.

        Args:
            store: Session and QA record persistence
            gateway: AI capabilities with timeout/fallback policy
            report_generator: Results aggregation
            settings: Settings override (question limits, tab-switch limit)
        """
        self.store = store
        self.gateway = gateway
        self.report_generator = report_generator or ReportGenerator()
        self.settings = settings or get_settings()

        self._state_change_callbacks: list[StateChangeCallback] = []

    def on_state_change(self, callback: StateChangeCallback) -> None:
        """Register a callback run after every committed status change."""
        self._state_change_callbacks.append(callback)

    async def _notify(self, session_id: str, old: SessionStatus, new: SessionStatus) -> None:
        for callback in self._state_change_callbacks:
            try:
                await callback(session_id, old, new)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    async def create_session(
        self,
        user_id: str,
        role: str,
        interview_type: str,
        years_of_experience: int = 0,
        skills: list[str] | None = None,
        total_questions: int | None = None,
    ) -> InterviewSession:
        """
        Create a new interview session in PENDING.

        Args:
            user_id: Owning principal
            role: Target role, e.g. "backend engineer"
            interview_type: e.g. "technical", "behavioral"
            years_of_experience: Declared experience, default for later calls
            skills: Declared skills to cover
            total_questions: Question budget, clamped into [1, max_total_questions]

        Returns:
            New InterviewSession instance
        """
        requested = (
            self.settings.default_total_questions if total_questions is None else total_questions
        )
        clamped = max(1, min(self.settings.max_total_questions, requested))
        if clamped != requested:
            logger.info(f"Clamped total questions from {requested} to {clamped}")

        declared = list(dict.fromkeys(s.strip() for s in (skills or []) if s and s.strip()))

        session = InterviewSession(
            user_id=user_id,
            role=role.strip(),
            interview_type=interview_type.strip(),
            years_of_experience=max(0, years_of_experience),
            skills=declared,
            total_questions=clamped,
        )
        await self.store.insert_session(session)

        logger.info(f"Created interview session: {session.session_id} ({clamped} questions)")
        return session

    async def get_session(self, session_id: str) -> InterviewSession:
        """
        Get a session by ID.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    async def transition_state(
        self,
        session_id: str,
        new_status: SessionStatus,
    ) -> InterviewSession:
        """
        Transition a session to a new status.

        Args:
            session_id: Session ID
            new_status: Target status

        Returns:
            Updated session

        Raises:
            SessionNotFoundError: If the session does not exist
            StateTransitionError: If transition is invalid
            ConcurrentUpdateError: If another request changed the status first
        """
        session = await self.get_session(session_id)
        old_status = session.status

        valid_next_states = self.VALID_TRANSITIONS.get(old_status, [])
        if new_status not in valid_next_states:
            raise StateTransitionError(
                f"Invalid transition from {old_status.value} to {new_status.value}. "
                f"Valid transitions: {[s.value for s in valid_next_states]}"
            )

        now = utcnow()
        updated = await self.store.transition_status(
            session_id,
            from_status=old_status,
            to_status=new_status,
            started_at=now if new_status == SessionStatus.IN_PROGRESS else None,
            completed_at=now if new_status.is_terminal else None,
        )
        if updated is None:
            raise ConcurrentUpdateError(
                f"Session {session_id} changed status while moving to {new_status.value}"
            )

        await self._notify(session_id, old_status, new_status)

        logger.info(f"Session {session_id}: {old_status.value} → {new_status.value}")
        return updated

    async def start_session(self, session_id: str) -> InterviewSession:
        """
        Start the interview. Starting an in-progress session is a no-op.

        Raises:
            SessionNotFoundError: If the session does not exist
            StateTransitionError: If the session already ended
        """
        session = await self.get_session(session_id)
        if session.status == SessionStatus.IN_PROGRESS:
            logger.info(f"Session {session_id} already in progress")
            return session
        return await self.transition_state(session_id, SessionStatus.IN_PROGRESS)

    async def complete_session(self, session_id: str) -> InterviewSession:
        """
        Finish the interview. Completing a completed session is a no-op;
        a cancelled session stays cancelled.

        Raises:
            SessionNotFoundError: If the session does not exist
            StateTransitionError: If the session is pending or cancelled
        """
        session = await self.get_session(session_id)
        if session.status == SessionStatus.COMPLETED:
            return session
        return await self.transition_state(session_id, SessionStatus.COMPLETED)

    # =========================================================================
    # INTERVIEW FLOW
    # =========================================================================

    async def generate_next_question(
        self,
        session_id: str,
        years_of_experience: int | None = None,
    ) -> NextQuestion:
        """
        Generate, persist and voice the next question, then advance the index.

        The QA record is stored before speech synthesis. If synthesis fails
        the index is not advanced and a retry reuses the stored record.

        Raises:
            SessionNotFoundError: If the session does not exist
            InterviewCompletedError: If every question has been asked
            PolicyViolationError: If the session is not in progress
            UpstreamUnavailableError: If speech synthesis fails
            DuplicateQuestionError: If a concurrent request created the record
            ConcurrentUpdateError: If the index moved during generation
        """
        session = await self.get_session(session_id)

        if session.current_question_index >= session.total_questions:
            raise InterviewCompletedError(session_id, session.total_questions)
        if session.status != SessionStatus.IN_PROGRESS:
            raise PolicyViolationError(
                f"Session {session_id} is {session.status.value}; questions are only "
                f"available while the interview is in progress"
            )

        expected_index = session.current_question_index
        next_number = expected_index + 1
        experience = years_of_experience if years_of_experience is not None else session.years_of_experience

        qa = await self.store.get_qa(session_id, next_number)
        if qa is None:
            generated = await self.gateway.generate_question(
                role=session.role,
                interview_type=session.interview_type,
                years_of_experience=experience,
                question_number=next_number,
                total_questions=session.total_questions,
                skills=session.skills,
            )
            qa = QuestionAnswer(
                session_id=session_id,
                user_id=session.user_id,
                question_number=next_number,
                question=generated.text,
                category=QuestionCategory.for_question(next_number),
                difficulty=generated.difficulty,
                tested_skills=generated.tested_skills,
            )
            await self.store.insert_qa(qa)
        else:
            logger.info(f"Session {session_id}: resuming stored question #{next_number}")

        audio = await self.gateway.synthesize_speech(qa.question)

        if not await self.store.advance_question_index(session_id, expected_index, next_number):
            raise ConcurrentUpdateError(
                f"Question index for session {session_id} moved past {expected_index}"
            )

        logger.info(
            f"Session {session_id}: asked question {next_number}/{session.total_questions} "
            f"({qa.category.value}, {qa.difficulty.value if qa.difficulty else 'unrated'})"
        )
        return NextQuestion(
            question=qa.question,
            question_number=next_number,
            difficulty=qa.difficulty,
            category=qa.category,
            tested_skills=qa.tested_skills,
            audio=audio,
        )

    async def get_question_hint(self, session_id: str, question_number: int) -> QuestionHint:
        """
        Get a hint for a hard question.

        Raises:
            SessionNotFoundError: If the session does not exist
            QuestionNotFoundError: If the question has not been generated
            HintNotAllowedError: If the question is not hard
        """
        session = await self.get_session(session_id)
        qa = await self.store.get_qa(session_id, question_number)
        if qa is None:
            raise QuestionNotFoundError(session_id, question_number)

        if qa.difficulty != Difficulty.HARD:
            raise HintNotAllowedError(qa.difficulty.value if qa.difficulty else None)

        return await self.gateway.generate_hint(qa.question, session.role, session.interview_type)

    async def process_answer(
        self,
        session_id: str,
        question_number: int,
        audio_data: bytes,
        years_of_experience: int | None = None,
    ) -> AnswerResult:
        """
        Transcribe, evaluate and record an answer.

        Resubmitting an answer overwrites the previous one.

        Raises:
            SessionNotFoundError: If the session does not exist
            PolicyViolationError: If the number is out of range or the
                session is not in progress
            QuestionNotFoundError: If the question has not been generated
            UpstreamUnavailableError: If transcription fails
        """
        session = await self.get_session(session_id)

        if not 1 <= question_number <= session.total_questions:
            raise PolicyViolationError(
                f"Question number {question_number} is outside 1..{session.total_questions}"
            )
        if session.status != SessionStatus.IN_PROGRESS:
            raise PolicyViolationError(
                f"Session {session_id} is {session.status.value}; answers are only "
                f"accepted while the interview is in progress"
            )

        qa = await self.store.get_qa(session_id, question_number)
        if qa is None:
            raise QuestionNotFoundError(session_id, question_number)

        started = time.monotonic()
        transcript = await self.gateway.transcribe(audio_data)
        duration = round(time.monotonic() - started, 2)

        experience = years_of_experience if years_of_experience is not None else session.years_of_experience
        evaluation = await self.gateway.evaluate_answer(
            question=qa.question,
            transcript=transcript,
            role=session.role,
            years_of_experience=experience,
            question_number=question_number,
        )

        updated = await self.store.update_qa_answer(
            session_id,
            question_number,
            AnswerUpdate(
                transcript=transcript,
                evaluation=evaluation,
                answer_duration_seconds=duration,
            ),
        )
        if updated is None:
            raise QuestionNotFoundError(session_id, question_number)

        logger.info(
            f"Session {session_id}: answer {question_number} scored "
            f"{evaluation.overall_score} ({evaluation.word_count} words)"
        )
        return AnswerResult(
            question_number=question_number,
            transcript=transcript,
            evaluation=evaluation,
        )

    async def transcribe_chunk(self, audio_data: bytes, previous_context: str = "") -> str:
        """Transcribe a live-recording chunk with bounded trailing context."""
        context = " ".join(previous_context.split()[-MAX_CONTEXT_WORDS:])
        return await self.gateway.transcribe_chunk(audio_data, context)

    async def synthesize_speech(self, text: str) -> bytes:
        """Voice arbitrary interviewer text."""
        return await self.gateway.synthesize_speech(text)

    # =========================================================================
    # ANTI-CHEAT
    # =========================================================================

    async def record_tab_switch(self, session_id: str) -> TabSwitchResult:
        """
        Count a tab switch; the one that reaches the limit cancels the session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = await self.get_session(session_id)
        result = await self.store.record_tab_switch(
            session_id, utcnow(), self.settings.tab_switch_limit
        )

        if result.should_terminate:
            logger.warning(
                f"Session {session_id} terminated after {result.tab_switches} tab switches"
            )
            await self._notify(session_id, session.status, SessionStatus.CANCELLED)
        elif not session.status.is_terminal:
            logger.info(f"Session {session_id}: tab switch {result.tab_switches}")

        return result

    # =========================================================================
    # RESULTS
    # =========================================================================

    async def list_questions(self, session_id: str) -> list[QuestionAnswer]:
        """QA records of a session ordered by question number."""
        await self.get_session(session_id)
        return await self.store.list_qas(session_id)

    async def get_results(self, session_id: str) -> SessionResults:
        """
        Aggregate results for a finished session.

        Raises:
            SessionNotFoundError: If the session does not exist
            PolicyViolationError: If the session has not ended
        """
        session = await self.get_session(session_id)
        if not session.status.is_terminal:
            raise PolicyViolationError(
                f"Results are available once the session ends; it is {session.status.value}"
            )

        qas = await self.store.list_qas(session_id)
        return self.report_generator.generate_results(session, qas)
