"""
SQLAlchemy-backed session store.

Works with any async driver (sqlite+aiosqlite for development). Every
mutation is a single conditional ``UPDATE ... WHERE`` or a constrained
``INSERT`` so concurrent requests cannot lose updates.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from prepvoice.core.exceptions import DuplicateQuestionError, SessionNotFoundError
from prepvoice.core.session_store import SessionStore
from prepvoice.models.base import utcnow
from prepvoice.models.qa import AnswerUpdate, QuestionAnswer
from prepvoice.models.session import InterviewSession, SessionStatus, TabSwitchResult

logger = logging.getLogger(__name__)

Base = declarative_base()

ACTIVE_STATUSES = (SessionStatus.PENDING.value, SessionStatus.IN_PROGRESS.value)


# ============================================================================
# TABLES
# ============================================================================

class SessionRow(Base):
    __tablename__ = "interview_sessions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(String(255), nullable=False)
    interview_type = Column(String(100), nullable=False)
    years_of_experience = Column(Integer, nullable=False, default=0)
    skills = Column(JSON, nullable=False, default=list)
    total_questions = Column(Integer, nullable=False)
    current_question_index = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value)
    tab_switches = Column(Integer, nullable=False, default=0)
    terminated_for_tab_switches = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class TabSwitchEventRow(Base):
    __tablename__ = "interview_tab_switch_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36),
        ForeignKey("interview_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    occurred_at = Column(DateTime(timezone=True), nullable=False)


class QuestionAnswerRow(Base):
    __tablename__ = "interview_qa"
    __table_args__ = (
        UniqueConstraint("session_id", "question_number", name="uq_interview_qa_session_question"),
    )

    id = Column(String(36), primary_key=True)
    session_id = Column(
        String(36),
        ForeignKey("interview_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(255), nullable=False)
    question_number = Column(Integer, nullable=False)
    question = Column(Text, nullable=False)
    category = Column(String(50), nullable=False)
    difficulty = Column(String(20), nullable=True)
    tested_skills = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)

    transcript = Column(Text, nullable=True)
    overall_score = Column(Integer, nullable=True)
    technical_accuracy = Column(Integer, nullable=True)
    communication_clarity = Column(Integer, nullable=True)
    depth_of_knowledge = Column(Integer, nullable=True)
    problem_solving_approach = Column(Integer, nullable=True)
    relevance_to_role = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    strengths = Column(JSON, nullable=True)
    improvements = Column(JSON, nullable=True)
    key_insights = Column(JSON, nullable=True)
    red_flags = Column(JSON, nullable=True)
    follow_up_questions = Column(JSON, nullable=True)
    word_count = Column(Integer, nullable=True)
    answer_duration_seconds = Column(Float, nullable=True)
    confidence = Column(String(10), nullable=True)
    answered_at = Column(DateTime(timezone=True), nullable=True)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


QA_ANSWER_COLUMNS = (
    "transcript",
    "overall_score",
    "technical_accuracy",
    "communication_clarity",
    "depth_of_knowledge",
    "problem_solving_approach",
    "relevance_to_role",
    "feedback",
    "strengths",
    "improvements",
    "key_insights",
    "red_flags",
    "follow_up_questions",
    "word_count",
    "answer_duration_seconds",
    "confidence",
)


class SqlSessionStore(SessionStore):
    """Relational store using SQLAlchemy's asyncio extension."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine: AsyncEngine = create_async_engine(database_url, echo=echo)
        self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def init_db(self) -> None:
        """Create tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Interview tables ready")

    async def close(self) -> None:
        await self.engine.dispose()

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def _to_session(self, row: SessionRow, timestamps: list[datetime]) -> InterviewSession:
        return InterviewSession(
            session_id=row.id,
            user_id=row.user_id,
            role=row.role,
            interview_type=row.interview_type,
            years_of_experience=row.years_of_experience,
            skills=list(row.skills or []),
            total_questions=row.total_questions,
            current_question_index=row.current_question_index,
            status=SessionStatus(row.status),
            tab_switches=row.tab_switches,
            tab_switch_timestamps=[_aware(ts) for ts in timestamps],
            terminated_for_tab_switches=row.terminated_for_tab_switches,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
            started_at=_aware(row.started_at),
            completed_at=_aware(row.completed_at),
        )

    def _to_qa(self, row: QuestionAnswerRow) -> QuestionAnswer:
        return QuestionAnswer(
            qa_id=row.id,
            session_id=row.session_id,
            user_id=row.user_id,
            question_number=row.question_number,
            question=row.question,
            category=row.category,
            difficulty=row.difficulty,
            tested_skills=list(row.tested_skills or []),
            created_at=_aware(row.created_at),
            **{name: getattr(row, name) for name in QA_ANSWER_COLUMNS},
            answered_at=_aware(row.answered_at),
        )

    async def _load_session(self, db, session_id: str) -> InterviewSession | None:
        row = await db.get(SessionRow, session_id, populate_existing=True)
        if row is None:
            return None
        result = await db.execute(
            select(TabSwitchEventRow.occurred_at)
            .where(TabSwitchEventRow.session_id == session_id)
            .order_by(TabSwitchEventRow.id)
        )
        return self._to_session(row, list(result.scalars()))

    # =========================================================================
    # SESSIONS
    # =========================================================================

    async def insert_session(self, session: InterviewSession) -> None:
        async with self._session_factory.begin() as db:
            db.add(SessionRow(
                id=session.session_id,
                user_id=session.user_id,
                role=session.role,
                interview_type=session.interview_type,
                years_of_experience=session.years_of_experience,
                skills=list(session.skills),
                total_questions=session.total_questions,
                current_question_index=session.current_question_index,
                status=session.status.value,
                tab_switches=session.tab_switches,
                terminated_for_tab_switches=session.terminated_for_tab_switches,
                created_at=session.created_at,
                updated_at=session.updated_at,
                started_at=session.started_at,
                completed_at=session.completed_at,
            ))

    async def get_session(self, session_id: str) -> InterviewSession | None:
        async with self._session_factory() as db:
            return await self._load_session(db, session_id)

    async def transition_status(
        self,
        session_id: str,
        from_status: SessionStatus,
        to_status: SessionStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> InterviewSession | None:
        values = {"status": to_status.value, "updated_at": utcnow()}
        if started_at is not None:
            values["started_at"] = started_at
        if completed_at is not None:
            values["completed_at"] = completed_at

        async with self._session_factory.begin() as db:
            result = await db.execute(
                update(SessionRow)
                .where(SessionRow.id == session_id, SessionRow.status == from_status.value)
                .values(**values)
            )
            session = await self._load_session(db, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return session if result.rowcount == 1 else None

    async def advance_question_index(
        self, session_id: str, expected_index: int, new_index: int
    ) -> bool:
        async with self._session_factory.begin() as db:
            result = await db.execute(
                update(SessionRow)
                .where(
                    SessionRow.id == session_id,
                    SessionRow.current_question_index == expected_index,
                )
                .values(current_question_index=new_index, updated_at=utcnow())
            )
            return result.rowcount == 1

    async def record_tab_switch(
        self, session_id: str, occurred_at: datetime, limit: int
    ) -> TabSwitchResult:
        async with self._session_factory.begin() as db:
            result = await db.execute(
                update(SessionRow)
                .where(SessionRow.id == session_id, SessionRow.status.in_(ACTIVE_STATUSES))
                .values(tab_switches=SessionRow.tab_switches + 1, updated_at=utcnow())
            )
            if result.rowcount == 0:
                row = await db.get(SessionRow, session_id)
                if row is None:
                    raise SessionNotFoundError(session_id)
                return TabSwitchResult(tab_switches=row.tab_switches)

            db.add(TabSwitchEventRow(session_id=session_id, occurred_at=occurred_at))
            count = (await db.execute(
                select(SessionRow.tab_switches).where(SessionRow.id == session_id)
            )).scalar_one()

            should_terminate = False
            if count >= limit:
                terminated = await db.execute(
                    update(SessionRow)
                    .where(SessionRow.id == session_id, SessionRow.status.in_(ACTIVE_STATUSES))
                    .values(
                        status=SessionStatus.CANCELLED.value,
                        terminated_for_tab_switches=True,
                        completed_at=occurred_at,
                    )
                )
                should_terminate = terminated.rowcount == 1

            return TabSwitchResult(tab_switches=count, should_terminate=should_terminate)

    async def delete_session(self, session_id: str) -> None:
        # SQLite only enforces ON DELETE CASCADE with the foreign_keys pragma
        async with self._session_factory.begin() as db:
            await db.execute(delete(QuestionAnswerRow).where(QuestionAnswerRow.session_id == session_id))
            await db.execute(delete(TabSwitchEventRow).where(TabSwitchEventRow.session_id == session_id))
            await db.execute(delete(SessionRow).where(SessionRow.id == session_id))

    # =========================================================================
    # QA RECORDS
    # =========================================================================

    async def insert_qa(self, qa: QuestionAnswer) -> None:
        try:
            async with self._session_factory.begin() as db:
                if await db.get(SessionRow, qa.session_id) is None:
                    raise SessionNotFoundError(qa.session_id)
                db.add(QuestionAnswerRow(
                    id=qa.qa_id,
                    session_id=qa.session_id,
                    user_id=qa.user_id,
                    question_number=qa.question_number,
                    question=qa.question,
                    category=qa.category.value,
                    difficulty=qa.difficulty.value if qa.difficulty else None,
                    tested_skills=list(qa.tested_skills),
                    created_at=qa.created_at,
                ))
        except IntegrityError as e:
            logger.warning(f"Duplicate QA insert rejected: {e.orig}")
            raise DuplicateQuestionError(qa.session_id, qa.question_number) from e

    async def get_qa(
        self, session_id: str, question_number: int
    ) -> QuestionAnswer | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(QuestionAnswerRow).where(
                    QuestionAnswerRow.session_id == session_id,
                    QuestionAnswerRow.question_number == question_number,
                )
            )
            row = result.scalar_one_or_none()
            return self._to_qa(row) if row else None

    async def list_qas(self, session_id: str) -> list[QuestionAnswer]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(QuestionAnswerRow)
                .where(QuestionAnswerRow.session_id == session_id)
                .order_by(QuestionAnswerRow.question_number)
            )
            return [self._to_qa(row) for row in result.scalars()]

    async def update_qa_answer(
        self, session_id: str, question_number: int, answer: AnswerUpdate
    ) -> QuestionAnswer | None:
        evaluation = answer.evaluation
        values = {
            "transcript": answer.transcript,
            "overall_score": evaluation.overall_score,
            "technical_accuracy": evaluation.technical_accuracy,
            "communication_clarity": evaluation.communication_clarity,
            "depth_of_knowledge": evaluation.depth_of_knowledge,
            "problem_solving_approach": evaluation.problem_solving_approach,
            "relevance_to_role": evaluation.relevance_to_role,
            "feedback": evaluation.feedback,
            "strengths": list(evaluation.strengths),
            "improvements": list(evaluation.improvements),
            "key_insights": list(evaluation.key_insights),
            "red_flags": list(evaluation.red_flags),
            "follow_up_questions": list(evaluation.follow_up_questions),
            "word_count": evaluation.word_count,
            "answer_duration_seconds": answer.answer_duration_seconds,
            "confidence": evaluation.confidence.value,
            "answered_at": answer.answered_at,
        }

        async with self._session_factory.begin() as db:
            result = await db.execute(
                update(QuestionAnswerRow)
                .where(
                    QuestionAnswerRow.session_id == session_id,
                    QuestionAnswerRow.question_number == question_number,
                )
                .values(**values)
            )
            if result.rowcount == 0:
                return None
            row = (await db.execute(
                select(QuestionAnswerRow)
                .where(
                    QuestionAnswerRow.session_id == session_id,
                    QuestionAnswerRow.question_number == question_number,
                )
                .execution_options(populate_existing=True)
            )).scalar_one()
            return self._to_qa(row)
