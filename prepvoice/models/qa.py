"""
Question/answer record models for PrepVoice
"""

from datetime import datetime
from uuid import uuid4

from pydantic import Field

from prepvoice.models.base import CamelModel, utcnow
from prepvoice.models.evaluation import (
    Confidence,
    DetailedEvaluation,
    Difficulty,
    QuestionCategory,
)


class NextQuestion(CamelModel):
    """A question ready to be asked, with its synthesized audio."""

    question: str
    question_number: int
    difficulty: Difficulty | None = None
    category: QuestionCategory
    tested_skills: list[str] = Field(default_factory=list)
    audio: bytes = Field(default=b"", exclude=True)


class AnswerResult(CamelModel):
    """Outcome of processing a submitted answer."""

    question_number: int
    transcript: str
    evaluation: DetailedEvaluation


class AnswerUpdate(CamelModel):
    """Every field written onto a QA record when its answer is processed."""

    transcript: str
    evaluation: DetailedEvaluation
    answer_duration_seconds: float = 0.0
    answered_at: datetime = Field(default_factory=utcnow)


class QuestionAnswer(CamelModel):
    """
    Persisted unit for one question within a session.

    Holds the question as generated and, once submitted, the transcript
    and evaluation of its answer. Answer fields stay None until then.
    """

    qa_id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    user_id: str

    # Set at creation
    question_number: int = Field(..., ge=1)
    question: str
    category: QuestionCategory
    difficulty: Difficulty | None = None
    tested_skills: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    # Set after answer submission
    transcript: str | None = None
    overall_score: int | None = None
    technical_accuracy: int | None = None
    communication_clarity: int | None = None
    depth_of_knowledge: int | None = None
    problem_solving_approach: int | None = None
    relevance_to_role: int | None = None
    feedback: str | None = None
    strengths: list[str] | None = None
    improvements: list[str] | None = None
    key_insights: list[str] | None = None
    red_flags: list[str] | None = None
    follow_up_questions: list[str] | None = None
    word_count: int | None = None
    answer_duration_seconds: float | None = None
    confidence: Confidence | None = None
    answered_at: datetime | None = None

    @property
    def is_answered(self) -> bool:
        """Whether an answer has been recorded."""
        return self.transcript is not None

    def with_answer(self, update: AnswerUpdate) -> "QuestionAnswer":
        """Return a copy with every answer field set from the update."""
        evaluation = update.evaluation
        return self.model_copy(
            update={
                "transcript": update.transcript,
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
                "answer_duration_seconds": update.answer_duration_seconds,
                "confidence": evaluation.confidence,
                "answered_at": update.answered_at,
            },
            deep=True,
        )
