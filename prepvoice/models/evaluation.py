"""
Evaluation models for PrepVoice

Defines the outputs of the AI capabilities: generated questions,
multi-metric answer evaluations and hints.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from prepvoice.models.base import CamelModel


def _coerce_score(value: Any) -> int:
    """Clamp model-reported scores into 0-100, tolerating floats and strings."""
    try:
        score = round(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


def _clean_list(value: Any) -> list[str]:
    """Keep non-empty strings from a model-reported list."""
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


Score = Annotated[int, BeforeValidator(_coerce_score)]
TextList = Annotated[list[str], BeforeValidator(_clean_list)]


class Difficulty(str, Enum):
    """Question difficulty levels."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionCategory(str, Enum):
    """Question categories, asked in this fixed rotation order."""

    BEHAVIORAL = "behavioral"
    TECHNICAL = "technical"
    SITUATIONAL = "situational"
    COMPETENCY = "competency"
    PROBLEM_SOLVING = "problem_solving"

    @classmethod
    def for_question(cls, question_number: int) -> "QuestionCategory":
        """Round-robin category for a 1-based question number."""
        categories = list(cls)
        return categories[(question_number - 1) % len(categories)]


class Confidence(str, Enum):
    """Evaluator confidence in its own scoring."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GeneratedQuestion(CamelModel):
    """Output of the question generation capability."""

    text: str
    difficulty: Difficulty | None = None
    tested_skills: list[str] = Field(default_factory=list)
    fallback_used: bool = False


class QuestionHint(CamelModel):
    """Output of the hint capability."""

    hint: str
    examples: list[str] = Field(default_factory=list)


# ============================================================================
# AGENT ASSESSMENTS (parsed from model JSON replies)
# ============================================================================

class TechnicalAssessment(CamelModel):
    """Technical agent output."""

    technical_accuracy: Score = 35
    depth_of_knowledge: Score = 30
    problem_solving_approach: Score = 30
    technical_strengths: TextList = Field(default_factory=list)
    technical_gaps: TextList = Field(default_factory=list)
    red_flags: TextList = Field(default_factory=list)
    reasoning: str | None = None


class CommunicationAssessment(CamelModel):
    """Communication agent output."""

    communication_clarity: Score = 50
    structure_score: Score = 45
    conciseness: Score = 45
    communication_strengths: TextList = Field(default_factory=list)
    communication_improvements: TextList = Field(default_factory=list)


class RoleAssessment(CamelModel):
    """Role-specific agent output."""

    relevance_to_role: Score = 50
    experience_level_alignment: Score = 45
    role_specific_insights: TextList = Field(default_factory=list)
    missing_competencies: TextList = Field(default_factory=list)
    follow_up_questions: TextList = Field(default_factory=list)


class DetailedEvaluation(CamelModel):
    """Multi-metric evaluation of a single answer (scores 0-100)."""

    overall_score: int = Field(..., ge=0, le=100)
    technical_accuracy: int = Field(..., ge=0, le=100)
    communication_clarity: int = Field(..., ge=0, le=100)
    depth_of_knowledge: int = Field(..., ge=0, le=100)
    problem_solving_approach: int = Field(..., ge=0, le=100)
    relevance_to_role: int = Field(..., ge=0, le=100)

    # Qualitative
    feedback: str = ""
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)

    # Meta
    word_count: int = 0
    confidence: Confidence = Confidence.MEDIUM
    fallback_used: bool = False
