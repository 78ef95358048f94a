"""
Report models for PrepVoice

Defines the structure of the aggregated results report.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from prepvoice.models.base import CamelModel
from prepvoice.models.qa import QuestionAnswer
from prepvoice.models.session import SessionStatus


class Grade(str, Enum):
    """Overall grade for a session."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    SATISFACTORY = "Satisfactory"
    NEEDS_IMPROVEMENT = "Needs Improvement"

    @classmethod
    def from_score(cls, score: float) -> "Grade":
        """Map an average score to a grade."""
        if score >= 85:
            return cls.EXCELLENT
        elif score >= 70:
            return cls.GOOD
        elif score >= 50:
            return cls.SATISFACTORY
        else:
            return cls.NEEDS_IMPROVEMENT


class SkillLevel(str, Enum):
    """Qualitative level for a skill's average score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    SATISFACTORY = "satisfactory"
    NEEDS_IMPROVEMENT = "needs_improvement"

    @classmethod
    def from_score(cls, score: float) -> "SkillLevel":
        """Map a skill average to a level."""
        if score >= 85:
            return cls.EXCELLENT
        elif score >= 70:
            return cls.GOOD
        elif score >= 55:
            return cls.SATISFACTORY
        else:
            return cls.NEEDS_IMPROVEMENT


class DifficultyBreakdown(CamelModel):
    """Average score for answered questions of one difficulty."""

    difficulty: str
    average_score: int
    count: int


class SkillPerformance(CamelModel):
    """Aggregated score for one tested skill."""

    skill: str
    average_score: int
    question_count: int
    level: SkillLevel


class CategoryPerformance(CamelModel):
    """Average score for answered questions of one category."""

    category: str
    average_score: int
    count: int


class DimensionScores(CamelModel):
    """Average of each evaluation dimension over answered questions."""

    technical_accuracy: int = 0
    communication_clarity: int = 0
    depth_of_knowledge: int = 0
    problem_solving_approach: int = 0
    relevance_to_role: int = 0


class KeyTakeaways(CamelModel):
    """Most frequent qualitative notes across the session."""

    top_strengths: list[str] = Field(default_factory=list)
    top_improvements: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)


class SessionResults(CamelModel):
    """Read-only results report for a completed or cancelled session."""

    session_id: str
    role: str
    interview_type: str
    status: SessionStatus
    terminated_for_tab_switches: bool = False
    tab_switches: int = 0

    # Headline
    total_questions: int
    total_answered: int
    average_score: int
    grade: Grade

    # Breakdowns
    difficulty_breakdown: list[DifficultyBreakdown] = Field(default_factory=list)
    skill_performance: list[SkillPerformance] = Field(default_factory=list)
    untested_skills: list[str] = Field(default_factory=list)
    category_performance: list[CategoryPerformance] = Field(default_factory=list)
    dimension_scores: DimensionScores = Field(default_factory=DimensionScores)
    key_takeaways: KeyTakeaways = Field(default_factory=KeyTakeaways)
    confidence_distribution: dict[str, int] = Field(default_factory=dict)

    # Detail
    questions: list[QuestionAnswer] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: float = 0.0
