"""
Data models and schemas for PrepVoice

Contains Pydantic models for:
- Interview sessions
- Question/answer records
- Evaluation results
- Results reports
"""

from prepvoice.models.session import InterviewSession, SessionStatus, TabSwitchResult
from prepvoice.models.evaluation import (
    Confidence,
    DetailedEvaluation,
    Difficulty,
    GeneratedQuestion,
    QuestionCategory,
    QuestionHint,
)
from prepvoice.models.qa import AnswerUpdate, QuestionAnswer
from prepvoice.models.report import (
    DifficultyBreakdown,
    Grade,
    SessionResults,
    SkillLevel,
    SkillPerformance,
)

__all__ = [
    # Session
    "InterviewSession",
    "SessionStatus",
    "TabSwitchResult",
    # Evaluation
    "Confidence",
    "DetailedEvaluation",
    "Difficulty",
    "GeneratedQuestion",
    "QuestionCategory",
    "QuestionHint",
    # QA
    "AnswerUpdate",
    "QuestionAnswer",
    # Report
    "DifficultyBreakdown",
    "Grade",
    "SessionResults",
    "SkillLevel",
    "SkillPerformance",
]
