"""
Report Generator for PrepVoice

Aggregates the QA records of a finished session into a results report:
- Average score and grade
- Per-difficulty and per-category averages
- Per-skill performance and untested skills
- Dimension averages, recurring feedback and confidence distribution

Pure computation: reads nothing and writes nothing.
"""

import logging
from collections import Counter, defaultdict
from decimal import ROUND_HALF_UP, Decimal

from prepvoice.models.qa import QuestionAnswer
from prepvoice.models.report import (
    CategoryPerformance,
    DifficultyBreakdown,
    DimensionScores,
    Grade,
    KeyTakeaways,
    SessionResults,
    SkillLevel,
    SkillPerformance,
)
from prepvoice.models.session import InterviewSession

logger = logging.getLogger(__name__)

UNRATED = "unrated"
DIFFICULTY_ORDER = {"easy": 0, "medium": 1, "hard": 2, UNRATED: 3}


def round_half_up(value: float | Decimal) -> int:
    """Round .5 away from zero for non-negative scores (round() would bank)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _average(scores: list[int]) -> int:
    if not scores:
        return 0
    return round_half_up(Decimal(sum(scores)) / Decimal(len(scores)))


def _skill_key(skill: str) -> str:
    return skill.strip().lower()


class ReportGenerator:
    """
    Generates results reports for completed or cancelled sessions.

    The overall average divides by the session's question budget, not the
    number answered, so skipped questions count as zero.
    """

    def generate_results(
        self,
        session: InterviewSession,
        qas: list[QuestionAnswer],
    ) -> SessionResults:
        """
        Generate the results report.

        Args:
            session: Completed or cancelled session
            qas: All QA records of the session

        Returns:
            Complete SessionResults
        """
        ordered = sorted(qas, key=lambda qa: qa.question_number)
        answered = [qa for qa in ordered if qa.is_answered]

        total_score = sum(qa.overall_score or 0 for qa in ordered)
        average_score = round_half_up(Decimal(total_score) / Decimal(session.total_questions))
        grade = Grade.from_score(average_score)

        results = SessionResults(
            session_id=session.session_id,
            role=session.role,
            interview_type=session.interview_type,
            status=session.status,
            terminated_for_tab_switches=session.terminated_for_tab_switches,
            tab_switches=session.tab_switches,
            total_questions=session.total_questions,
            total_answered=len(answered),
            average_score=average_score,
            grade=grade,
            difficulty_breakdown=self._difficulty_breakdown(answered),
            skill_performance=self._skill_performance(session.skills, answered),
            untested_skills=self._untested_skills(session.skills, ordered),
            category_performance=self._category_performance(answered),
            dimension_scores=self._dimension_scores(answered),
            key_takeaways=self._key_takeaways(answered),
            confidence_distribution=self._confidence_distribution(answered),
            questions=ordered,
            started_at=session.started_at,
            completed_at=session.completed_at,
            duration_seconds=session.duration_seconds,
        )

        logger.info(
            f"Generated results for session {session.session_id}: "
            f"{len(answered)}/{session.total_questions} answered, "
            f"average {average_score} ({grade.value})"
        )
        return results

    # =========================================================================
    # BREAKDOWNS
    # =========================================================================

    def _difficulty_breakdown(self, answered: list[QuestionAnswer]) -> list[DifficultyBreakdown]:
        groups: dict[str, list[int]] = defaultdict(list)
        for qa in answered:
            key = qa.difficulty.value if qa.difficulty else UNRATED
            groups[key].append(qa.overall_score or 0)

        return [
            DifficultyBreakdown(difficulty=key, average_score=_average(scores), count=len(scores))
            for key, scores in sorted(groups.items(), key=lambda item: DIFFICULTY_ORDER[item[0]])
        ]

    def _skill_performance(
        self,
        declared: list[str],
        answered: list[QuestionAnswer],
    ) -> list[SkillPerformance]:
        """Attribute each answer's score to every skill it tested."""
        names = {_skill_key(skill): skill for skill in declared}
        scores_by_skill: dict[str, list[int]] = defaultdict(list)
        for qa in answered:
            keys = dict.fromkeys(_skill_key(skill) for skill in qa.tested_skills if skill.strip())
            for key in keys:
                scores_by_skill[key].append(qa.overall_score or 0)
            for skill in qa.tested_skills:
                names.setdefault(_skill_key(skill), skill.strip())

        performance = []
        for key, scores in scores_by_skill.items():
            average = _average(scores)
            performance.append(SkillPerformance(
                skill=names[key],
                average_score=average,
                question_count=len(scores),
                level=SkillLevel.from_score(average),
            ))

        return sorted(performance, key=lambda x: x.average_score, reverse=True)

    def _untested_skills(self, declared: list[str], qas: list[QuestionAnswer]) -> list[str]:
        tested = {_skill_key(skill) for qa in qas for skill in qa.tested_skills}
        return [skill for skill in declared if _skill_key(skill) not in tested]

    def _category_performance(self, answered: list[QuestionAnswer]) -> list[CategoryPerformance]:
        groups: dict[str, list[int]] = defaultdict(list)
        for qa in answered:
            groups[qa.category.value].append(qa.overall_score or 0)

        return [
            CategoryPerformance(category=category, average_score=_average(scores), count=len(scores))
            for category, scores in groups.items()
        ]

    def _dimension_scores(self, answered: list[QuestionAnswer]) -> DimensionScores:
        def dimension(name: str) -> int:
            values = [getattr(qa, name) for qa in answered if getattr(qa, name) is not None]
            return _average(values)

        return DimensionScores(
            technical_accuracy=dimension("technical_accuracy"),
            communication_clarity=dimension("communication_clarity"),
            depth_of_knowledge=dimension("depth_of_knowledge"),
            problem_solving_approach=dimension("problem_solving_approach"),
            relevance_to_role=dimension("relevance_to_role"),
        )

    # =========================================================================
    # QUALITATIVE
    # =========================================================================

    def _most_common(self, items: list[str], limit: int) -> list[str]:
        counts = Counter(item.strip() for item in items if item and item.strip())
        return [item for item, _ in counts.most_common(limit)]

    def _key_takeaways(self, answered: list[QuestionAnswer]) -> KeyTakeaways:
        strengths = [s for qa in answered for s in (qa.strengths or [])]
        improvements = [s for qa in answered for s in (qa.improvements or [])]
        insights = [s for qa in answered for s in (qa.key_insights or [])]
        red_flags = [s for qa in answered for s in (qa.red_flags or [])]

        return KeyTakeaways(
            top_strengths=self._most_common(strengths, 5),
            top_improvements=self._most_common(improvements, 5),
            key_insights=self._most_common(insights, 3),
            red_flags=list(dict.fromkeys(f.strip() for f in red_flags if f.strip())),
        )

    def _confidence_distribution(self, answered: list[QuestionAnswer]) -> dict[str, int]:
        distribution = {"low": 0, "medium": 0, "high": 0}
        for qa in answered:
            if qa.confidence:
                distribution[qa.confidence.value] += 1
        return distribution
