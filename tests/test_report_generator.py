"""
Tests for results aggregation.
"""

import pytest

from conftest import make_evaluation
from prepvoice.core.report_generator import ReportGenerator, round_half_up
from prepvoice.models.evaluation import Confidence, Difficulty, QuestionCategory
from prepvoice.models.qa import AnswerUpdate, QuestionAnswer
from prepvoice.models.report import Grade, SkillLevel
from prepvoice.models.session import InterviewSession, SessionStatus


def _session(total_questions=5, skills=None) -> InterviewSession:
    return InterviewSession(
        user_id="user-1",
        role="backend engineer",
        interview_type="technical",
        skills=skills or [],
        total_questions=total_questions,
        status=SessionStatus.COMPLETED,
    )


def _qa(session, number, score=None, difficulty=Difficulty.MEDIUM, skills=None, **evaluation):
    qa = QuestionAnswer(
        session_id=session.session_id,
        user_id=session.user_id,
        question_number=number,
        question=f"Question {number}",
        category=QuestionCategory.for_question(number),
        difficulty=difficulty,
        tested_skills=skills or [],
    )
    if score is None:
        return qa
    return qa.with_answer(AnswerUpdate(
        transcript=f"answer {number}",
        evaluation=make_evaluation(score, **evaluation),
    ))


@pytest.fixture
def generator() -> ReportGenerator:
    return ReportGenerator()


def test_average_divides_by_question_budget(generator):
    session = _session(total_questions=5)
    qas = [_qa(session, 1, 90), _qa(session, 2, 70), _qa(session, 3, 50)]

    results = generator.generate_results(session, qas)

    assert results.average_score == 42
    assert results.total_answered == 3
    assert results.grade == Grade.NEEDS_IMPROVEMENT


def test_unanswered_records_count_as_zero(generator):
    session = _session(total_questions=2)
    qas = [_qa(session, 1, 80), _qa(session, 2)]

    results = generator.generate_results(session, qas)

    assert results.total_answered == 1
    assert results.average_score == 40
    assert len(results.questions) == 2


@pytest.mark.parametrize("score, grade", [
    (100, Grade.EXCELLENT),
    (85, Grade.EXCELLENT),
    (84, Grade.GOOD),
    (70, Grade.GOOD),
    (69, Grade.SATISFACTORY),
    (50, Grade.SATISFACTORY),
    (49, Grade.NEEDS_IMPROVEMENT),
    (0, Grade.NEEDS_IMPROVEMENT),
])
def test_grade_thresholds(score, grade):
    assert Grade.from_score(score) == grade


def test_round_half_up():
    assert round_half_up(42.5) == 43
    assert round_half_up(41.5) == 42
    assert round_half_up(0.4) == 0


def test_skill_score_is_attributed_to_every_tested_skill(generator):
    session = _session(total_questions=1, skills=["SQL", "API design"])
    qas = [_qa(session, 1, 80, skills=["SQL", "API design"])]

    results = generator.generate_results(session, qas)

    by_skill = {item.skill: item for item in results.skill_performance}
    assert by_skill["SQL"].average_score == 80
    assert by_skill["API design"].average_score == 80
    assert by_skill["SQL"].question_count == 1
    assert by_skill["SQL"].level == SkillLevel.GOOD


def test_skills_sorted_by_average(generator):
    session = _session(total_questions=3, skills=["SQL", "Python", "Kafka"])
    qas = [
        _qa(session, 1, 60, skills=["SQL"]),
        _qa(session, 2, 90, skills=["Python"]),
        _qa(session, 3, 88, skills=["SQL", "Python"]),
    ]

    results = generator.generate_results(session, qas)

    assert [(s.skill, s.average_score) for s in results.skill_performance] == [
        ("Python", 89),
        ("SQL", 74),
    ]
    assert results.skill_performance[0].level == SkillLevel.EXCELLENT


def test_untested_skills_keep_declaration_order(generator):
    session = _session(total_questions=3, skills=["Kafka", "SQL", "Go", "Docker"])
    qas = [
        _qa(session, 1, 70, skills=["sql"]),
        _qa(session, 2, skills=["Docker"]),
    ]

    results = generator.generate_results(session, qas)

    assert results.untested_skills == ["Kafka", "Go"]


def test_difficulty_breakdown_groups_unrated(generator):
    session = _session(total_questions=4)
    qas = [
        _qa(session, 1, 60, difficulty=Difficulty.HARD),
        _qa(session, 2, 80, difficulty=Difficulty.EASY),
        _qa(session, 3, 71, difficulty=Difficulty.HARD),
        _qa(session, 4, 40, difficulty=None),
    ]

    results = generator.generate_results(session, qas)

    assert [(d.difficulty, d.average_score, d.count) for d in results.difficulty_breakdown] == [
        ("easy", 80, 1),
        ("hard", 66, 2),
        ("unrated", 40, 1),
    ]


def test_key_takeaways_and_confidence(generator):
    session = _session(total_questions=3)
    qas = [
        _qa(session, 1, 80, strengths=["Clear"], red_flags=["Vague"], confidence=Confidence.HIGH),
        _qa(session, 2, 60, strengths=["Clear", "Concise"], red_flags=["Vague"]),
        _qa(session, 3, 30, strengths=["Concise", "Clear"], confidence=Confidence.LOW),
    ]

    results = generator.generate_results(session, qas)

    assert results.key_takeaways.top_strengths == ["Clear", "Concise"]
    assert results.key_takeaways.red_flags == ["Vague"]
    assert results.confidence_distribution == {"low": 1, "medium": 1, "high": 1}
    assert results.dimension_scores.technical_accuracy == 57


def test_empty_session(generator):
    session = _session(total_questions=3, skills=["SQL"])

    results = generator.generate_results(session, [])

    assert results.average_score == 0
    assert results.grade == Grade.NEEDS_IMPROVEMENT
    assert results.difficulty_breakdown == []
    assert results.untested_skills == ["SQL"]


def test_skill_names_are_grouped_case_insensitively(generator):
    session = _session(total_questions=3, skills=["SQL", "Go"])
    qas = [
        _qa(session, 1, 90, skills=["SQL"]),
        _qa(session, 2, 70, skills=["sql ", "Kafka"]),
        _qa(session, 3, 50, skills=["kafka"]),
    ]

    results = generator.generate_results(session, qas)

    assert [(s.skill, s.average_score, s.question_count) for s in results.skill_performance] == [
        ("SQL", 80, 2),
        ("Kafka", 60, 2),
    ]
    assert results.untested_skills == ["Go"]
