"""
Tests for the LLM-backed reasoning layer, with the chat API mocked.
"""

import json

import httpx
import pytest

from conftest import make_settings
from prepvoice.core.ai_reasoning import (
    UNPARSEABLE_HINT,
    AIReasoningLayer,
    is_generic_answer,
    min_expected_words,
)
from prepvoice.models.evaluation import (
    CommunicationAssessment,
    Confidence,
    Difficulty,
    RoleAssessment,
    TechnicalAssessment,
)

LONG_ANSWER = " ".join(["I partitioned the table by tenant and added covering indexes."] * 10)


def _completion(content) -> httpx.Response:
    if not isinstance(content, str):
        content = json.dumps(content)
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def _layer(handler) -> AIReasoningLayer:
    client = httpx.AsyncClient(
        base_url="https://llm.test/v1",
        transport=httpx.MockTransport(handler),
    )
    return AIReasoningLayer(settings=make_settings(), client=client)


def _system_prompt(request: httpx.Request) -> str:
    return json.loads(request.content)["messages"][0]["content"]


# ============================================================================
# QUESTION GENERATION
# ============================================================================

async def test_generate_question_parses_reply():
    requests = []

    def handler(request):
        requests.append(request)
        return _completion(
            'Here you go: {"question": "How would you shard a SQL database?", '
            '"difficulty": "HARD", "testedSkills": ["sql", "Kubernetes"]}'
        )

    layer = _layer(handler)
    question = await layer.generate_question(
        role="backend engineer",
        interview_type="technical",
        years_of_experience=6,
        question_number=2,
        total_questions=5,
        skills=["SQL", "API design"],
    )

    assert question.text == "How would you shard a SQL database?"
    assert question.difficulty == Difficulty.HARD
    assert question.tested_skills == ["SQL"]
    assert not question.fallback_used

    payload = json.loads(requests[0].content)
    assert requests[0].url.path == "/v1/chat/completions"
    assert payload["response_format"] == {"type": "json_object"}


async def test_generate_question_unknown_difficulty_uses_target():
    layer = _layer(lambda request: _completion(
        {"question": "Describe a project.", "difficulty": "brutal", "testedSkills": []}
    ))

    question = await layer.generate_question("analyst", "behavioral", 0, 1, 5, [])

    assert question.difficulty == Difficulty.EASY


async def test_generate_question_without_declared_skills_keeps_three():
    layer = _layer(lambda request: _completion(
        {"question": "Q?", "difficulty": "medium", "testedSkills": ["a", "b", "c", "d"]}
    ))

    question = await layer.generate_question("dev", "technical", 3, 2, 5, [])

    assert question.tested_skills == ["a", "b", "c"]


async def test_generate_question_empty_reply_raises():
    layer = _layer(lambda request: _completion({"question": "  "}))
    with pytest.raises(ValueError):
        await layer.generate_question("dev", "technical", 3, 1, 5, [])


async def test_generate_question_http_error_raises():
    layer = _layer(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(httpx.HTTPStatusError):
        await layer.generate_question("dev", "technical", 3, 1, 5, [])


@pytest.mark.parametrize("body", [
    {"choices": []},
    {"choices": [{}]},
    {"error": "overloaded"},
    [{"message": {"content": "{}"}}],
])
async def test_malformed_completion_raises_value_error(body):
    layer = _layer(lambda request: httpx.Response(200, json=body))
    with pytest.raises(ValueError):
        await layer.generate_question("dev", "technical", 3, 1, 5, [])


def test_fallback_question_rotates_skills():
    layer = _layer(lambda request: _completion({}))

    first = layer.get_fallback_question("data engineer", 1, 1, ["SQL", "Spark"])
    second = layer.get_fallback_question("data engineer", 3, 2, ["SQL", "Spark"])

    assert first.fallback_used
    assert "data engineer" in first.text
    assert first.difficulty == Difficulty.EASY
    assert first.tested_skills == ["SQL"]
    assert second.difficulty == Difficulty.MEDIUM
    assert second.tested_skills == ["Spark"]


# ============================================================================
# EVALUATION
# ============================================================================

def _agent_handler(technical, communication, role):
    def handler(request):
        system = _system_prompt(request)
        if "technical assessment" in system:
            return technical() if callable(technical) else _completion(technical)
        if "communication assessment" in system:
            return communication() if callable(communication) else _completion(communication)
        return role() if callable(role) else _completion(role)

    return handler


async def test_evaluate_answer_weights_agent_scores():
    layer = _layer(_agent_handler(
        {"technical_accuracy": 80, "depth_of_knowledge": 70, "problem_solving_approach": 60,
         "technical_strengths": ["Indexing"], "red_flags": []},
        {"communication_clarity": 90, "structure_score": 80, "conciseness": 70,
         "communication_strengths": ["Structured"]},
        {"relevance_to_role": 75, "experience_level_alignment": 70,
         "role_specific_insights": ["Knows OLTP"], "follow_up_questions": ["Why tenant?"]},
    ))

    evaluation = await layer.evaluate_answer("Q?", LONG_ANSWER, "backend engineer", 3, 1)

    # 80*.3 + 70*.2 + 60*.15 + 90*.15 + 75*.2 = 75.5
    assert evaluation.overall_score == 76
    assert evaluation.strengths == ["Indexing", "Structured"]
    assert evaluation.key_insights == ["Knows OLTP"]
    assert evaluation.follow_up_questions == ["Why tenant?"]
    assert evaluation.word_count == 100
    assert evaluation.confidence == Confidence.HIGH
    assert not evaluation.fallback_used


async def test_evaluate_short_answer_is_capped():
    layer = _layer(_agent_handler(
        {"technical_accuracy": 95, "depth_of_knowledge": 95, "problem_solving_approach": 95},
        {"communication_clarity": 95},
        {"relevance_to_role": 95},
    ))

    evaluation = await layer.evaluate_answer("Q?", "yes", "dev", 3, 1)

    assert evaluation.overall_score <= 10
    assert evaluation.technical_accuracy <= 15
    assert evaluation.confidence == Confidence.LOW
    assert "Generic or trivial response" in evaluation.improvements


async def test_evaluate_answer_uses_defaults_for_failed_agent():
    layer = _layer(_agent_handler(
        lambda: httpx.Response(503),
        {"communication_clarity": 80},
        {"relevance_to_role": 80},
    ))

    evaluation = await layer.evaluate_answer("Q?", LONG_ANSWER, "dev", 3, 1)

    assert evaluation.technical_accuracy == 35
    assert "Technical assessment error" in evaluation.red_flags
    assert "Evaluation failed" in evaluation.improvements


async def test_evaluate_answer_raises_when_all_agents_fail():
    layer = _layer(lambda request: httpx.Response(503))
    with pytest.raises(httpx.HTTPStatusError):
        await layer.evaluate_answer("Q?", LONG_ANSWER, "dev", 3, 1)


def test_synthesis_caps_multiple_low_scores():
    layer = _layer(lambda request: _completion({}))
    evaluation = layer.synthesize_evaluation(
        TechnicalAssessment(technical_accuracy=90, depth_of_knowledge=30, problem_solving_approach=90),
        CommunicationAssessment(communication_clarity=30),
        RoleAssessment(relevance_to_role=90),
        LONG_ANSWER,
    )
    assert evaluation.overall_score == 45


def test_assessment_scores_are_clamped():
    assessment = TechnicalAssessment.model_validate(
        {"technicalAccuracy": 140, "depth_of_knowledge": "-3", "problem_solving_approach": "n/a"}
    )
    assert assessment.technical_accuracy == 100
    assert assessment.depth_of_knowledge == 0
    assert assessment.problem_solving_approach == 0


def test_fallback_evaluation():
    layer = _layer(lambda request: _completion({}))
    evaluation = layer.get_fallback_evaluation("three word answer")
    assert evaluation.overall_score == 70
    assert evaluation.word_count == 3
    assert evaluation.fallback_used


def test_answer_heuristics():
    assert is_generic_answer("Okay.")
    assert is_generic_answer("I would use indexes")
    assert not is_generic_answer("I would add an index on the tenant column first")
    assert min_expected_words(1) == 30
    assert min_expected_words(3) == 50
    assert min_expected_words(10) == 80


# ============================================================================
# HINTS
# ============================================================================

async def test_generate_hint():
    layer = _layer(lambda request: _completion(
        {"hint": "Think about read and write paths.", "examples": ["Replication", "Caching"]}
    ))

    hint = await layer.generate_hint("How would you scale reads?", "backend engineer", "technical")

    assert hint.hint == "Think about read and write paths."
    assert hint.examples == ["Replication", "Caching"]


async def test_unparseable_hint_is_replaced():
    layer = _layer(lambda request: _completion("no json here"))

    hint = await layer.generate_hint("Q?", "dev", "technical")

    assert hint == UNPARSEABLE_HINT


def test_undeclared_skills_are_deduplicated_case_insensitively():
    layer = _layer(lambda request: _completion({}))
    assert layer._normalize_skills(["SQL", "sql", " Redis ", "Go", "Rust"], []) == ["SQL", "Redis", "Go"]
