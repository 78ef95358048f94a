"""
Tests for the gateway's timeout, retry and fallback policy.
"""

import httpx
import pytest

from prepvoice.core.ai_reasoning import AIReasoningLayer
from prepvoice.core.evaluation_gateway import EvaluationGateway
from prepvoice.core.exceptions import UpstreamUnavailableError


async def test_question_timeout_falls_back(gateway, ai, settings):
    ai.question_delay = settings.ai_timeout_seconds * 4

    question = await gateway.generate_question(
        role="backend engineer",
        interview_type="technical",
        years_of_experience=1,
        question_number=3,
        total_questions=5,
        skills=["SQL"],
    )

    assert question.fallback_used
    assert ai.question_calls == 2


async def test_question_retry_succeeds(gateway, ai):
    original = ai.generate_question
    calls = []

    async def flaky(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise httpx.ReadTimeout("slow")
        return await original(**kwargs)

    ai.generate_question = flaky

    question = await gateway.generate_question(
        role="dev", interview_type="technical", years_of_experience=3,
        question_number=1, total_questions=5, skills=[],
    )

    assert not question.fallback_used
    assert len(calls) == 2


async def test_evaluation_failure_falls_back(gateway, ai):
    async def broken(**kwargs):
        raise ValueError("No JSON object in response")

    ai.evaluate_answer = broken

    evaluation = await gateway.evaluate_answer(
        question="Q?", transcript="one two three", role="dev",
        years_of_experience=2, question_number=1,
    )

    assert evaluation.fallback_used
    assert evaluation.overall_score == 70
    assert evaluation.word_count == 3


async def test_hint_failure_falls_back(gateway, ai):
    async def broken(question, role, interview_type):
        raise httpx.ConnectError("down")

    ai.generate_hint = broken

    hint = await gateway.generate_hint("Q?", "dev", "technical")

    assert hint == ai.get_fallback_hint()


async def test_transcription_failure_is_transient(gateway, audio):
    audio.fail_transcription = True
    with pytest.raises(UpstreamUnavailableError):
        await gateway.transcribe(b"audio")


async def test_speech_failure_is_transient(gateway, audio):
    audio.fail_synthesis = True
    with pytest.raises(UpstreamUnavailableError):
        await gateway.synthesize_speech("Hello")


async def test_chunk_transcription_passes_context(gateway, audio):
    text = await gateway.transcribe_chunk(b"chunk", "earlier words")
    assert text == "partial words"
    assert audio.chunk_contexts == ["earlier words"]


async def test_malformed_completion_falls_back(audio, settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"choices": []})

    client = httpx.AsyncClient(base_url="https://llm.test/v1", transport=httpx.MockTransport(handler))
    gateway = EvaluationGateway(AIReasoningLayer(settings=settings, client=client), audio, settings)

    question = await gateway.generate_question(
        role="backend engineer",
        interview_type="technical",
        years_of_experience=2,
        question_number=1,
        total_questions=5,
        skills=["SQL"],
    )
    hint = await gateway.generate_hint("Design a cache", "backend engineer", "technical")

    assert question.fallback_used
    assert hint == gateway.ai_reasoning.get_fallback_hint()
    assert len(calls) == 2 * settings.ai_max_attempts
