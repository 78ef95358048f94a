"""
Shared fixtures: settings, fake AI/audio backends and an orchestrator
wired to the in-memory store.
"""

import asyncio

import httpx
import pytest

from prepvoice.config.settings import Settings
from prepvoice.core.ai_reasoning import AIReasoningLayer
from prepvoice.core.audio_processor import AudioProcessor
from prepvoice.core.evaluation_gateway import EvaluationGateway
from prepvoice.core.interview_orchestrator import InterviewOrchestrator
from prepvoice.core.report_generator import ReportGenerator
from prepvoice.core.session_store import InMemorySessionStore
from prepvoice.models.evaluation import (
    Confidence,
    DetailedEvaluation,
    Difficulty,
    GeneratedQuestion,
    QuestionHint,
)


def _offline_client() -> httpx.AsyncClient:
    """Client that fails any request it is accidentally asked to make."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network disabled in tests", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_settings(**overrides) -> Settings:
    values = {
        "ai_timeout_seconds": 0.5,
        "ai_max_attempts": 2,
        "default_total_questions": 5,
        "max_total_questions": 20,
        "tab_switch_limit": 3,
        "database_url": "",
        "langfuse_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_evaluation(score: int, **overrides) -> DetailedEvaluation:
    values = {
        "overall_score": score,
        "technical_accuracy": score,
        "communication_clarity": score,
        "depth_of_knowledge": score,
        "problem_solving_approach": score,
        "relevance_to_role": score,
        "feedback": "ok",
        "strengths": ["Clear structure"],
        "improvements": ["More examples"],
        "word_count": 60,
        "confidence": Confidence.MEDIUM,
    }
    values.update(overrides)
    return DetailedEvaluation(**values)


class FakeAIReasoning(AIReasoningLayer):
    """Deterministic stand-in for the LLM backend."""

    def __init__(self, settings: Settings):
        super().__init__(settings=settings, client=_offline_client())
        self.difficulties: dict[int, Difficulty] = {}
        self.tested_skills: dict[int, list[str]] = {}
        self.scores: list[int] = []
        self.question_calls = 0
        self.evaluation_calls = 0
        self.hint_calls = 0
        self.fail_questions = False
        self.question_delay = 0.0

    async def generate_question(
        self,
        role,
        interview_type,
        years_of_experience,
        question_number,
        total_questions,
        skills,
    ):
        self.question_calls += 1
        if self.question_delay:
            await asyncio.sleep(self.question_delay)
        if self.fail_questions:
            raise ValueError("Model returned an empty question")
        return GeneratedQuestion(
            text=f"Question {question_number} for a {role}?",
            difficulty=self.difficulties.get(question_number, Difficulty.MEDIUM),
            tested_skills=self.tested_skills.get(question_number, skills[:1]),
        )

    async def evaluate_answer(self, question, transcript, role, years_of_experience, question_number):
        self.evaluation_calls += 1
        score = self.scores[question_number - 1] if question_number <= len(self.scores) else 75
        return make_evaluation(score, word_count=len(transcript.split()))

    async def generate_hint(self, question, role, interview_type):
        self.hint_calls += 1
        return QuestionHint(hint=f"Break down: {question}", examples=["Scope", "Trade-offs"])


class FakeAudioProcessor(AudioProcessor):
    """Deterministic stand-in for STT and TTS."""

    def __init__(self, settings: Settings):
        super().__init__(settings=settings, client=_offline_client())
        self.transcripts: list[str] = []
        self.fail_transcription = False
        self.fail_synthesis = False
        self.synthesized: list[str] = []
        self.chunk_contexts: list[str] = []

    async def transcribe(self, audio_data: bytes) -> str:
        if self.fail_transcription:
            raise httpx.ConnectError("stt down")
        if self.transcripts:
            return self.transcripts.pop(0)
        return "I designed the service around idempotent handlers and retries with backoff."

    async def transcribe_chunk(self, audio_data: bytes, previous_context: str = "") -> str:
        self.chunk_contexts.append(previous_context)
        return "partial words"

    async def synthesize(self, text: str) -> bytes:
        if self.fail_synthesis:
            raise httpx.ConnectError("tts down")
        self.synthesized.append(text)
        return b"ID3-audio:" + text.encode("utf-8")


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def ai(settings) -> FakeAIReasoning:
    return FakeAIReasoning(settings)


@pytest.fixture
def audio(settings) -> FakeAudioProcessor:
    return FakeAudioProcessor(settings)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def gateway(ai, audio, settings) -> EvaluationGateway:
    return EvaluationGateway(ai_reasoning=ai, audio_processor=audio, settings=settings)


@pytest.fixture
def orchestrator(store, gateway, settings) -> InterviewOrchestrator:
    return InterviewOrchestrator(
        store=store,
        gateway=gateway,
        report_generator=ReportGenerator(),
        settings=settings,
    )
