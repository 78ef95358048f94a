"""
Evaluation Gateway for PrepVoice

Uniform entry point to the five AI capabilities used by an interview:
question generation, answer evaluation, hints, transcription and speech
synthesis. The gateway owns the failure policy:

- every call is bounded by ``ai_timeout_seconds``
- failed calls are retried up to ``ai_max_attempts`` times
- question generation, evaluation and hints then fall back to
  deterministic templates so the interview can continue
- transcription and speech synthesis raise UpstreamUnavailableError
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

from prepvoice.config.settings import Settings, get_settings
from prepvoice.core.ai_reasoning import AIReasoningLayer
from prepvoice.core.audio_processor import AudioProcessor
from prepvoice.core.exceptions import UpstreamUnavailableError
from prepvoice.models.evaluation import DetailedEvaluation, GeneratedQuestion, QuestionHint

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth retrying or replacing with a fallback
RECOVERABLE_ERRORS = (asyncio.TimeoutError, httpx.HTTPError, ValueError, RuntimeError)


class EvaluationGateway:
    """
    Policy layer over the AI reasoning layer and audio processor.

    Callers never block longer than roughly
    ``ai_timeout_seconds * ai_max_attempts`` on any capability.
    """

    def __init__(
        self,
        ai_reasoning: AIReasoningLayer,
        audio_processor: AudioProcessor,
        settings: Settings | None = None,
    ):
        """
        Args:
            ai_reasoning: LLM client for questions, evaluation and hints
            audio_processor: STT/TTS client
            settings: Settings override (timeouts and attempts)
        """
        self.ai_reasoning = ai_reasoning
        self.audio_processor = audio_processor
        self.settings = settings or get_settings()

    async def close(self):
        await self.ai_reasoning.close()
        await self.audio_processor.close()

    async def _call(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation with the timeout and retry policy.

        Raises:
            The last error once every attempt has failed
        """
        max_attempts = max(1, self.settings.ai_max_attempts)
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            try:
                return await asyncio.wait_for(operation(), timeout=self.settings.ai_timeout_seconds)
            except RECOVERABLE_ERRORS as e:
                last_error = e
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else f"failed: {e}"
                logger.warning(f"{name} {reason} (attempt {attempt + 1}/{max_attempts})")

        raise last_error

    # =========================================================================
    # CAPABILITIES WITH FALLBACKS
    # =========================================================================

    async def generate_question(
        self,
        role: str,
        interview_type: str,
        years_of_experience: int,
        question_number: int,
        total_questions: int,
        skills: list[str],
    ) -> GeneratedQuestion:
        """Generate a question, falling back to a templated one."""
        try:
            return await self._call(
                "Question generation",
                lambda: self.ai_reasoning.generate_question(
                    role=role,
                    interview_type=interview_type,
                    years_of_experience=years_of_experience,
                    question_number=question_number,
                    total_questions=total_questions,
                    skills=skills,
                ),
            )
        except RECOVERABLE_ERRORS:
            logger.warning(f"Using fallback question #{question_number} due to generation failures")
            return self.ai_reasoning.get_fallback_question(
                role=role,
                years_of_experience=years_of_experience,
                question_number=question_number,
                skills=skills,
            )

    async def evaluate_answer(
        self,
        question: str,
        transcript: str,
        role: str,
        years_of_experience: int,
        question_number: int,
    ) -> DetailedEvaluation:
        """Evaluate an answer, falling back to a neutral evaluation."""
        try:
            return await self._call(
                "Answer evaluation",
                lambda: self.ai_reasoning.evaluate_answer(
                    question=question,
                    transcript=transcript,
                    role=role,
                    years_of_experience=years_of_experience,
                    question_number=question_number,
                ),
            )
        except RECOVERABLE_ERRORS:
            logger.warning(f"Using fallback evaluation for question #{question_number}")
            return self.ai_reasoning.get_fallback_evaluation(transcript)

    async def generate_hint(self, question: str, role: str, interview_type: str) -> QuestionHint:
        """Generate a hint, falling back to a generic one."""
        try:
            return await self._call(
                "Hint generation",
                lambda: self.ai_reasoning.generate_hint(question, role, interview_type),
            )
        except RECOVERABLE_ERRORS:
            logger.warning("Using fallback hint")
            return self.ai_reasoning.get_fallback_hint()

    # =========================================================================
    # CAPABILITIES WITHOUT FALLBACKS
    # =========================================================================

    async def transcribe(self, audio_data: bytes) -> str:
        """
        Transcribe a full answer.

        Raises:
            UpstreamUnavailableError: If transcription keeps failing
        """
        try:
            return await self._call("Transcription", lambda: self.audio_processor.transcribe(audio_data))
        except RECOVERABLE_ERRORS as e:
            raise UpstreamUnavailableError(f"Transcription unavailable: {e}") from e

    async def transcribe_chunk(self, audio_data: bytes, previous_context: str = "") -> str:
        """
        Transcribe a live-recording chunk. Single attempt: a stale chunk is
        worth less than the next one.

        Raises:
            UpstreamUnavailableError: If transcription fails or times out
        """
        try:
            return await asyncio.wait_for(
                self.audio_processor.transcribe_chunk(audio_data, previous_context),
                timeout=self.settings.ai_timeout_seconds,
            )
        except RECOVERABLE_ERRORS as e:
            raise UpstreamUnavailableError(f"Chunk transcription unavailable: {e}") from e

    async def synthesize_speech(self, text: str) -> bytes:
        """
        Synthesize the interviewer's voice.

        Raises:
            UpstreamUnavailableError: If speech synthesis keeps failing
        """
        try:
            return await self._call("Speech synthesis", lambda: self.audio_processor.synthesize(text))
        except RECOVERABLE_ERRORS as e:
            raise UpstreamUnavailableError(f"Speech synthesis unavailable: {e}") from e
