"""
AI Reasoning Layer for PrepVoice

Handles all LLM-powered operations:
- Question generation
- Multi-agent answer evaluation
- Question hints

Talks to any OpenAI-compatible chat completions API (Groq by default).
Every method here makes a single attempt and raises on failure; retry,
timeout and fallback policy live in the EvaluationGateway. The
deterministic fallbacks themselves are defined here, next to the
prompts they stand in for.
"""

import asyncio
import json
import logging
import re
from typing import Any

import httpx
from langfuse import Langfuse

from prepvoice.config.settings import Settings, get_settings
from prepvoice.models.evaluation import (
    CommunicationAssessment,
    Confidence,
    DetailedEvaluation,
    Difficulty,
    GeneratedQuestion,
    QuestionCategory,
    QuestionHint,
    RoleAssessment,
    TechnicalAssessment,
)
from prepvoice.prompts.evaluator import EvaluatorPrompts
from prepvoice.prompts.interviewer import InterviewerPrompts, target_difficulty

logger = logging.getLogger(__name__)

GENERIC_ANSWER = re.compile(
    r"^(hello|hi|yes|no|okay|ok|sure|maybe|perhaps|i think|um|uh)[\s.,!?]*$",
    re.IGNORECASE,
)

FALLBACK_QUESTIONS: dict[QuestionCategory, str] = {
    QuestionCategory.BEHAVIORAL: (
        "Tell me about the most challenging {role} project you've led. "
        "What obstacles did you face and how did you overcome them?"
    ),
    QuestionCategory.TECHNICAL: (
        "Walk me through your approach to solving complex technical problems "
        "in your {role} work. Give me a specific example."
    ),
    QuestionCategory.SITUATIONAL: (
        "Imagine your team is behind schedule on a critical deliverable. "
        "As a {role}, how would you handle this situation?"
    ),
    QuestionCategory.COMPETENCY: (
        "Describe your methodology for {role}-related decision making. "
        "How do you balance competing priorities?"
    ),
    QuestionCategory.PROBLEM_SOLVING: (
        "You're given a system that's performing poorly. Walk me through your "
        "diagnostic and optimization process as a {role}."
    ),
}

FALLBACK_HINT = QuestionHint(
    hint=(
        "Think about: What is this question trying to evaluate? What specific "
        "experiences or knowledge would demonstrate your capability in this area?"
    ),
    examples=["Relevant past work", "Problem-solving methods", "Results achieved"],
)

UNPARSEABLE_HINT = QuestionHint(
    hint=(
        "Consider breaking down the question into parts: What is being asked? "
        "What experience or knowledge would be relevant? What would a strong "
        "answer demonstrate?"
    ),
    examples=["Past projects", "Problem-solving approach", "Team collaboration"],
)


def count_words(text: str) -> int:
    return len(text.split())


def is_generic_answer(text: str) -> bool:
    """Filler-only or near-empty answers."""
    return bool(GENERIC_ANSWER.match(text.strip())) or count_words(text) < 5


def min_expected_words(years_of_experience: int) -> int:
    """Minimum answer length expected at an experience level."""
    if years_of_experience < 2:
        return 30
    elif years_of_experience < 5:
        return 50
    return 80


class AIReasoningLayer:
    """
    Central AI reasoning component.

    Model Selection:
    - llm_model: question generation, evaluation agents, hints

    Observability:
    - Optional Langfuse spans around each operation
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize AI reasoning layer.

        Args:
            settings: Settings override (defaults to cached settings)
            client: Preconfigured HTTP client, mainly for tests
        """
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.llm_api_base.rstrip("/"),
            headers={
                "Authorization": f"Bearer {self.settings.llm_api_key}",
                "Content-Type": "application/json",
            },
            timeout=60.0,
        )

        self.interviewer_prompts = InterviewerPrompts()
        self.evaluator_prompts = EvaluatorPrompts()

        self.langfuse: Langfuse | None = None
        if self.settings.langfuse_enabled:
            if self.settings.langfuse_secret_key and self.settings.langfuse_public_key:
                self.langfuse = Langfuse(
                    secret_key=self.settings.langfuse_secret_key,
                    public_key=self.settings.langfuse_public_key,
                    host=self.settings.langfuse_base_url,
                )
                logger.info("Langfuse initialized for LLM observability")
            else:
                logger.info("Langfuse keys not configured, tracing disabled")

    async def close(self):
        """Close the HTTP client and flush Langfuse."""
        await self.client.aclose()
        if self.langfuse:
            self.langfuse.flush()

    # =========================================================================
    # TRACING
    # =========================================================================

    def _start_span(self, name: str, metadata: dict[str, Any]):
        if not self.langfuse:
            return None
        try:
            return self.langfuse.start_span(name=name, metadata=metadata)
        except Exception as e:
            logger.warning(f"Langfuse span start failed: {e}")
            return None

    def _end_span(self, span, output: dict[str, Any]) -> None:
        if span is None:
            return
        try:
            span.update(output=output)
            span.end()
        except Exception as e:
            logger.warning(f"Langfuse span end failed: {e}")

    # =========================================================================
    # CORE LLM CALL
    # =========================================================================

    def _extract_content(self, result: Any) -> str:
        """
        Extract text content from API response, handling list/dict formats.

        Raises:
            ValueError: If the response has no choices or message
        """
        choices = result.get("choices") if isinstance(result, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ValueError(f"Malformed completion response: {str(result)[:200]!r}")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise ValueError("Completion choice has no message")
        content = message.get("content") or ""

        if isinstance(content, list):
            text_parts = []
            for part in content:
                if isinstance(part, str):
                    text_parts.append(part)
                elif isinstance(part, dict) and "text" in part:
                    text_parts.append(part["text"])
            content = "".join(text_parts)

        return content if isinstance(content, str) else str(content)

    async def _call_llm(
        self,
        prompt: str,
        system: str,
        max_tokens: int = 600,
        temperature: float = 0.2,
    ) -> str:
        """
        Call the chat completions endpoint in JSON mode.

        Returns:
            Model response text

        Raises:
            httpx.HTTPError: On transport or HTTP status errors
        """
        payload = {
            "model": self.settings.llm_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            return self._extract_content(response.json())
        except httpx.HTTPError as e:
            logger.error(f"LLM API error: {e}")
            raise

    def _parse_json(self, response: str) -> dict[str, Any]:
        """
        Pull the JSON object out of a model reply.

        Raises:
            ValueError: If the reply holds no JSON object
        """
        json_start = response.find("{")
        json_end = response.rfind("}") + 1
        if json_start < 0 or json_end <= json_start:
            raise ValueError(f"No JSON object in response: {response[:200]!r}")
        data = json.loads(response[json_start:json_end])
        if not isinstance(data, dict):
            raise ValueError("JSON reply is not an object")
        return data

    # =========================================================================
    # QUESTION GENERATION
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
        """
        Generate the question for a given position in the interview.

        Args:
            role: Target role
            interview_type: e.g. technical, behavioral
            years_of_experience: Candidate experience
            question_number: 1-based question number
            total_questions: Session question budget
            skills: Declared skills the question may test

        Returns:
            GeneratedQuestion with difficulty and tested skills

        Raises:
            httpx.HTTPError: If the API call fails
            ValueError: If the reply has no usable question
        """
        category = QuestionCategory.for_question(question_number)
        target = target_difficulty(years_of_experience, question_number)

        span = self._start_span("generate_question", {
            "question_number": question_number,
            "category": category.value,
            "target_difficulty": target.value,
            "role": role,
        })

        prompt = self.interviewer_prompts.generate_question_prompt(
            role=role,
            interview_type=interview_type,
            years_of_experience=years_of_experience,
            question_number=question_number,
            total_questions=total_questions,
            category=category,
            difficulty=target,
            skills=skills,
        )
        response = await self._call_llm(
            prompt,
            system=self.interviewer_prompts.question_system_prompt(category),
            max_tokens=400,
            temperature=0.85,
        )
        data = self._parse_json(response)

        text = str(data.get("question") or "").strip()
        if not text:
            raise ValueError("Model returned an empty question")

        try:
            difficulty = Difficulty(str(data.get("difficulty", "")).lower())
        except ValueError:
            logger.warning(f"Unrecognized difficulty {data.get('difficulty')!r}, using {target.value}")
            difficulty = target

        question = GeneratedQuestion(
            text=text,
            difficulty=difficulty,
            tested_skills=self._normalize_skills(
                data.get("testedSkills") or data.get("tested_skills"), skills
            ),
        )

        logger.info(
            f"Generated question #{question_number} | category: {category.value} | "
            f"difficulty: {difficulty.value} (target {target.value}) | "
            f"skills: {question.tested_skills}"
        )
        self._end_span(span, {
            "difficulty": difficulty.value,
            "tested_skills": question.tested_skills,
        })
        return question

    def _normalize_skills(self, raw: Any, declared: list[str]) -> list[str]:
        """Map model-reported skills onto the declared skill names."""
        if not isinstance(raw, list):
            raw = []
        reported = [str(s).strip() for s in raw if s is not None and str(s).strip()]

        if not declared:
            unique: dict[str, str] = {}
            for skill in reported:
                unique.setdefault(skill.lower(), skill)
            return list(unique.values())[:3]

        by_key = {skill.strip().lower(): skill for skill in declared}
        matched = [by_key[s.lower()] for s in reported if s.lower() in by_key]
        return list(dict.fromkeys(matched))

    def get_fallback_question(
        self,
        role: str,
        years_of_experience: int,
        question_number: int,
        skills: list[str],
    ) -> GeneratedQuestion:
        """Deterministic templated question used when generation fails."""
        category = QuestionCategory.for_question(question_number)
        tested = [skills[(question_number - 1) % len(skills)]] if skills else []
        return GeneratedQuestion(
            text=FALLBACK_QUESTIONS[category].format(role=role),
            difficulty=Difficulty.EASY if years_of_experience < 2 else Difficulty.MEDIUM,
            tested_skills=tested,
            fallback_used=True,
        )

    # =========================================================================
    # ANSWER EVALUATION
    # =========================================================================

    async def evaluate_answer(
        self,
        question: str,
        transcript: str,
        role: str,
        years_of_experience: int,
        question_number: int,
    ) -> DetailedEvaluation:
        """
        Evaluate an answer with three concurrent specialist agents.

        An agent that fails contributes its conservative defaults; if every
        agent fails the first error is raised so the caller can retry.

        Raises:
            httpx.HTTPError | ValueError: If all three agents fail
        """
        word_count = count_words(transcript)
        span = self._start_span("evaluate_answer", {
            "question_number": question_number,
            "word_count": word_count,
            "role": role,
        })

        results = await asyncio.gather(
            self._technical_agent(question, transcript, role, years_of_experience),
            self._communication_agent(transcript),
            self._role_agent(question, transcript, role, years_of_experience),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        if len(failures) == len(results):
            raise failures[0]

        technical, communication, role_assessment = results
        if isinstance(technical, Exception):
            logger.warning(f"Technical agent failed, using defaults: {technical}")
            technical = TechnicalAssessment(
                technical_gaps=["Evaluation failed"],
                red_flags=["Technical assessment error"],
            )
        if isinstance(communication, Exception):
            logger.warning(f"Communication agent failed, using defaults: {communication}")
            communication = CommunicationAssessment(communication_improvements=["Evaluation failed"])
        if isinstance(role_assessment, Exception):
            logger.warning(f"Role agent failed, using defaults: {role_assessment}")
            role_assessment = RoleAssessment(missing_competencies=["Evaluation failed"])

        technical = self._cap_technical(technical, transcript, years_of_experience)
        communication = self._cap_communication(communication, word_count)
        role_assessment = self._cap_role(role_assessment, word_count)

        evaluation = self.synthesize_evaluation(technical, communication, role_assessment, transcript)

        logger.info(
            f"Multi-agent evaluation complete | question #{question_number} | "
            f"score: {evaluation.overall_score} | confidence: {evaluation.confidence.value}"
        )
        self._end_span(span, {
            "overall_score": evaluation.overall_score,
            "confidence": evaluation.confidence.value,
            "agent_failures": len(failures),
        })
        return evaluation

    async def _technical_agent(
        self, question: str, answer: str, role: str, years_of_experience: int
    ) -> TechnicalAssessment:
        prompt = self.evaluator_prompts.technical_prompt(
            question=question,
            answer=answer,
            role=role,
            years_of_experience=years_of_experience,
            word_count=count_words(answer),
            min_expected_words=min_expected_words(years_of_experience),
        )
        response = await self._call_llm(prompt, system=self.evaluator_prompts.technical_system())
        return TechnicalAssessment.model_validate(self._parse_json(response))

    async def _communication_agent(self, answer: str) -> CommunicationAssessment:
        prompt = self.evaluator_prompts.communication_prompt(answer, count_words(answer))
        response = await self._call_llm(
            prompt, system=self.evaluator_prompts.communication_system(), max_tokens=400
        )
        return CommunicationAssessment.model_validate(self._parse_json(response))

    async def _role_agent(
        self, question: str, answer: str, role: str, years_of_experience: int
    ) -> RoleAssessment:
        prompt = self.evaluator_prompts.role_prompt(question, answer, role, years_of_experience)
        response = await self._call_llm(
            prompt, system=self.evaluator_prompts.role_system(role), temperature=0.3
        )
        return RoleAssessment.model_validate(self._parse_json(response))

    def _cap_technical(
        self, result: TechnicalAssessment, answer: str, years_of_experience: int
    ) -> TechnicalAssessment:
        """Bound technical scores for short or filler answers."""
        word_count = count_words(answer)
        expected = min_expected_words(years_of_experience)
        result = result.model_copy(deep=True)

        if word_count < expected:
            result.technical_accuracy = min(result.technical_accuracy, 40)
            result.depth_of_knowledge = min(result.depth_of_knowledge, 35)
            result.problem_solving_approach = min(result.problem_solving_approach, 35)
            result.red_flags.append(f"Answer too brief ({word_count} words, expected {expected}+)")

        if is_generic_answer(answer):
            result.technical_accuracy = min(result.technical_accuracy, 15)
            result.depth_of_knowledge = min(result.depth_of_knowledge, 10)
            result.problem_solving_approach = min(result.problem_solving_approach, 10)
            result.red_flags.append("Generic or trivial answer - no meaningful content")

        return result

    def _cap_communication(
        self, result: CommunicationAssessment, word_count: int
    ) -> CommunicationAssessment:
        if word_count < 20:
            result = result.model_copy(update={
                "communication_clarity": min(result.communication_clarity, 40),
                "structure_score": min(result.structure_score, 35),
                "conciseness": min(result.conciseness, 30),
            })
        return result

    def _cap_role(self, result: RoleAssessment, word_count: int) -> RoleAssessment:
        if word_count < 30:
            result = result.model_copy(update={
                "relevance_to_role": min(result.relevance_to_role, 40),
                "experience_level_alignment": min(result.experience_level_alignment, 35),
            })
        return result

    def synthesize_evaluation(
        self,
        technical: TechnicalAssessment,
        communication: CommunicationAssessment,
        role: RoleAssessment,
        answer: str,
    ) -> DetailedEvaluation:
        """
        Combine the three agent assessments into one weighted evaluation.

        Weights: technical accuracy 30%, depth 20%, problem solving 15%,
        communication 15%, role relevance 20%. Short, generic or broadly
        weak answers are capped regardless of the weighted score.
        """
        word_count = count_words(answer)

        raw_score = round(
            technical.technical_accuracy * 0.30
            + technical.depth_of_knowledge * 0.20
            + technical.problem_solving_approach * 0.15
            + communication.communication_clarity * 0.15
            + role.relevance_to_role * 0.20
        )

        overall = raw_score
        penalties: list[str] = []

        if word_count < 10:
            overall = min(overall, 15)
            penalties.append("Extremely brief answer")
        elif word_count < 20:
            overall = min(overall, 35)
            penalties.append("Very brief answer")
        elif word_count < 40:
            overall = min(overall, 55)
            penalties.append("Brief answer - needs more detail")

        if is_generic_answer(answer):
            overall = min(overall, 10)
            penalties.append("Generic or trivial response")

        low_scores = [
            s for s in (
                technical.technical_accuracy,
                technical.depth_of_knowledge,
                communication.communication_clarity,
                role.relevance_to_role,
            )
            if s < 40
        ]
        if len(low_scores) >= 2:
            overall = min(overall, 45)

        headline = (
            technical.technical_accuracy,
            communication.communication_clarity,
            role.relevance_to_role,
        )
        variance = max(headline) - min(headline)

        if word_count < 15 or overall < 35 or variance > 40:
            confidence = Confidence.LOW
        elif word_count > 80 and overall > 75 and variance < 20:
            confidence = Confidence.HIGH
        else:
            confidence = Confidence.MEDIUM

        return DetailedEvaluation(
            overall_score=overall,
            technical_accuracy=technical.technical_accuracy,
            communication_clarity=communication.communication_clarity,
            depth_of_knowledge=technical.depth_of_knowledge,
            problem_solving_approach=technical.problem_solving_approach,
            relevance_to_role=role.relevance_to_role,
            feedback=self._feedback_text(overall, word_count),
            strengths=technical.technical_strengths + communication.communication_strengths,
            improvements=(
                technical.technical_gaps
                + communication.communication_improvements
                + role.missing_competencies
                + penalties
            ),
            key_insights=list(role.role_specific_insights),
            red_flags=list(technical.red_flags),
            follow_up_questions=list(role.follow_up_questions),
            word_count=word_count,
            confidence=confidence,
        )

    def _feedback_text(self, score: int, word_count: int) -> str:
        if word_count < 10:
            return (
                "Answer is too brief and lacks substance. Please provide detailed, thoughtful "
                "responses that demonstrate your knowledge and experience. Aim for at least "
                "40-50 words per answer."
            )
        if score < 25:
            return (
                "Answer does not adequately address the question. Please listen carefully to "
                "the question and provide specific, relevant examples from your experience. "
                "Generic responses receive low scores."
            )
        if score >= 85:
            return (
                "Excellent answer! You demonstrated strong technical knowledge, clear "
                "communication, and relevant experience. Your response was well-structured "
                "with specific examples."
            )
        elif score >= 70:
            return (
                "Good answer with solid foundations. You showed understanding of the topic, "
                "though adding more specific examples or technical depth would strengthen "
                "your response."
            )
        elif score >= 55:
            return (
                "Adequate answer but lacks sufficient depth. Focus on providing concrete "
                "examples, explaining your reasoning, and demonstrating deeper technical "
                "knowledge for your experience level."
            )
        elif score >= 40:
            return (
                "Answer needs improvement. Provide more detailed explanations, specific "
                "examples from your experience, and demonstrate clearer understanding of the "
                "concepts being discussed."
            )
        return (
            "Answer requires significant improvement. Focus on: (1) directly addressing the "
            "question asked, (2) providing specific examples, (3) demonstrating relevant "
            "technical knowledge, and (4) giving more detailed responses (40+ words)."
        )

    def get_fallback_evaluation(self, transcript: str) -> DetailedEvaluation:
        """Neutral evaluation used when the evaluators are unreachable."""
        return DetailedEvaluation(
            overall_score=70,
            technical_accuracy=70,
            communication_clarity=75,
            depth_of_knowledge=65,
            problem_solving_approach=70,
            relevance_to_role=70,
            feedback="Answer received and evaluated. More detail would strengthen your response.",
            strengths=["Clear communication", "Addressed the question"],
            improvements=["Provide more specific examples", "Add technical depth"],
            word_count=count_words(transcript),
            confidence=Confidence.MEDIUM,
            fallback_used=True,
        )

    # =========================================================================
    # HINTS
    # =========================================================================

    async def generate_hint(self, question: str, role: str, interview_type: str) -> QuestionHint:
        """
        Clarify a question without answering it.

        An unparseable reply yields a generic decomposition hint; transport
        errors are raised.
        """
        prompt = self.interviewer_prompts.generate_hint_prompt(question, role, interview_type)
        response = await self._call_llm(
            prompt,
            system=self.interviewer_prompts.HINT_SYSTEM,
            max_tokens=400,
            temperature=0.3,
        )

        try:
            data = self._parse_json(response)
            hint = QuestionHint.model_validate(data)
        except ValueError as e:
            logger.warning(f"Failed to parse hint JSON: {e}")
            return UNPARSEABLE_HINT.model_copy(deep=True)

        if not hint.hint.strip():
            return UNPARSEABLE_HINT.model_copy(deep=True)
        return hint

    def get_fallback_hint(self) -> QuestionHint:
        return FALLBACK_HINT.model_copy(deep=True)
