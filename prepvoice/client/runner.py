"""
Interview runner.

Drives one interview against the HTTP API:

    next question → play → settle → capture → submit → advance

A single interview token guards every continuation. Ending the interview
(manually or on tab-switch termination) cancels it, which stops the
active recording, suppresses further question fetches and finalizes
the session.
"""

import logging
from typing import Any, Awaitable, Callable, Protocol

import httpx

from prepvoice.client.api_client import InterviewApiClient
from prepvoice.client.capture import AnswerCapture, CancellationToken
from prepvoice.client.monitor import TabSwitchMonitor

logger = logging.getLogger(__name__)

ADVANCE_DELAY_SECONDS = 2.0
SUBMIT_ATTEMPTS = 2
QUESTION_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0


class AudioPlayer(Protocol):
    async def play(self, audio: bytes) -> None:
        ...


class InterviewRunner:
    """Runs the question loop for one session."""

    def __init__(
        self,
        api: InterviewApiClient,
        capture: AnswerCapture,
        player: AudioPlayer,
        advance_delay: float = ADVANCE_DELAY_SECONDS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        on_question: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
        on_answer: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
    ):
        self.api = api
        self.capture = capture
        self.player = player
        self.advance_delay = advance_delay
        self.retry_delay = retry_delay
        self.on_question = on_question
        self.on_answer = on_answer

        self.token = CancellationToken()
        self.session: dict[str, Any] | None = None
        self.monitor: TabSwitchMonitor | None = None
        self.terminated_for_tab_switches = False
        self.results: dict[str, Any] | None = None
        self._finalized = False

    @property
    def session_id(self) -> str:
        if self.session is None:
            raise RuntimeError("Interview has not been started")
        return self.session["sessionId"]

    async def start(
        self,
        role: str,
        interview_type: str,
        years_of_experience: int = 0,
        skills: list[str] | None = None,
        total_questions: int | None = None,
    ) -> dict[str, Any]:
        """Create and start a session; wires up the tab-switch monitor."""
        created = await self.api.create_session(
            role=role,
            interview_type=interview_type,
            years_of_experience=years_of_experience,
            skills=skills,
            total_questions=total_questions,
        )
        self.session = await self.api.start_session(created["sessionId"])
        self.monitor = TabSwitchMonitor(
            self.api,
            self.session_id,
            on_terminate=self._terminate_for_tab_switches,
        )
        logger.info(f"Interview started: {self.session_id}")
        return self.session

    def end_interview(self):
        """Stop recording and prevent any further automatic advancement."""
        if not self.token.cancelled:
            logger.info(f"Ending interview {self.session_id}")
        self.token.cancel()
        self.capture.stop()

    async def _terminate_for_tab_switches(self):
        self.terminated_for_tab_switches = True
        self.end_interview()

    # =========================================================================
    # QUESTION LOOP
    # =========================================================================

    async def run(self) -> dict[str, Any] | None:
        """
        Ask every question, then finalize and fetch results.

        Returns:
            The results report, or None if it could not be fetched
        """
        total = self.session["totalQuestions"]
        years = self.session.get("yearsOfExperience")

        try:
            while not self.token.cancelled:
                try:
                    answered = await self._ask_one(years)
                except httpx.HTTPStatusError as e:
                    # Rejections racing a termination end the loop normally
                    if self.token.cancelled and 400 <= e.response.status_code < 500:
                        logger.info(f"Request rejected after interview ended: {e.response.status_code}")
                        break
                    raise
                if not answered or self.token.cancelled:
                    break
                if answered >= total:
                    break
                if await self.token.wait(self.advance_delay):
                    break
        finally:
            await self.finalize()

        return self.results

    async def _ask_one(self, years: int | None) -> int | None:
        """Run one question; returns its number once answered."""
        question = await self._fetch_question(years)
        if question is None or self.token.cancelled:
            return None
        if self.on_question:
            await self.on_question(question)

        await self.player.play(question["audio"])
        if self.token.cancelled:
            return None

        recording = await self.capture.record(self.token)
        if recording is None or self.token.cancelled:
            return None

        number = question["questionNumber"]
        result = await self._submit(number, recording.audio, years)
        if result is None:
            return None
        if self.on_answer:
            await self.on_answer(result)
        return number

    async def _fetch_question(self, years: int | None) -> dict[str, Any] | None:
        """
        Fetch the next question, retrying while the server reports a
        transient failure. The server reuses the pending question on retry.

        Returns:
            The question, or None once every question has been asked or the
            interview ended while waiting
        """
        for attempt in range(1, QUESTION_ATTEMPTS + 1):
            try:
                return await self.api.next_question(self.session_id, years)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 409:
                    logger.info("All questions asked")
                    return None
                if status != 503 or attempt == QUESTION_ATTEMPTS:
                    raise
                logger.warning(f"Next question unavailable (attempt {attempt}), retrying")
            if await self.token.wait(self.retry_delay * attempt):
                return None

    async def _submit(self, number: int, audio: bytes, years: int | None) -> dict[str, Any] | None:
        """Submit an answer, retrying the same audio on a transient failure."""
        for attempt in range(1, SUBMIT_ATTEMPTS + 1):
            try:
                return await self.api.submit_answer(self.session_id, number, audio, years)
            except httpx.HTTPStatusError as e:
                if e.response.status_code != 503 or attempt == SUBMIT_ATTEMPTS:
                    raise
                logger.warning(f"Answer {number} submission failed (attempt {attempt}), retrying")
            if await self.token.wait(self.retry_delay):
                return None

    async def finalize(self):
        """Complete the session (unless already cancelled) and fetch results."""
        if self._finalized or self.session is None:
            return
        self._finalized = True

        if not self.terminated_for_tab_switches:
            try:
                self.session = await self.api.complete_session(self.session_id)
            except httpx.HTTPStatusError as e:
                logger.error(f"Failed to complete session {self.session_id}: {e}")

        try:
            self.results = await self.api.get_results(self.session_id)
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch results for {self.session_id}: {e}")
