"""
HTTP client for the interview API.

Thin async wrapper used by the interview runner and the tab-switch
monitor. Every call raises ``httpx.HTTPStatusError`` on a non-2xx reply;
JSON replies are returned as dicts with camelCase keys.
"""

import base64
from typing import Any

import httpx


class InterviewApiClient:
    """Async client for ``/api/interview``."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 90.0,
    ):
        """
        Args:
            base_url: Server root, e.g. ``http://localhost:8000``
            user_id: Principal id sent as ``X-User-Id``
            client: Pre-built client (tests pass one with a mock transport)
            timeout: Request timeout in seconds
        """
        self.user_id = user_id
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.prefix = "/api/interview"

    async def close(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        headers["X-User-Id"] = self.user_id
        response = await self.client.request(
            method, f"{self.prefix}{path}", headers=headers, **kwargs
        )
        response.raise_for_status()
        return response

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    async def create_session(
        self,
        role: str,
        interview_type: str,
        years_of_experience: int = 0,
        skills: list[str] | None = None,
        total_questions: int | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": role,
            "interviewType": interview_type,
            "yearsOfExperience": years_of_experience,
            "skills": skills or [],
        }
        if total_questions is not None:
            payload["totalQuestions"] = total_questions

        response = await self._request("POST", "/sessions", json=payload)
        return response.json()

    async def get_session(self, session_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"/sessions/{session_id}")
        return response.json()

    async def start_session(self, session_id: str) -> dict[str, Any]:
        response = await self._request("PATCH", f"/sessions/{session_id}/start")
        return response.json()

    async def complete_session(self, session_id: str) -> dict[str, Any]:
        response = await self._request("PATCH", f"/sessions/{session_id}/complete")
        return response.json()

    async def get_results(self, session_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"/sessions/{session_id}/results")
        return response.json()

    # =========================================================================
    # QUESTIONS AND ANSWERS
    # =========================================================================

    async def next_question(
        self,
        session_id: str,
        years_of_experience: int | None = None,
    ) -> dict[str, Any]:
        """
        Fetch the next question.

        Returns:
            The question payload with an extra ``audio`` key holding the
            decoded audio bytes
        """
        payload = {}
        if years_of_experience is not None:
            payload["yearsOfExperience"] = years_of_experience

        response = await self._request(
            "POST", f"/sessions/{session_id}/next-question", json=payload
        )
        data = response.json()
        data["audio"] = base64.b64decode(data.get("audioBase64") or "")
        return data

    async def get_hint(self, session_id: str, question_number: int) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/sessions/{session_id}/hint",
            json={"questionNumber": question_number},
        )
        return response.json()

    async def submit_answer(
        self,
        session_id: str,
        question_number: int,
        audio_data: bytes,
        years_of_experience: int | None = None,
        filename: str = "answer.wav",
        content_type: str = "audio/wav",
    ) -> dict[str, Any]:
        data = {"questionNumber": str(question_number)}
        if years_of_experience is not None:
            data["yearsOfExperience"] = str(years_of_experience)

        response = await self._request(
            "POST",
            f"/sessions/{session_id}/submit-answer",
            data=data,
            files={"audio": (filename, audio_data, content_type)},
        )
        return response.json()

    async def transcribe_chunk(
        self,
        audio_data: bytes,
        previous_context: str = "",
        filename: str = "chunk.wav",
        content_type: str = "audio/wav",
    ) -> str:
        response = await self._request(
            "POST",
            "/transcribe-chunk",
            data={"previousContext": previous_context},
            files={"audio": (filename, audio_data, content_type)},
        )
        return response.json().get("text", "")

    async def record_tab_switch(self, session_id: str) -> dict[str, Any]:
        response = await self._request("POST", f"/sessions/{session_id}/tab-switch")
        return response.json()
