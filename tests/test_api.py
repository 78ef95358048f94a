"""
End-to-end tests of the HTTP API with fake AI backends.
"""

import base64

import httpx
import pytest

from main import app
from prepvoice.api.dependencies import get_orchestrator
from prepvoice.models.evaluation import Difficulty

OWNER = {"X-User-Id": "candidate-1"}
OTHER = {"X-User-Id": "candidate-2"}


@pytest.fixture
async def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


async def _create(client, **overrides) -> dict:
    body = {
        "role": "backend engineer",
        "interviewType": "technical",
        "yearsOfExperience": 4,
        "skills": ["SQL", "API design", "Kafka"],
        "totalQuestions": 3,
    }
    body.update(overrides)
    response = await client.post("/api/interview/sessions", json=body, headers=OWNER)
    assert response.status_code == 201
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_identity_is_required(client):
    response = await client.post(
        "/api/interview/sessions",
        json={"role": "dev", "interviewType": "technical"},
    )
    assert response.status_code == 401


async def test_create_session_uses_camel_case(client):
    session = await _create(client, totalQuestions=50)

    assert session["totalQuestions"] == 20
    assert session["status"] == "pending"
    assert session["currentQuestionIndex"] == 0
    assert session["userId"] == "candidate-1"


async def test_full_interview(client, ai):
    ai.scores = [90, 70, 50]
    ai.difficulties = {1: Difficulty.EASY, 2: Difficulty.MEDIUM, 3: Difficulty.HARD}
    ai.tested_skills = {1: ["SQL"], 2: ["SQL", "API design"], 3: ["API design"]}
    session = await _create(client)
    sid = session["sessionId"]
    base = f"/api/interview/sessions/{sid}"

    started = await client.patch(f"{base}/start", headers=OWNER)
    assert started.json()["status"] == "in_progress"

    for number in (1, 2, 3):
        question = await client.post(f"{base}/next-question", json={}, headers=OWNER)
        assert question.status_code == 200
        payload = question.json()
        assert payload["questionNumber"] == number
        assert base64.b64decode(payload["audioBase64"]).startswith(b"ID3")

        answer = await client.post(
            f"{base}/submit-answer",
            data={"questionNumber": str(number)},
            files={"audio": ("answer.webm", b"\x1a\x45\xdf\xa3audio", "audio/webm")},
            headers=OWNER,
        )
        assert answer.status_code == 200
        assert answer.json()["evaluation"]["overallScore"] == ai.scores[number - 1]

    exhausted = await client.post(f"{base}/next-question", headers=OWNER)
    assert exhausted.status_code == 409

    completed = await client.patch(f"{base}/complete", headers=OWNER)
    assert completed.json()["status"] == "completed"

    results = (await client.get(f"{base}/results", headers=OWNER)).json()
    assert results["totalQuestions"] == 3
    assert results["totalAnswered"] == 3
    assert results["grade"] == "Good"
    assert sum(item["count"] for item in results["difficultyBreakdown"]) == 3
    assert results["untestedSkills"] == ["Kafka"]
    assert {s["skill"] for s in results["skillPerformance"]} == {"SQL", "API design"}

    qas = (await client.get(f"{base}/qa", headers=OWNER)).json()
    assert [qa["questionNumber"] for qa in qas] == [1, 2, 3]


async def test_other_user_is_forbidden(client):
    session = await _create(client)
    response = await client.patch(
        f"/api/interview/sessions/{session['sessionId']}/start", headers=OTHER
    )
    assert response.status_code == 403


async def test_unknown_session(client):
    response = await client.get("/api/interview/sessions/nope", headers=OWNER)
    assert response.status_code == 404


async def test_hint_gating(client, ai):
    ai.difficulties = {1: Difficulty.MEDIUM, 2: Difficulty.HARD}
    session = await _create(client)
    base = f"/api/interview/sessions/{session['sessionId']}"
    await client.patch(f"{base}/start", headers=OWNER)
    await client.post(f"{base}/next-question", headers=OWNER)

    rejected = await client.post(f"{base}/hint", json={"questionNumber": 1}, headers=OWNER)
    assert rejected.status_code == 403
    assert "medium" in rejected.json()["detail"]

    missing = await client.post(f"{base}/hint", json={"questionNumber": 2}, headers=OWNER)
    assert missing.status_code == 404

    await client.post(f"{base}/next-question", headers=OWNER)
    hint = await client.post(f"{base}/hint", json={"questionNumber": 2}, headers=OWNER)
    assert hint.status_code == 200
    assert hint.json()["examples"]


async def test_tab_switch_termination(client):
    session = await _create(client)
    base = f"/api/interview/sessions/{session['sessionId']}"
    await client.patch(f"{base}/start", headers=OWNER)

    replies = [
        (await client.post(f"{base}/tab-switch", headers=OWNER)).json()
        for _ in range(4)
    ]

    assert [r["shouldTerminate"] for r in replies] == [False, False, True, False]
    assert replies[-1]["tabSwitches"] == 3

    rejected = await client.patch(f"{base}/complete", headers=OWNER)
    assert rejected.status_code == 409

    results = (await client.get(f"{base}/results", headers=OWNER)).json()
    assert results["status"] == "cancelled"
    assert results["terminatedForTabSwitches"] is True


async def test_speech_failure_is_retryable(client, audio):
    session = await _create(client)
    base = f"/api/interview/sessions/{session['sessionId']}"
    await client.patch(f"{base}/start", headers=OWNER)

    audio.fail_synthesis = True
    failed = await client.post(f"{base}/next-question", headers=OWNER)
    assert failed.status_code == 503

    audio.fail_synthesis = False
    retried = await client.post(f"{base}/next-question", headers=OWNER)
    assert retried.json()["questionNumber"] == 1


async def test_empty_audio_rejected(client):
    session = await _create(client)
    base = f"/api/interview/sessions/{session['sessionId']}"
    await client.patch(f"{base}/start", headers=OWNER)
    await client.post(f"{base}/next-question", headers=OWNER)

    response = await client.post(
        f"{base}/submit-answer",
        data={"questionNumber": "1"},
        files={"audio": ("answer.webm", b"", "audio/webm")},
        headers=OWNER,
    )
    assert response.status_code == 400


async def test_transcribe_chunk_and_tts(client, audio):
    chunk = await client.post(
        "/api/interview/transcribe-chunk",
        data={"previousContext": "so first I would"},
        files={"audio": ("chunk.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
        headers=OWNER,
    )
    assert chunk.json()["text"] == "partial words"
    assert audio.chunk_contexts == ["so first I would"]

    speech = await client.post("/api/interview/tts", json={"text": "Welcome."}, headers=OWNER)
    assert speech.status_code == 200
    assert speech.headers["content-type"] == "audio/mpeg"
    assert speech.content.startswith(b"ID3")
