"""
Tests for the client-side interview runner against the real API app.
"""

import httpx
import pytest

from main import app
from prepvoice.api.dependencies import get_orchestrator
from prepvoice.client.api_client import InterviewApiClient
from prepvoice.client.capture import AnswerCapture, BufferedAudioSource, CaptureSettings
from prepvoice.client.runner import InterviewRunner

FAST_CAPTURE = CaptureSettings(
    settle_delay=0.0,
    silence_duration=0.02,
    min_recording=0.03,
    poll_interval=0.005,
    chunk_interval=0.01,
)


class RecordingPlayer:
    def __init__(self):
        self.played: list[bytes] = []
        self.on_play = None

    async def play(self, audio: bytes) -> None:
        self.played.append(audio)
        if self.on_play:
            await self.on_play(len(self.played))


@pytest.fixture
async def api(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    client = InterviewApiClient("http://testserver", "candidate-1", client=http)
    yield client
    await client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def player() -> RecordingPlayer:
    return RecordingPlayer()


@pytest.fixture
def runner(api, player) -> InterviewRunner:
    capture = AnswerCapture(BufferedAudioSource(), api.transcribe_chunk, settings=FAST_CAPTURE)
    return InterviewRunner(api, capture, player, advance_delay=0.01, retry_delay=0.01)


async def test_runs_every_question(runner, player, ai):
    ai.scores = [80, 60]
    answers = []

    async def on_answer(result):
        answers.append(result["questionNumber"])

    runner.on_answer = on_answer
    await runner.start("backend engineer", "technical", 3, ["SQL"], total_questions=2)

    results = await runner.run()

    assert answers == [1, 2]
    assert len(player.played) == 2
    assert player.played[0].startswith(b"ID3")
    assert runner.session["status"] == "completed"
    assert results["totalAnswered"] == 2
    assert results["averageScore"] == 70


async def test_end_interview_stops_advancing(runner, player, store):
    async def end_on_second(count):
        if count == 2:
            runner.end_interview()

    player.on_play = end_on_second
    await runner.start("backend engineer", "technical", 3, total_questions=4)

    results = await runner.run()

    assert len(player.played) == 2
    assert results["totalAnswered"] == 1
    assert results["status"] == "completed"
    assert len(await store.list_qas(runner.session_id)) == 2


async def test_tab_switch_termination_finalizes(runner, player):
    async def leave_tab(count):
        runner.monitor.debounce_seconds = 0.0
        for _ in range(3):
            await runner.monitor.on_visibility_change(hidden=True)

    player.on_play = leave_tab
    await runner.start("backend engineer", "technical", 3, total_questions=3)

    results = await runner.run()

    assert runner.terminated_for_tab_switches
    assert len(player.played) == 1
    assert results["status"] == "cancelled"
    assert results["terminatedForTabSwitches"] is True
    assert results["totalAnswered"] == 0


async def test_run_requires_start(runner):
    with pytest.raises(RuntimeError):
        runner.session_id


async def test_transient_speech_failure_is_retried(runner, player, ai, audio, store, settings):
    failures = {"left": 0}
    synthesize = audio.synthesize

    async def flaky(text):
        if failures["left"]:
            failures["left"] -= 1
            raise httpx.ConnectError("tts down")
        return await synthesize(text)

    async def break_speech_after_first(count):
        if count == 1:
            failures["left"] = settings.ai_max_attempts

    audio.synthesize = flaky
    player.on_play = break_speech_after_first
    await runner.start("backend engineer", "technical", 3, total_questions=3)

    results = await runner.run()

    session = await store.get_session(runner.session_id)
    assert failures["left"] == 0
    assert len(player.played) == 3
    assert ai.question_calls == 3
    assert session.current_question_index == 3
    assert results["status"] == "completed"
    assert results["totalAnswered"] == 3


async def test_termination_during_submit_ends_cleanly(runner, player, api):
    submit_answer = api.submit_answer

    async def terminate_then_submit(*args, **kwargs):
        runner.monitor.debounce_seconds = 0.0
        for _ in range(3):
            await runner.monitor.on_visibility_change(hidden=True)
        return await submit_answer(*args, **kwargs)

    api.submit_answer = terminate_then_submit
    await runner.start("backend engineer", "technical", 3, total_questions=3)

    results = await runner.run()

    assert runner.terminated_for_tab_switches
    assert len(player.played) == 1
    assert results["status"] == "cancelled"
    assert results["totalAnswered"] == 0
