"""Client-side interview components: API client, answer capture, tab-switch monitor and runner."""

from prepvoice.client.api_client import InterviewApiClient
from prepvoice.client.capture import (
    AnswerCapture,
    AudioSource,
    BufferedAudioSource,
    CancellationToken,
    CaptureResult,
    CaptureSettings,
)
from prepvoice.client.monitor import TabSwitchMonitor
from prepvoice.client.runner import AudioPlayer, InterviewRunner

__all__ = [
    "InterviewApiClient",
    "AnswerCapture",
    "AudioSource",
    "BufferedAudioSource",
    "CancellationToken",
    "CaptureResult",
    "CaptureSettings",
    "TabSwitchMonitor",
    "AudioPlayer",
    "InterviewRunner",
]
