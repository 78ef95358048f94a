"""
Answer capture pipeline.

Records one spoken answer per question without the candidate having to
say they are done:

- recording starts after a short settle delay that follows playback
- a silence loop stops recording once the level has stayed below the
  threshold long enough and the minimum duration has elapsed
- a live transcription task sends audio chunks for a best-effort preview

Both loops share one recording token; clearing it stops both.
"""

import array
import asyncio
import io
import logging
import sys
import time
import wave
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# (audio, previous_context) -> text
ChunkTranscriber = Callable[[bytes, str], Awaitable[str]]


class CaptureSettings(BaseModel):
    """Tuning for silence detection and live transcription."""
    settle_delay: float = Field(default=0.5, ge=0)
    silence_threshold: float = Field(default=15.0, ge=0, le=128)
    silence_duration: float = Field(default=3.0, gt=0)
    min_recording: float = Field(default=5.0, ge=0)
    poll_interval: float = Field(default=0.05, gt=0)
    chunk_interval: float = Field(default=2.0, gt=0)
    context_words: int = Field(default=30, ge=0)


class CancellationToken:
    """
    Single-writer stop flag shared by concurrently scheduled tasks.

    Tasks check ``cancelled`` before every continuation and may sleep
    on ``wait`` so that cancellation wakes them immediately.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self._event.is_set()


# ============================================================================
# AUDIO SOURCES
# ============================================================================

def pcm_level(frame: bytes) -> float:
    """Mean absolute amplitude of 16-bit PCM, scaled to 0-128."""
    if len(frame) < 2:
        return 0.0
    samples = array.array("h")
    samples.frombytes(frame[: len(frame) - len(frame) % 2])
    if sys.byteorder == "big":
        samples.byteswap()
    return sum(abs(s) for s in samples) / len(samples) / 32768 * 128


def pcm_to_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> bytes:
    """Wrap raw 16-bit PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


class AudioSource(ABC):
    """A microphone-like source the capture pipeline can record from."""

    @abstractmethod
    async def start(self):
        """Begin recording."""

    @abstractmethod
    def level(self) -> float:
        """Current input level on a 0-128 scale."""

    @abstractmethod
    def drain(self) -> bytes:
        """Audio recorded since the previous drain, as a standalone payload."""

    @abstractmethod
    async def stop(self) -> bytes:
        """Stop recording and return the full recording."""


class BufferedAudioSource(AudioSource):
    """
    Source fed with 16-bit little-endian PCM frames by the caller.

    Frames pushed while not recording are dropped. Payloads are WAV.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self._recording = False
        self._frames: list[bytes] = []
        self._pending: list[bytes] = []
        self._level = 0.0

    @property
    def recording(self) -> bool:
        return self._recording

    def push(self, frame: bytes):
        if not self._recording:
            return
        self._frames.append(frame)
        self._pending.append(frame)
        self._level = pcm_level(frame)

    async def start(self):
        self._frames = []
        self._pending = []
        self._level = 0.0
        self._recording = True

    def level(self) -> float:
        return self._level

    def drain(self) -> bytes:
        if not self._pending:
            return b""
        pcm = b"".join(self._pending)
        self._pending = []
        return pcm_to_wav(pcm, self.sample_rate, self.channels)

    async def stop(self) -> bytes:
        self._recording = False
        self._level = 0.0
        self._pending = []
        return pcm_to_wav(b"".join(self._frames), self.sample_rate, self.channels)


# ============================================================================
# CAPTURE PIPELINE
# ============================================================================

class CaptureResult(BaseModel):
    """A finished recording."""
    audio: bytes
    duration_seconds: float
    stopped_by_silence: bool


class AnswerCapture:
    """
    Records one answer from an audio source.

    Usage:
        capture = AnswerCapture(source, transcribe_chunk)
        result = await capture.record(interview_token)
    """

    def __init__(
        self,
        source: AudioSource,
        transcribe_chunk: ChunkTranscriber | None = None,
        settings: CaptureSettings | None = None,
    ):
        self.source = source
        self.transcribe_chunk = transcribe_chunk
        self.settings = settings or CaptureSettings()
        self.live_transcript = ""
        self._recording_token: CancellationToken | None = None

    @property
    def is_recording(self) -> bool:
        return self._recording_token is not None and not self._recording_token.cancelled

    def stop(self):
        """Stop the active recording manually; the answer is still returned."""
        if self._recording_token:
            self._recording_token.cancel()

    async def record(self, interview_token: CancellationToken) -> CaptureResult | None:
        """
        Record until silence, a manual stop, or interview cancellation.

        Args:
            interview_token: Cancelled when the whole interview ends

        Returns:
            The recording, or None if the interview was cancelled (the
            audio is discarded)
        """
        if await interview_token.wait(self.settings.settle_delay):
            return None

        token = CancellationToken()
        self._recording_token = token
        self.live_transcript = ""

        await self.source.start()
        started = time.monotonic()
        logger.info("Recording started")

        silence_task = asyncio.create_task(self._silence_loop(token, interview_token, started))
        chunk_task = None
        if self.transcribe_chunk is not None:
            chunk_task = asyncio.create_task(self._chunk_loop(token))

        try:
            stopped_by_silence = await silence_task
        finally:
            token.cancel()
            if not silence_task.done():
                silence_task.cancel()
            if chunk_task is not None:
                await asyncio.gather(chunk_task, return_exceptions=True)
            audio = await self.source.stop()
            self._recording_token = None

        duration = time.monotonic() - started
        # Preview only; the authoritative transcript comes from the server
        self.live_transcript = ""

        if interview_token.cancelled:
            logger.info("Recording discarded: interview ended")
            return None

        logger.info(
            f"Recording stopped after {duration:.1f}s "
            f"({'silence' if stopped_by_silence else 'manual'})"
        )
        return CaptureResult(
            audio=audio,
            duration_seconds=duration,
            stopped_by_silence=stopped_by_silence,
        )

    async def _silence_loop(
        self,
        token: CancellationToken,
        interview_token: CancellationToken,
        started: float,
    ) -> bool:
        """Poll the level; True when stopped by silence."""
        settings = self.settings
        silence_since: float | None = None

        while not token.cancelled and not interview_token.cancelled:
            if await token.wait(settings.poll_interval):
                break

            now = time.monotonic()
            if self.source.level() < settings.silence_threshold:
                if silence_since is None:
                    silence_since = now
            else:
                silence_since = None

            if (
                silence_since is not None
                and now - silence_since >= settings.silence_duration
                and now - started >= settings.min_recording
            ):
                token.cancel()
                return True

        return False

    async def _chunk_loop(self, token: CancellationToken):
        """Send recorded slices for live transcription until recording stops."""
        while not await token.wait(self.settings.chunk_interval):
            chunk = self.source.drain()
            if not chunk:
                continue

            context = self._trailing_context()
            try:
                text = await self.transcribe_chunk(chunk, context)
            except Exception as e:
                logger.warning(f"Live transcription chunk failed: {e}")
                continue

            if token.cancelled:
                break
            if text and text.strip():
                self.live_transcript = f"{self.live_transcript} {text.strip()}".strip()

    def _trailing_context(self) -> str:
        if self.settings.context_words <= 0:
            return ""
        words = self.live_transcript.split()
        return " ".join(words[-self.settings.context_words:])
