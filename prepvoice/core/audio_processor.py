"""
Audio Processing Layer for PrepVoice

Handles:
- Speech-to-Text (STT) using a hosted Whisper-compatible API
- Text-to-Speech (TTS) using an OpenAI-compatible speech API or Edge TTS

Both directions raise on failure: there is no safe stand-in for a
transcript or for the interviewer's voice.
"""

import logging

import edge_tts
import httpx

from prepvoice.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def guess_audio_format(audio_data: bytes) -> tuple[str, str]:
    """Filename and MIME type for uploaded audio, sniffed from magic bytes."""
    if audio_data[:4] == b"RIFF":
        return "audio.wav", "audio/wav"
    if audio_data[:4] == b"OggS":
        return "audio.ogg", "audio/ogg"
    if audio_data[:3] == b"ID3" or audio_data[:2] in (b"\xff\xfb", b"\xff\xf3"):
        return "audio.mp3", "audio/mpeg"
    if audio_data[:4] == b"\x1a\x45\xdf\xa3":
        return "audio.webm", "audio/webm"
    # Browser MediaRecorder default
    return "audio.webm", "audio/webm"


class AudioProcessor:
    """
    Central audio processing component.

    STT: Whisper API (full answers and live chunks with prompt context)
    TTS: OpenAI-compatible speech endpoint or Edge TTS
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize audio processor."""
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(timeout=60.0)

    async def close(self):
        """Clean up resources."""
        await self.client.aclose()

    # =========================================================================
    # SPEECH-TO-TEXT (Whisper)
    # =========================================================================

    async def transcribe(self, audio_data: bytes) -> str:
        """
        Transcribe a complete answer.

        Args:
            audio_data: Raw audio bytes (webm, wav, ogg or mp3)

        Returns:
            Transcribed text

        Raises:
            httpx.HTTPError: If the transcription API fails
        """
        return await self._transcribe_api(audio_data, {"temperature": "0"})

    async def transcribe_chunk(self, audio_data: bytes, previous_context: str = "") -> str:
        """
        Transcribe a short slice of a live recording.

        Args:
            audio_data: Audio recorded since the previous chunk
            previous_context: Trailing words already transcribed, passed as
                the Whisper prompt so words split across chunks stay coherent

        Returns:
            Transcribed text for this chunk
        """
        extra = {"temperature": "0"}
        if previous_context.strip():
            extra["prompt"] = previous_context.strip()
        return await self._transcribe_api(audio_data, extra)

    async def _transcribe_api(self, audio_data: bytes, extra: dict[str, str]) -> str:
        """Transcribe using Whisper API."""
        filename, content_type = guess_audio_format(audio_data)
        files = {
            "file": (filename, audio_data, content_type),
        }
        data = {
            "model": self.settings.stt_model,
            "language": self.settings.stt_language,
            "response_format": "json",
            **extra,
        }

        try:
            response = await self.client.post(
                self.settings.stt_api_url,
                files=files,
                data=data,
                headers={"Authorization": f"Bearer {self.settings.stt_api_key}"},
            )
            response.raise_for_status()

            result = response.json()
            return (result.get("text") or "").strip()

        except httpx.HTTPError as e:
            logger.error(f"Whisper API error: {e}")
            raise

    # =========================================================================
    # TEXT-TO-SPEECH
    # =========================================================================

    async def synthesize(self, text: str) -> bytes:
        """
        Convert text to speech.

        Args:
            text: Text to synthesize

        Returns:
            MP3 audio bytes

        Raises:
            httpx.HTTPError: If the speech API fails
            RuntimeError: If Edge TTS fails or produces no audio
        """
        provider = self.settings.tts_provider.lower()
        if provider == "edge-tts":
            return await self._tts_edge(text)
        return await self._tts_openai(text)

    async def _tts_openai(self, text: str) -> bytes:
        """Generate speech using an OpenAI-compatible /audio/speech endpoint."""
        payload = {
            "model": self.settings.tts_model,
            "voice": self.settings.tts_voice,
            "input": text,
            "speed": 1.0,
        }
        try:
            response = await self.client.post(
                self.settings.tts_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.tts_api_key}"},
            )
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.error(f"TTS API error: {e}")
            raise

    async def _tts_edge(self, text: str) -> bytes:
        """
        Generate speech using Edge TTS (Microsoft).

        Raises:
            RuntimeError: If the service fails or produces no audio
        """
        communicate = edge_tts.Communicate(text, self.settings.edge_tts_voice)

        audio_chunks = []
        try:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    audio_chunks.append(chunk["data"])
        except Exception as e:
            logger.error(f"Edge TTS failed: {e}")
            raise RuntimeError(f"Edge TTS failed: {e}") from e

        audio_data = b"".join(audio_chunks)
        if not audio_data:
            raise RuntimeError("Edge TTS returned no audio")
        return audio_data
