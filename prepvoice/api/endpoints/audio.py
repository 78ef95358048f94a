"""
Audio API endpoints

Handles:
- Live chunk transcription (preview while recording)
- Text-to-speech for interviewer text
"""

from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import Field

from prepvoice.api.dependencies import get_current_user_id, get_orchestrator
from prepvoice.core.exceptions import InterviewError
from prepvoice.core.interview_orchestrator import InterviewOrchestrator
from prepvoice.models.base import CamelModel, utcnow

router = APIRouter()


class ChunkTranscriptionResponse(CamelModel):
    """Response for a live transcription chunk."""
    text: str
    timestamp: datetime


class TTSRequest(CamelModel):
    """Request model for text-to-speech."""
    text: str = Field(..., min_length=1, max_length=4096)


@router.post("/transcribe-chunk", response_model=ChunkTranscriptionResponse)
async def transcribe_chunk(
    audio: UploadFile = File(...),
    previous_context: str = Form(default="", alias="previousContext"),
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> ChunkTranscriptionResponse:
    """
    Transcribe a slice of an in-progress recording.

    The result is a preview only; the answer of record comes from
    submit-answer.
    """
    audio_data = await audio.read()
    if not audio_data:
        return ChunkTranscriptionResponse(text="", timestamp=utcnow())

    try:
        text = await orchestrator.transcribe_chunk(audio_data, previous_context)
    except InterviewError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return ChunkTranscriptionResponse(text=text, timestamp=utcnow())


@router.post("/tts")
async def text_to_speech(
    request: TTSRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Convert text to speech; returns MP3 bytes."""
    try:
        audio_data = await orchestrator.synthesize_speech(request.text)
    except InterviewError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return Response(content=audio_data, media_type="audio/mpeg")
