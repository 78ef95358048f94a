"""
Interview session API endpoints

Handles the interview session lifecycle:
- Creating and starting sessions
- Generating questions and hints
- Submitting spoken answers
- Tab-switch reporting
- Completion and results
"""

import base64
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import Field

from prepvoice.api.dependencies import get_current_user_id, get_orchestrator
from prepvoice.core.exceptions import InterviewError
from prepvoice.core.interview_orchestrator import InterviewOrchestrator
from prepvoice.models.base import CamelModel
from prepvoice.models.evaluation import Difficulty, QuestionCategory, QuestionHint
from prepvoice.models.qa import AnswerResult, QuestionAnswer
from prepvoice.models.report import SessionResults
from prepvoice.models.session import InterviewSession, TabSwitchResult

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class CreateSessionRequest(CamelModel):
    """Request model for session creation."""
    role: str = Field(..., min_length=1)
    interview_type: str = Field(..., min_length=1)
    years_of_experience: int = Field(default=0, ge=0)
    skills: list[str] = Field(default_factory=list)
    total_questions: int | None = None


class NextQuestionRequest(CamelModel):
    """Optional body for next-question."""
    years_of_experience: int | None = Field(default=None, ge=0)


class NextQuestionResponse(CamelModel):
    """A question with its audio, base64-encoded."""
    question: str
    question_number: int
    difficulty: Difficulty | None = None
    category: QuestionCategory
    tested_skills: list[str]
    audio_base64: str


class HintRequest(CamelModel):
    """Request model for a hint."""
    question_number: int = Field(..., ge=1)


# ============================================================================
# HELPERS
# ============================================================================

def _http_error(e: InterviewError) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"Interview operation failed: {e}")
    return HTTPException(status_code=e.status_code, detail=str(e))


async def _owned_session(
    orchestrator: InterviewOrchestrator,
    session_id: str,
    user_id: str,
) -> InterviewSession:
    """Load a session and check it belongs to the caller."""
    try:
        session = await orchestrator.get_session(session_id)
    except InterviewError as e:
        raise _http_error(e)

    if session.user_id != user_id:
        raise HTTPException(status_code=403, detail="Session belongs to another user")
    return session


# ============================================================================
# REST ENDPOINTS
# ============================================================================

@router.post("/sessions", response_model=InterviewSession, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    """
    Create a new interview session.

    The session starts in PENDING; the question budget is clamped to 1-20.
    """
    return await orchestrator.create_session(
        user_id=user_id,
        role=request.role,
        interview_type=request.interview_type,
        years_of_experience=request.years_of_experience,
        skills=request.skills,
        total_questions=request.total_questions,
    )


@router.get("/sessions/{session_id}", response_model=InterviewSession)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    """Get a session descriptor."""
    return await _owned_session(orchestrator, session_id, user_id)


@router.patch("/sessions/{session_id}/start", response_model=InterviewSession)
async def start_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    """Start the interview."""
    await _owned_session(orchestrator, session_id, user_id)
    try:
        return await orchestrator.start_session(session_id)
    except InterviewError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/next-question", response_model=NextQuestionResponse)
async def next_question(
    session_id: str,
    request: NextQuestionRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> NextQuestionResponse:
    """
    Generate and voice the next question.

    Returns 409 once every question has been asked and 503 if speech
    synthesis fails (the question is kept; retry the call).
    """
    await _owned_session(orchestrator, session_id, user_id)
    try:
        result = await orchestrator.generate_next_question(
            session_id,
            years_of_experience=request.years_of_experience if request else None,
        )
    except InterviewError as e:
        raise _http_error(e)

    return NextQuestionResponse(
        question=result.question,
        question_number=result.question_number,
        difficulty=result.difficulty,
        category=result.category,
        tested_skills=result.tested_skills,
        audio_base64=base64.b64encode(result.audio).decode("utf-8"),
    )


@router.post("/sessions/{session_id}/hint", response_model=QuestionHint)
async def get_hint(
    session_id: str,
    request: HintRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> QuestionHint:
    """Get a hint; only hard questions qualify (403 otherwise)."""
    await _owned_session(orchestrator, session_id, user_id)
    try:
        return await orchestrator.get_question_hint(session_id, request.question_number)
    except InterviewError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/submit-answer", response_model=AnswerResult)
async def submit_answer(
    session_id: str,
    audio: UploadFile = File(...),
    question_number: int = Form(..., alias="questionNumber"),
    years_of_experience: int | None = Form(default=None, alias="yearsOfExperience"),
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> AnswerResult:
    """
    Submit a recorded answer.

    The audio is transcribed and evaluated; 503 means transcription failed
    and the same audio can be resubmitted.
    """
    await _owned_session(orchestrator, session_id, user_id)

    audio_data = await audio.read()
    if not audio_data:
        raise HTTPException(status_code=400, detail="Empty audio upload")

    try:
        return await orchestrator.process_answer(
            session_id,
            question_number=question_number,
            audio_data=audio_data,
            years_of_experience=years_of_experience,
        )
    except InterviewError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/tab-switch", response_model=TabSwitchResult)
async def record_tab_switch(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> TabSwitchResult:
    """Report that the candidate left the interview tab."""
    await _owned_session(orchestrator, session_id, user_id)
    try:
        return await orchestrator.record_tab_switch(session_id)
    except InterviewError as e:
        raise _http_error(e)


@router.patch("/sessions/{session_id}/complete", response_model=InterviewSession)
async def complete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    """Finish the interview (idempotent; a cancelled session stays cancelled)."""
    await _owned_session(orchestrator, session_id, user_id)
    try:
        return await orchestrator.complete_session(session_id)
    except InterviewError as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/qa", response_model=list[QuestionAnswer])
async def list_questions(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> list[QuestionAnswer]:
    """All QA records of a session, ordered by question number."""
    await _owned_session(orchestrator, session_id, user_id)
    return await orchestrator.list_questions(session_id)


@router.get("/sessions/{session_id}/results", response_model=SessionResults)
async def get_results(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
) -> SessionResults:
    """Aggregated results for a completed or cancelled session."""
    await _owned_session(orchestrator, session_id, user_id)
    try:
        return await orchestrator.get_results(session_id)
    except InterviewError as e:
        raise _http_error(e)
