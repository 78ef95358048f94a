"""
Core business logic modules for PrepVoice

Contains:
- Interview Orchestrator: State machine for the session lifecycle
- Evaluation Gateway: Timeout, retry and fallback policy for AI capabilities
- AI Reasoning: Question generation, multi-agent evaluation, hints
- Audio Processing: STT/TTS integration
- Session stores: In-memory and SQLAlchemy persistence
- Report Generator: Results aggregation
"""

from prepvoice.core.interview_orchestrator import InterviewOrchestrator
from prepvoice.core.evaluation_gateway import EvaluationGateway
from prepvoice.core.ai_reasoning import AIReasoningLayer
from prepvoice.core.audio_processor import AudioProcessor
from prepvoice.core.session_store import InMemorySessionStore, SessionStore
from prepvoice.core.sql_store import SqlSessionStore
from prepvoice.core.report_generator import ReportGenerator

__all__ = [
    "InterviewOrchestrator",
    "EvaluationGateway",
    "AIReasoningLayer",
    "AudioProcessor",
    "InMemorySessionStore",
    "SessionStore",
    "SqlSessionStore",
    "ReportGenerator",
]
