"""
API Dependencies

Provides dependency injection for API endpoints.
Manages singleton instances of core components.
"""

import logging

from fastapi import Header, HTTPException

from prepvoice.config.settings import get_settings
from prepvoice.core.ai_reasoning import AIReasoningLayer
from prepvoice.core.audio_processor import AudioProcessor
from prepvoice.core.evaluation_gateway import EvaluationGateway
from prepvoice.core.interview_orchestrator import InterviewOrchestrator
from prepvoice.core.report_generator import ReportGenerator
from prepvoice.core.session_store import InMemorySessionStore, SessionStore
from prepvoice.core.sql_store import SqlSessionStore

logger = logging.getLogger(__name__)


# ============================================================================
# SINGLETON INSTANCES
# ============================================================================

_orchestrator: InterviewOrchestrator | None = None


def _create_store() -> SessionStore:
    settings = get_settings()
    if settings.database_url:
        logger.info("Using SQL session store")
        return SqlSessionStore(settings.database_url, echo=settings.debug)
    logger.info("Using in-memory session store")
    return InMemorySessionStore()


def get_orchestrator() -> InterviewOrchestrator:
    """
    Get the interview orchestrator singleton.

    Lazily initializes all required components.
    """
    global _orchestrator

    if _orchestrator is None:
        gateway = EvaluationGateway(
            ai_reasoning=AIReasoningLayer(),
            audio_processor=AudioProcessor(),
        )
        _orchestrator = InterviewOrchestrator(
            store=_create_store(),
            gateway=gateway,
            report_generator=ReportGenerator(),
        )

    return _orchestrator


async def init_components():
    """Create components and database tables on startup."""
    orchestrator = get_orchestrator()
    if isinstance(orchestrator.store, SqlSessionStore):
        await orchestrator.store.init_db()


async def cleanup():
    """Cleanup resources on shutdown."""
    global _orchestrator

    if _orchestrator:
        await _orchestrator.gateway.close()
        await _orchestrator.store.close()

    _orchestrator = None


# ============================================================================
# IDENTITY
# ============================================================================

async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Principal id set by the authenticating gateway in front of the API.

    Raises:
        HTTPException: 401 if no principal is present
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()
