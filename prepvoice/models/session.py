"""
Interview session models for PrepVoice
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import Field

from prepvoice.models.base import CamelModel, utcnow


class SessionStatus(str, Enum):
    """Interview session lifecycle states."""

    PENDING = "pending"  # Created, not started
    IN_PROGRESS = "in_progress"  # Questions being asked
    COMPLETED = "completed"  # Finished normally or ended early
    CANCELLED = "cancelled"  # Terminated (e.g. tab switches)

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible."""
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class InterviewSession(CamelModel):
    """One interview attempt by one user, with a fixed question budget."""

    session_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str

    # Setup
    role: str
    interview_type: str
    years_of_experience: int = Field(default=0, ge=0)
    skills: list[str] = Field(default_factory=list)
    total_questions: int = Field(default=5, ge=1)

    # Progress
    current_question_index: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.PENDING

    # Anti-cheat
    tab_switches: int = 0
    tab_switch_timestamps: list[datetime] = Field(default_factory=list)
    terminated_for_tab_switches: bool = False

    # Timing
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Elapsed interview time in seconds."""
        if not self.started_at:
            return 0.0
        end = self.completed_at or utcnow()
        return (end - self.started_at).total_seconds()


class TabSwitchResult(CamelModel):
    """Outcome of recording a tab switch."""

    tab_switches: int
    should_terminate: bool = False
