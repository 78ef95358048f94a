"""
AI prompt templates for PrepVoice

Contains structured prompts for:
- Question generation
- Question hints
- Multi-agent answer evaluation
"""

from prepvoice.prompts.interviewer import InterviewerPrompts
from prepvoice.prompts.evaluator import EvaluatorPrompts

__all__ = [
    "InterviewerPrompts",
    "EvaluatorPrompts",
]
