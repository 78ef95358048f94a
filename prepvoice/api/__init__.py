"""
API layer for PrepVoice

Contains FastAPI routers for:
- Interview session lifecycle
- Audio (live transcription, TTS)
"""

from prepvoice.api.router import api_router

__all__ = ["api_router"]
