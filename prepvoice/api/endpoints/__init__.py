"""
API endpoint modules for PrepVoice
"""

from prepvoice.api.endpoints import audio, sessions

__all__ = ["audio", "sessions"]
