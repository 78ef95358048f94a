"""
PrepVoice - AI-Powered Voice Mock Interview Platform

Runs spoken mock interviews: questions are generated and voiced, answers
are recorded, transcribed and scored, and a results report aggregates
performance across the session.
"""

__version__ = "0.1.0"
__author__ = "PrepVoice Team"
