"""
Main API router for PrepVoice

Aggregates all API routes and provides the main application router.
"""

from fastapi import APIRouter

from prepvoice.api.endpoints import audio, sessions

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    sessions.router,
    prefix="/interview",
    tags=["Interview"]
)

api_router.include_router(
    audio.router,
    prefix="/interview",
    tags=["Audio"]
)
