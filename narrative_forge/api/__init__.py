"""
FastAPI routes served by Narrative Forge.
"""

from .story_routes import TokenVerifier, VerifiedUser, create_app, create_story_router

__all__ = [
    "TokenVerifier",
    "VerifiedUser",
    "create_app",
    "create_story_router",
]
