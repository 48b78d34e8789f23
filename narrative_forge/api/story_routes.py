"""
HTTP surface for story generation.

``POST /api/story-generator`` authenticates the caller, validates the payload, applies
audience defaults and the keyword safety gate, then delegates to the orchestrator.
``GET /api/story-generator`` is a static health probe.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from narrative_forge.common import ServiceError
from narrative_forge.common.coerce import utc_now_iso
from narrative_forge.pipeline import NarrativeOrchestrator
from narrative_forge.story_generation.defaults import (
    apply_audience_defaults,
    contains_inappropriate_content,
    describe_generation_error,
)
from narrative_forge.story_generation.models import AUDIENCES, StoryGenerationRequest

logger = logging.getLogger(__name__)

STORY_GENERATOR_PATH = "/api/story-generator"
SERVICE_NAME = "Narrative Forge Story Generator"
SERVICE_VERSION = "1.0.0"
RESPONSE_AI_MODEL = "ai-services-cached"
REQUIRED_FIELDS = ("initialPrompt", "genre", "targetAudience")
BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class VerifiedUser:
    """Identity returned by the token verifier."""

    uid: str
    email: str | None = None


TokenVerifier = Callable[[str], Awaitable[VerifiedUser]]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_story_router(
    orchestrator: NarrativeOrchestrator,
    verify_token: TokenVerifier,
) -> APIRouter:
    """
    Build the story-generator router.

    Parameters
    ----------
    orchestrator:
        Generation orchestrator shared by every request.
    verify_token:
        Async callable that verifies a bearer token and returns the caller's identity.
        Any exception it raises is reported as an invalid token.
    """
    router = APIRouter()

    @router.post(STORY_GENERATOR_PATH)
    async def generate_story(request: Request) -> JSONResponse:
        authorization = request.headers.get("authorization") or ""
        if not authorization.startswith(BEARER_PREFIX):
            return _error(401, "Authentication required")

        token = authorization[len(BEARER_PREFIX) :].strip()
        try:
            user = await verify_token(token)
        except Exception:
            logger.info("Rejected story request with an invalid token", exc_info=True)
            return _error(401, "Invalid authentication token")

        try:
            payload = await request.json()
        except ValueError:
            return _error(400, "Invalid request format")
        if not isinstance(payload, dict):
            return _error(400, "Invalid request format")

        if not all(payload.get(name) for name in REQUIRED_FIELDS):
            return _error(400, "Missing required fields: " + ", ".join(REQUIRED_FIELDS))
        if payload["targetAudience"] not in AUDIENCES:
            return _error(400, "Invalid target audience")
        if contains_inappropriate_content(str(payload["initialPrompt"])):
            return _error(400, "Content does not meet safety guidelines")

        try:
            story_request = apply_audience_defaults(StoryGenerationRequest.from_mapping(payload))
        except (TypeError, ValueError):
            logger.info("Story request payload could not be parsed", exc_info=True)
            return _error(400, "Invalid request format")

        logger.info(
            "Generating story for user %s (audience=%s, genre=%s): %.100s",
            user.uid,
            story_request.target_audience,
            story_request.genre,
            story_request.initial_prompt,
        )

        started = time.perf_counter()
        try:
            story = await orchestrator.generate_story(story_request)
        except Exception as exc:
            if isinstance(exc, ServiceError) and exc.is_validation_error:
                return _error(400, exc.message)
            logger.exception("Story generation failed for user %s", user.uid)
            status_code, message = describe_generation_error(exc)
            return _error(status_code, message)
        processing_time = int((time.perf_counter() - started) * 1000)

        logger.info(
            "Story generated in %dms: %d chapters, %d words",
            processing_time,
            len(story.chapters),
            story.metadata.word_count,
        )

        body: dict[str, Any] = {
            "success": True,
            "story": {
                **story.as_dict(),
                "userId": user.uid,
                "userEmail": user.email,
                "processingTime": processing_time,
                "generatedAt": utc_now_iso(),
            },
            "metadata": {
                "processingTime": processing_time,
                "aiModel": RESPONSE_AI_MODEL,
                "safety": {
                    "contentFiltered": True,
                    "ageAppropriate": True,
                    "educationalValue": story.metadata.educational_value,
                },
            },
        }
        return JSONResponse(body)

    @router.get(STORY_GENERATOR_PATH)
    async def health() -> dict[str, Any]:
        return {
            "service": SERVICE_NAME,
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "version": SERVICE_VERSION,
        }

    return router


def create_app(
    orchestrator: NarrativeOrchestrator,
    verify_token: TokenVerifier,
    *,
    log_level: int = logging.INFO,
) -> FastAPI:
    """Create the FastAPI application serving the story generator."""
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await orchestrator.aclose()

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.include_router(create_story_router(orchestrator, verify_token))
    return app
