"""
Audience-driven defaults, the keyword safety gate, and the user-visible error mapping.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping

from .models import StoryGenerationRequest

DEFAULT_EDUCATIONAL_GOALS: Mapping[str, tuple[str, ...]] = {
    "child": (
        "Basic vocabulary development",
        "Simple sentence structure",
        "Cause and effect understanding",
        "Character empathy",
    ),
    "preteen": (
        "Vocabulary expansion",
        "Plot structure understanding",
        "Character development",
        "Creative expression",
    ),
    "teen": (
        "Advanced vocabulary",
        "Complex plot structures",
        "Character psychology",
        "Thematic analysis",
        "Creative writing techniques",
    ),
    "young-adult": (
        "Literary techniques",
        "Advanced character development",
        "Complex themes",
        "Narrative voice",
    ),
    "adult": (
        "Advanced literary techniques",
        "Complex narrative structures",
        "Sophisticated themes",
    ),
}

DEFAULT_LENGTHS: Mapping[str, str] = {
    "child": "short",
    "preteen": "short",
    "teen": "medium",
    "young-adult": "medium",
    "adult": "long",
}

INAPPROPRIATE_KEYWORDS = ("violence", "inappropriate", "adult", "harmful")

QUOTA_MESSAGE = "AI service temporarily unavailable. Please try again later."
TIMEOUT_MESSAGE = "Story generation timed out. Please try a shorter prompt."
GENERIC_FAILURE_MESSAGE = "Story generation failed. Please try again."


def default_educational_goals(audience: str) -> tuple[str, ...]:
    return DEFAULT_EDUCATIONAL_GOALS.get(audience, DEFAULT_EDUCATIONAL_GOALS["child"])


def default_length(audience: str) -> str:
    return DEFAULT_LENGTHS.get(audience, "short")


def apply_audience_defaults(request: StoryGenerationRequest) -> StoryGenerationRequest:
    """
    Fill omitted length, goals and feature toggles from the target audience.

    Values the caller supplied, including an explicit empty goals list, are kept.
    """
    return replace(
        request,
        length=request.length or default_length(request.target_audience),
        educational_goals=(
            request.educational_goals
            if request.educational_goals is not None
            else default_educational_goals(request.target_audience)
        ),
        include_images=True if request.include_images is None else request.include_images,
        include_audio=False if request.include_audio is None else request.include_audio,
        include_interactive=(
            True if request.include_interactive is None else request.include_interactive
        ),
    )


def contains_inappropriate_content(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in INAPPROPRIATE_KEYWORDS)


def describe_generation_error(error: BaseException) -> tuple[int, str]:
    """Map a generation failure to the HTTP status and message shown to users."""
    message = str(error).lower()
    if "quota" in message:
        return 503, QUOTA_MESSAGE
    if "timeout" in message or "timed out" in message:
        return 408, TIMEOUT_MESSAGE
    return 500, GENERIC_FAILURE_MESSAGE
