"""
Parsers that turn untrusted model output into typed narrative records.

Every parser returns a well-typed result: JSON embedded in prose is extracted when
present, and a deterministic fallback is built when it is missing or malformed.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from typing import Any

from narrative_forge.common.coerce import count_words, new_id, reading_time_minutes, utc_now_iso

from .models import (
    ChapterContext,
    EducationalFeedback,
    GeneratedChapter,
    GeneratedStory,
    OverallSkill,
    SkillAssessment,
    SkillScore,
    StoryGenerationRequest,
    StoryMetadata,
)
from .prompting import estimate_complexity

logger = logging.getLogger(__name__)

_HEADING_PREFIX = re.compile(r"^#+\s*")

PARSED_STORY_EDUCATIONAL_VALUE = 7

DEFAULT_ENCOURAGEMENT = (
    "Keep writing and exploring your creativity! Every story you write helps you grow as a writer."
)


def extract_json_object(raw_text: str) -> dict[str, Any] | None:
    """
    Return the JSON object spanning the first ``{`` to the last ``}`` of ``raw_text``.

    ``None`` is returned when there is no such span or it does not decode to an object.
    """
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        payload = json.loads(raw_text[start : end + 1])
    except json.JSONDecodeError:
        logger.debug("Embedded JSON candidate could not be decoded", exc_info=True)
        return None
    return payload if isinstance(payload, dict) else None


def split_title_and_content(raw_text: str, chapter_number: int) -> tuple[str, str]:
    """
    Use the first line (minus Markdown heading markers) as the title and the rest as content.
    """
    lines = raw_text.split("\n")
    title = _HEADING_PREFIX.sub("", lines[0]).strip()
    content = "\n".join(lines[1:]).strip()
    return title or f"Chapter {chapter_number}", content


def create_fallback_story(
    raw_text: str,
    request: StoryGenerationRequest,
    *,
    ai_model: str = "",
) -> GeneratedStory:
    """Wrap raw model output in a single-chapter story."""
    content = raw_text.strip()
    words = count_words(content)
    chapter = GeneratedChapter(chapter_number=1, title="Chapter 1", content=content, word_count=words)
    return GeneratedStory(
        title="Generated Story",
        description="An AI-generated story based on your prompt",
        synopsis=content[:200] + "...",
        chapters=(chapter,),
        characters=request.characters,
        metadata=StoryMetadata(
            word_count=words,
            estimated_reading_time=reading_time_minutes(words),
        ),
        generation_params=request.as_dict(),
        ai_model=ai_model,
    )


def parse_story_response(
    raw_text: str,
    request: StoryGenerationRequest,
    *,
    ai_model: str = "",
) -> GeneratedStory:
    """
    Build a story from model output, keeping the request's characters and goals.

    Chapters may come back as outlines without content; callers can fill them in.
    """
    payload = extract_json_object(raw_text)
    if payload is None:
        logger.warning("Story response contained no JSON object; using fallback story")
        return create_fallback_story(raw_text, request, ai_model=ai_model)

    payload.pop("characters", None)
    payload.pop("generationParams", None)
    try:
        story = GeneratedStory.from_mapping(payload, request=request, ai_model=ai_model)
    except (TypeError, ValueError):
        logger.warning("Story JSON did not match the expected shape; using fallback story", exc_info=True)
        return create_fallback_story(raw_text, request, ai_model=ai_model)

    if not story.chapters:
        logger.warning("Story JSON carried no chapters; using fallback story")
        return create_fallback_story(raw_text, request, ai_model=ai_model)

    return replace(story, metadata=story_metadata(story, request, raw_text=raw_text))


def story_metadata(
    story: GeneratedStory,
    request: StoryGenerationRequest,
    *,
    raw_text: str = "",
) -> StoryMetadata:
    """
    Recompute counts from the chapters, falling back to the raw response length.
    """
    words = sum(chapter.word_count for chapter in story.chapters) or count_words(raw_text)
    return StoryMetadata(
        word_count=words,
        estimated_reading_time=reading_time_minutes(words),
        complexity=estimate_complexity(request.target_audience),
        themes=story.metadata.themes or tuple(request.educational_goals or ()),
        content_warnings=story.metadata.content_warnings,
        educational_value=PARSED_STORY_EDUCATIONAL_VALUE,
        tags=story.metadata.tags,
    )


def parse_chapter_response(raw_text: str, context: ChapterContext) -> GeneratedChapter:
    """
    Parse the next chapter of an ongoing story.

    A JSON object with content wins; otherwise the first line becomes the title.
    """
    number = context.next_chapter_number
    payload = extract_json_object(raw_text)
    if payload is not None and str(payload.get("content") or "").strip():
        try:
            chapter = GeneratedChapter.from_mapping(payload, default_number=number)
        except (TypeError, ValueError):
            logger.warning("Chapter JSON did not match the expected shape", exc_info=True)
        else:
            return replace(chapter, chapter_number=number)

    title, content = split_title_and_content(raw_text, number)
    return GeneratedChapter(
        chapter_number=number,
        title=title,
        content=content,
        word_count=count_words(content),
    )


FALLBACK_ASSESSMENT = SkillAssessment(
    overall=OverallSkill(),
    vocabulary=SkillScore(
        strengths=("Good word choice",), improvements=("Try more varied vocabulary",)
    ),
    grammar=SkillScore(strengths=("Clear sentences",), improvements=("Check punctuation",)),
    narrative=SkillScore(strengths=("Engaging story",), improvements=("Develop plot structure",)),
    creativity=SkillScore(
        strengths=("Creative ideas",), improvements=("Add more descriptive details",)
    ),
    style=SkillScore(strengths=("Personal voice",), improvements=("Vary sentence length",)),
)


def parse_skill_assessment(raw_text: str) -> SkillAssessment:
    """
    Parse an assessment, defaulting each missing dimension independently.
    """
    payload = extract_json_object(raw_text)
    if payload is not None:
        try:
            return SkillAssessment.from_mapping(payload, defaults=SkillAssessment())
        except (TypeError, ValueError):
            logger.warning("Skill assessment JSON was malformed; using default", exc_info=True)
    else:
        logger.warning("Skill assessment response contained no JSON; using default")
    return replace(FALLBACK_ASSESSMENT, generated_at=utc_now_iso())


DEFAULT_FEEDBACK = EducationalFeedback(
    id="",
    overall_tone="encouraging",
    strengths=(
        "Great creativity in your storytelling!",
        "You have a strong narrative voice.",
        "Excellent character development.",
    ),
    improvements=(
        "Try varying your sentence length for better flow.",
        "Consider adding more descriptive details.",
        "Practice using more varied vocabulary.",
    ),
    exercises=(
        "Write a character description using only dialogue.",
        "Rewrite a paragraph using different sentence structures.",
        "Create a scene using all five senses.",
    ),
    encouragement=DEFAULT_ENCOURAGEMENT,
    next_steps=(
        "Continue practicing daily writing",
        "Read books in your favorite genre",
        "Try writing from different perspectives",
    ),
)


def default_feedback(
    assessment: SkillAssessment,
    user_id: str,
    *,
    encouragement: str = DEFAULT_ENCOURAGEMENT,
) -> EducationalFeedback:
    return replace(
        DEFAULT_FEEDBACK,
        id=new_id(),
        user_id=user_id,
        encouragement=encouragement,
        skill_progression=assessment.as_dict(),
        generated_at=utc_now_iso(),
    )


def parse_feedback_response(
    raw_text: str,
    assessment: SkillAssessment,
    user_id: str,
) -> EducationalFeedback:
    """
    Parse feedback, defaulting each missing field independently.

    Without JSON, the raw text becomes the encouragement message.
    """
    payload = extract_json_object(raw_text)
    if payload is None:
        return default_feedback(
            assessment, user_id, encouragement=raw_text.strip() or DEFAULT_ENCOURAGEMENT
        )

    defaults = default_feedback(assessment, user_id)
    try:
        feedback = EducationalFeedback.from_mapping(payload, defaults=defaults)
    except (TypeError, ValueError):
        logger.warning("Feedback JSON was malformed; using defaults", exc_info=True)
        return defaults
    return replace(feedback, user_id=user_id)
