"""
In-process narrative generation through LiteLLM-compatible chat models.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Sequence

from narrative_forge.common import ChatResult, CompletionCallable, call_chat_completion
from narrative_forge.common.coerce import count_words
from narrative_forge.common.config import DEFAULT_LOCAL_MODEL
from narrative_forge.story_generation.models import (
    ChapterContext,
    EducationalFeedback,
    GeneratedChapter,
    GeneratedStory,
    SkillAssessment,
    StoryGenerationRequest,
)
from narrative_forge.story_generation.parsing import (
    parse_chapter_response,
    parse_feedback_response,
    parse_skill_assessment,
    parse_story_response,
    story_metadata,
)
from narrative_forge.story_generation.prompting import (
    NarrativePrompt,
    build_chapter_prompt,
    build_feedback_prompt,
    build_single_chapter_prompt,
    build_skill_assessment_prompt,
    build_story_prompt,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]

CHAPTER_BATCH_SIZE = 3


class LocalNarrativeGenerator:
    """
    Generates narrative artifacts with a chat model called from this process.

    Parameters
    ----------
    model:
        LiteLLM model identifier.
    api_key:
        Optional provider API key forwarded to the completion call.
    completion_fn:
        Async completion callable. Defaults to :func:`call_chat_completion`; tests inject fakes.
    timeout:
        Optional per-call timeout in seconds forwarded to the completion call.
    batch_size:
        Number of chapter texts written concurrently when a story comes back as outlines.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        api_key: str | None = None,
        completion_fn: CompletionCallable | None = None,
        timeout: float | None = None,
        batch_size: int = CHAPTER_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        self._model = model or DEFAULT_LOCAL_MODEL
        self._api_key = api_key
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._timeout = timeout
        self._batch_size = batch_size

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._model

    async def _complete(
        self,
        prompt: NarrativePrompt,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        kwargs: dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        result: ChatResult = await self._completion_fn(
            model=self._model,
            messages=prompt.messages(),
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=self._api_key,
            **kwargs,
        )
        if not result.text:
            raise RuntimeError("LLM response did not contain any text content.")
        return result.text

    async def generate_story(
        self,
        request: StoryGenerationRequest,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> GeneratedStory:
        """
        Generate a whole story in one call, then write any chapters that came back as outlines.
        """
        raw_text = await self._complete(build_story_prompt(request), temperature=0.8, max_tokens=4096)
        story = parse_story_response(raw_text, request, ai_model=self._model)

        if all(chapter.has_content for chapter in story.chapters):
            return story

        chapters = await self._write_outlined_chapters(
            story, request, progress_callback=progress_callback
        )
        story = replace(story, chapters=chapters)
        return replace(story, metadata=story_metadata(story, request))

    async def _write_outlined_chapters(
        self,
        story: GeneratedStory,
        request: StoryGenerationRequest,
        *,
        progress_callback: ProgressCallback | None,
    ) -> tuple[GeneratedChapter, ...]:
        chapters = list(story.chapters)
        pending = [index for index, chapter in enumerate(chapters) if not chapter.has_content]
        total = len(pending)

        for start in range(0, total, self._batch_size):
            batch: Sequence[int] = pending[start : start + self._batch_size]
            end = start + len(batch)
            _notify(progress_callback, "chapters:batch_started", start=start + 1, end=end, total=total)

            results = await asyncio.gather(
                *(self._write_chapter(chapters[index], story, request) for index in batch)
            )
            for index, chapter in zip(batch, results):
                chapters[index] = chapter

            logger.info("Generated chapters %d-%d of %d", start + 1, end, total)
            _notify(progress_callback, "chapters:batch_done", start=start + 1, end=end, total=total)

        return tuple(chapters)

    async def _write_chapter(
        self,
        outline: GeneratedChapter,
        story: GeneratedStory,
        request: StoryGenerationRequest,
    ) -> GeneratedChapter:
        prompt = build_single_chapter_prompt(
            chapter_number=outline.chapter_number,
            chapter_title=outline.title,
            outline=outline.summary or outline.title,
            mood=outline.mood,
            story_description=story.description or story.synopsis,
            request=request,
        )
        text = (await self._complete(prompt, temperature=0.8, max_tokens=2048)).strip()
        return replace(outline, content=text, prompt=prompt.user, word_count=count_words(text))

    async def generate_chapter(self, context: ChapterContext) -> GeneratedChapter:
        raw_text = await self._complete(
            build_chapter_prompt(context), temperature=0.8, max_tokens=2048
        )
        return parse_chapter_response(raw_text, context)

    async def assess_skills(self, text: str, user_id: str) -> SkillAssessment:
        raw_text = await self._complete(
            build_skill_assessment_prompt(text), temperature=0.3, max_tokens=1024
        )
        return parse_skill_assessment(raw_text)

    async def generate_feedback(
        self,
        text: str,
        assessment: SkillAssessment,
        user_id: str,
    ) -> EducationalFeedback:
        raw_text = await self._complete(
            build_feedback_prompt(text, assessment), temperature=0.7, max_tokens=1024
        )
        return parse_feedback_response(raw_text, assessment, user_id)


def _notify(callback: ProgressCallback | None, stage: str, **payload: Any) -> None:
    if callback is not None:
        callback(stage, payload)
