"""
Tiered narrative generation: cache, then the remote Cloud Function, then the local model.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import httpx

from narrative_forge.ai_services.client import AIServicesClient
from narrative_forge.common import CompletionCallable, GenerationFailedError, ServicesConfig, TierFailure
from narrative_forge.common.config import DEFAULT_LOCAL_MODEL, ExecutionContext
from narrative_forge.common.errors import ErrorCode, require_text
from narrative_forge.story_generation.defaults import apply_audience_defaults
from narrative_forge.story_generation.models import (
    ChapterContext,
    EducationalFeedback,
    GeneratedChapter,
    GeneratedStory,
    SkillAssessment,
    StoryGenerationRequest,
)

from .cache import (
    CACHE_SERVICE,
    CacheManager,
    CacheRequest,
    CacheStore,
    CacheStrategy,
    InMemoryCacheStore,
    assessment_cache_key,
    chapter_cache_key,
    feedback_cache_key,
    story_cache_key,
)
from .local import LocalNarrativeGenerator, ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIER_REMOTE = "remote"
TIER_LOCAL = "local"


class NarrativeOrchestrator:
    """
    Coordinates the cache and the generation tiers for every narrative capability.

    Parameters
    ----------
    remote:
        Client bound to the remote narrative Cloud Function, or ``None`` when not configured.
    local:
        In-process generator, or ``None`` when the deployment has no local capability.
    cache:
        Cache manager; defaults to an in-memory TTL store.
    execution_context:
        The local tier is only used in a ``"server"`` context.
    cache_model:
        Model name used to namespace cache entries.
    """

    def __init__(
        self,
        *,
        remote: AIServicesClient | None = None,
        local: LocalNarrativeGenerator | None = None,
        cache: CacheManager | None = None,
        execution_context: ExecutionContext = "server",
        cache_model: str = DEFAULT_LOCAL_MODEL,
    ) -> None:
        self._remote = remote
        self._local = local
        self._cache = cache or CacheManager()
        self._execution_context = execution_context
        self._cache_model = cache_model

    @classmethod
    def from_config(
        cls,
        config: ServicesConfig,
        *,
        completion_fn: CompletionCallable | None = None,
        cache_store: CacheStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "NarrativeOrchestrator":
        remote = (
            AIServicesClient.for_narrative(config, client=http_client)
            if config.remote_enabled
            else None
        )
        local = None
        if config.local_enabled and config.is_server_side:
            local = LocalNarrativeGenerator(
                model=config.local_model,
                api_key=config.local_api_key,
                completion_fn=completion_fn,
                timeout=config.timeout,
            )
        store = cache_store or InMemoryCacheStore(
            maxsize=config.cache_maxsize, ttl=config.cache_ttl
        )
        return cls(
            remote=remote,
            local=local,
            cache=CacheManager(store),
            execution_context=config.execution_context,
            cache_model=config.local_model,
        )

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def local_available(self) -> bool:
        return self._local is not None and self._execution_context == "server"

    @property
    def remote_available(self) -> bool:
        return self._remote is not None

    async def __aenter__(self) -> "NarrativeOrchestrator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._remote is not None:
            await self._remote.aclose()

    async def generate_story(
        self,
        request: StoryGenerationRequest,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> GeneratedStory:
        """
        Generate a complete story after filling audience defaults and validating the request.
        """
        started = time.perf_counter()
        request = apply_audience_defaults(request).validate()
        cache_request = self._cache_request("generateStory", story_cache_key(request))

        _notify(progress_callback, "cache:lookup", operation="generateStory")
        cached = await self._cached(cache_request, GeneratedStory.from_mapping)
        if cached is not None:
            _notify(progress_callback, "cache:hit", operation="generateStory")
            return cached.with_processing_time(_elapsed_ms(started))

        remote = self._remote
        local = self._local
        story = await self._run_tiers(
            "generate story",
            "story generation",
            remote=(lambda: remote.generate_story(request)) if remote is not None else None,
            local=(
                (lambda: local.generate_story(request, progress_callback=progress_callback))
                if local is not None
                else None
            ),
            progress_callback=progress_callback,
        )
        story = story.with_processing_time(_elapsed_ms(started))
        await self._cache.execute_request(cache_request, CacheStrategy.CACHE_ONLY, story.as_dict())

        logger.info(
            "Story %r ready: %d chapters, %d words in %dms",
            story.title,
            len(story.chapters),
            story.metadata.word_count,
            story.processing_time,
        )
        _notify(
            progress_callback,
            "story:complete",
            chapters=len(story.chapters),
            word_count=story.metadata.word_count,
        )
        return story

    async def generate_chapter(
        self,
        context: ChapterContext,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> GeneratedChapter:
        context.validate()
        cache_request = self._cache_request("generateChapter", chapter_cache_key(context))

        cached = await self._cached(cache_request, GeneratedChapter.from_mapping)
        if cached is not None:
            return cached

        remote = self._remote
        local = self._local
        chapter = await self._run_tiers(
            "generate chapter",
            "chapter generation",
            remote=(lambda: remote.generate_chapter(context)) if remote is not None else None,
            local=(lambda: local.generate_chapter(context)) if local is not None else None,
            progress_callback=progress_callback,
        )
        await self._cache.execute_request(cache_request, CacheStrategy.CACHE_ONLY, chapter.as_dict())
        return chapter

    async def assess_writing_skills(
        self,
        text: str,
        user_id: str,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> SkillAssessment:
        text = require_text(text, field="text", code=ErrorCode.INVALID_TEXT)
        user_id = require_text(user_id, field="user id")
        cache_request = self._cache_request("assessSkills", assessment_cache_key(text, user_id))

        cached = await self._cached(cache_request, SkillAssessment.from_mapping)
        if cached is not None:
            return cached

        remote = self._remote
        local = self._local
        assessment = await self._run_tiers(
            "assess writing skills",
            "skill assessment",
            remote=(lambda: remote.assess_skills(text, user_id)) if remote is not None else None,
            local=(lambda: local.assess_skills(text, user_id)) if local is not None else None,
            progress_callback=progress_callback,
        )
        await self._cache.execute_request(
            cache_request, CacheStrategy.CACHE_ONLY, assessment.as_dict()
        )
        return assessment

    async def generate_educational_feedback(
        self,
        text: str,
        assessment: SkillAssessment,
        user_id: str,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> EducationalFeedback:
        text = require_text(text, field="text", code=ErrorCode.INVALID_TEXT)
        user_id = require_text(user_id, field="user id")
        cache_request = self._cache_request(
            "generateFeedback", feedback_cache_key(text, user_id, assessment.overall.level)
        )

        cached = await self._cached(cache_request, EducationalFeedback.from_mapping)
        if cached is not None:
            return cached

        remote = self._remote
        local = self._local
        feedback = await self._run_tiers(
            "generate educational feedback",
            "educational feedback",
            remote=(
                (lambda: remote.generate_feedback(text, assessment, user_id))
                if remote is not None
                else None
            ),
            local=(
                (lambda: local.generate_feedback(text, assessment, user_id))
                if local is not None
                else None
            ),
            progress_callback=progress_callback,
        )
        await self._cache.execute_request(cache_request, CacheStrategy.CACHE_ONLY, feedback.as_dict())
        return feedback

    def _cache_request(self, operation: str, key: str) -> CacheRequest:
        return CacheRequest(
            service=CACHE_SERVICE,
            operation=operation,
            prompt=key,
            model=self._cache_model,
        )

    async def _cached(
        self,
        cache_request: CacheRequest,
        factory: Callable[[Mapping[str, Any]], T],
    ) -> T | None:
        payload = await self._cache.execute_request(cache_request, CacheStrategy.CACHE_FIRST)
        if payload is None:
            return None
        if not isinstance(payload, Mapping):
            logger.warning("Ignoring cached %s entry that is not a mapping", cache_request.operation)
            return None
        try:
            return factory(payload)
        except (TypeError, ValueError):
            logger.warning(
                "Ignoring unreadable cached %s entry", cache_request.operation, exc_info=True
            )
            return None

    async def _run_tiers(
        self,
        action: str,
        capability: str,
        *,
        remote: Callable[[], Awaitable[T]] | None,
        local: Callable[[], Awaitable[T]] | None,
        progress_callback: ProgressCallback | None,
    ) -> T:
        """
        Try each available tier in order and return the first success.

        Raises
        ------
        GenerationFailedError
            When no tier is available or every available tier failed. The error keeps
            the ordered list of failed tiers.
        """
        tiers: list[tuple[str, Callable[[], Awaitable[T]]]] = []
        if remote is not None:
            tiers.append((TIER_REMOTE, remote))
        if local is not None and self._execution_context == "server":
            tiers.append((TIER_LOCAL, local))

        attempts: list[TierFailure] = []
        for tier, call in tiers:
            _notify(progress_callback, "tier:attempt", tier=tier, capability=capability)
            try:
                result = await call()
            except Exception as exc:
                attempts.append(TierFailure(tier=tier, message=str(exc), error=exc))
                logger.warning("%s via %s tier failed: %s", capability, tier, exc, exc_info=True)
                _notify(progress_callback, "tier:failed", tier=tier, capability=capability, error=str(exc))
                continue

            _notify(progress_callback, "tier:succeeded", tier=tier, capability=capability)
            return result

        if not attempts:
            raise GenerationFailedError(
                f"Failed to {action}: No AI service available for {capability}"
            )

        last = attempts[-1]
        error = GenerationFailedError(
            f"Failed to {action}: {last.message}",
            attempts=attempts,
            cause=last.error,
        )
        logger.error("%s failed after %s", capability, error.describe_attempts())
        raise error


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _notify(callback: ProgressCallback | None, stage: str, **payload: Any) -> None:
    if callback is not None:
        callback(stage, payload)


def build_orchestrator(
    config: ServicesConfig | None = None,
    **kwargs: Any,
) -> NarrativeOrchestrator:
    """Build an orchestrator from ``config`` or from the environment."""
    return NarrativeOrchestrator.from_config(config or ServicesConfig.from_env(), **kwargs)
