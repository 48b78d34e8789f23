"""
Result cache used by the generation orchestrator.
"""

from __future__ import annotations

import copy
import enum
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from cachetools import TTLCache

from narrative_forge.story_generation.models import ChapterContext, StoryGenerationRequest

logger = logging.getLogger(__name__)

CACHE_SERVICE = "narrative"
NO_CHARACTERS = "no-chars"
NO_WORLD = "no-world"


class CacheStrategy(enum.Enum):
    """``CACHE_FIRST`` reads before generation; ``CACHE_ONLY`` writes after it."""

    CACHE_FIRST = "CACHE_FIRST"
    CACHE_ONLY = "CACHE_ONLY"


@dataclass(frozen=True)
class CacheRequest:
    service: str
    operation: str
    prompt: str
    model: str

    @property
    def store_key(self) -> str:
        return f"{self.service}:{self.operation}:{self.model}:{self.prompt}"


class CacheStore(Protocol):
    """Async key-value store holding JSON-compatible payloads."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...


class InMemoryCacheStore:
    """
    In-process store backed by :class:`cachetools.TTLCache`.

    Values are deep-copied on the way in and out so callers never share state with the cache.
    """

    def __init__(self, *, maxsize: int = 512, ttl: float = 3600.0) -> None:
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = copy.deepcopy(value)

    def clear(self) -> None:
        self._cache.clear()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "errors": self.errors,
            "hit_rate": f"{self.hit_rate:.2f}%",
        }


class CacheManager:
    """
    Executes cache requests against a :class:`CacheStore`.

    Store failures are logged and reported as a miss (reads) or ignored (writes); they
    never interrupt generation.
    """

    def __init__(self, store: CacheStore | None = None) -> None:
        self._store: CacheStore = store or InMemoryCacheStore()
        self.stats = CacheStats()

    @property
    def store(self) -> CacheStore:
        return self._store

    async def execute_request(
        self,
        request: CacheRequest,
        strategy: CacheStrategy,
        payload: Any = None,
    ) -> Any | None:
        """
        Read (``CACHE_FIRST``) or write (``CACHE_ONLY``) the payload for ``request``.

        Returns the cached payload, the written payload, or ``None`` on a miss or failure.
        """
        key = request.store_key
        if strategy is CacheStrategy.CACHE_FIRST:
            return await self._read(key)

        if payload is None:
            raise ValueError("A payload is required to write to the cache.")
        return await self._write(key, payload)

    async def _read(self, key: str) -> Any | None:
        try:
            value = await self._store.get(key)
        except Exception:
            self.stats.errors += 1
            logger.warning("Cache read failed for %s; treating as a miss", key, exc_info=True)
            return None

        if value is None:
            self.stats.misses += 1
            logger.debug("Cache miss for %s", key)
            return None

        self.stats.hits += 1
        logger.info("Cache hit for %s", key)
        return value

    async def _write(self, key: str, payload: Any) -> Any | None:
        try:
            await self._store.set(key, payload)
        except Exception:
            self.stats.errors += 1
            logger.warning("Cache write failed for %s", key, exc_info=True)
            return None

        self.stats.writes += 1
        logger.debug("Cached result for %s", key)
        return payload


def text_hash(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def story_cache_key(request: StoryGenerationRequest) -> str:
    names = ",".join(character.name for character in request.characters) or NO_CHARACTERS
    world = request.world_context.name if request.world_context is not None else NO_WORLD
    elements = [
        request.initial_prompt[:100],
        request.genre,
        request.target_audience,
        request.length or "",
        names,
        world,
    ]
    return "story:" + ":".join(elements)


def chapter_cache_key(context: ChapterContext) -> str:
    return f"chapter:{context.story_id}:{context.current_chapter}:{text_hash(context.narrative[-200:])}"


def assessment_cache_key(text: str, user_id: str) -> str:
    return f"skill-assessment:{user_id}:{text_hash(text)}"


def feedback_cache_key(text: str, user_id: str, level: str) -> str:
    return f"feedback:{user_id}:{text_hash(text)}:{level}"
