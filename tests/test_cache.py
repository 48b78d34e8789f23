import asyncio
from dataclasses import replace

import pytest

from narrative_forge.pipeline import CacheManager, CacheRequest, CacheStrategy, InMemoryCacheStore, story_cache_key
from narrative_forge.pipeline.cache import assessment_cache_key, chapter_cache_key, feedback_cache_key, text_hash
from narrative_forge.story_generation import ChapterContext, StoryCharacter

REQUEST = CacheRequest(service="narrative", operation="generateStory", prompt="story:abc", model="m")


class BrokenStore:
    async def get(self, key):
        raise ConnectionError("store offline")

    async def set(self, key, value):
        raise ConnectionError("store offline")


def test_store_key_joins_request_fields():
    assert REQUEST.store_key == "narrative:generateStory:m:story:abc"


@pytest.mark.asyncio
async def test_write_then_read_round_trips_payload():
    manager = CacheManager(InMemoryCacheStore())
    payload = {"title": "The Lantern Path", "chapters": [{"content": "x"}]}

    written = await manager.execute_request(REQUEST, CacheStrategy.CACHE_ONLY, payload)
    cached = await manager.execute_request(REQUEST, CacheStrategy.CACHE_FIRST)

    assert written == payload
    assert cached == payload
    assert manager.stats.writes == 1
    assert manager.stats.hits == 1


@pytest.mark.asyncio
async def test_cached_values_are_isolated_from_callers():
    manager = CacheManager()
    payload = {"chapters": [{"content": "original"}]}
    await manager.execute_request(REQUEST, CacheStrategy.CACHE_ONLY, payload)

    payload["chapters"][0]["content"] = "mutated"
    first = await manager.execute_request(REQUEST, CacheStrategy.CACHE_FIRST)
    first["chapters"].clear()
    second = await manager.execute_request(REQUEST, CacheStrategy.CACHE_FIRST)

    assert second == {"chapters": [{"content": "original"}]}


@pytest.mark.asyncio
async def test_miss_returns_none_and_counts():
    manager = CacheManager()

    assert await manager.execute_request(REQUEST, CacheStrategy.CACHE_FIRST) is None
    assert manager.stats.misses == 1
    assert manager.stats.hit_rate == 0.0
    assert manager.stats.as_dict()["hit_rate"] == "0.00%"


@pytest.mark.asyncio
async def test_cache_only_requires_payload():
    manager = CacheManager()

    with pytest.raises(ValueError):
        await manager.execute_request(REQUEST, CacheStrategy.CACHE_ONLY)


@pytest.mark.asyncio
async def test_store_failures_are_swallowed_and_counted():
    manager = CacheManager(BrokenStore())

    assert await manager.execute_request(REQUEST, CacheStrategy.CACHE_FIRST) is None
    assert await manager.execute_request(REQUEST, CacheStrategy.CACHE_ONLY, {"a": 1}) is None
    assert manager.stats.errors == 2
    assert manager.stats.misses == 0


def test_in_memory_store_respects_maxsize():
    store = InMemoryCacheStore(maxsize=2, ttl=60)

    async def fill():
        for index in range(3):
            await store.set(f"k{index}", index)

    asyncio.run(fill())

    assert len(store) == 2
    store.clear()
    assert len(store) == 0


def test_story_cache_key_format(story_request):
    assert story_cache_key(story_request) == (
        "story:A brave girl discovers a glowing map:fantasy:child::Aria:Eldoria"
    )


def test_story_cache_key_placeholders_and_prompt_truncation(story_request):
    request = replace(
        story_request,
        initial_prompt="p" * 150,
        length="short",
        characters=(),
        world_context=None,
    )

    assert story_cache_key(request) == "story:" + "p" * 100 + ":fantasy:child:short:no-chars:no-world"


def test_story_cache_key_changes_with_inputs(story_request):
    base = story_cache_key(story_request)

    assert story_cache_key(replace(story_request, genre="mystery")) != base
    assert story_cache_key(replace(story_request, target_audience="teen")) != base
    assert (
        story_cache_key(
            replace(story_request, characters=(StoryCharacter(name="Aria"), StoryCharacter(name="Pip")))
        )
        != base
    )


def test_chapter_cache_key_hashes_recent_narrative():
    older = ChapterContext(story_id="s1", story_title="T", current_chapter=2, narrative="x" * 50 + "y" * 200)
    newer = replace(older, narrative="z" * 50 + "y" * 200)
    different = replace(older, narrative="y" * 199 + "q")

    assert chapter_cache_key(older) == f"chapter:s1:2:{text_hash('y' * 200)}"
    assert chapter_cache_key(older) == chapter_cache_key(newer)
    assert chapter_cache_key(older) != chapter_cache_key(different)


def test_assessment_and_feedback_keys_include_user_and_level():
    assert assessment_cache_key("text", "u1").startswith("skill-assessment:u1:")
    assert feedback_cache_key("text", "u1", "advanced").endswith(":advanced")
    assert feedback_cache_key("text", "u1", "advanced") != feedback_cache_key("text", "u2", "advanced")
    assert len(text_hash("anything")) == 16
