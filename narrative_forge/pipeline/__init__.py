"""
Cache-aware, tiered orchestration of narrative generation.
"""

from .cache import (
    CacheManager,
    CacheRequest,
    CacheStats,
    CacheStore,
    CacheStrategy,
    InMemoryCacheStore,
    story_cache_key,
)
from .local import LocalNarrativeGenerator
from .orchestrator import NarrativeOrchestrator, build_orchestrator

__all__ = [
    "CacheManager",
    "CacheRequest",
    "CacheStats",
    "CacheStore",
    "CacheStrategy",
    "InMemoryCacheStore",
    "LocalNarrativeGenerator",
    "NarrativeOrchestrator",
    "build_orchestrator",
    "story_cache_key",
]
