"""
Narrative Forge package exposing the AI services client, story generation, and orchestration.
"""

from .ai_services import AIServicesClient, AIServicesTransport
from .common import GenerationFailedError, ServiceError, ServicesConfig
from .pipeline import (
    CacheManager,
    InMemoryCacheStore,
    LocalNarrativeGenerator,
    NarrativeOrchestrator,
    build_orchestrator,
)
from .story_generation import GeneratedStory, StoryGenerationRequest

__all__ = [
    "AIServicesClient",
    "AIServicesTransport",
    "CacheManager",
    "GeneratedStory",
    "GenerationFailedError",
    "InMemoryCacheStore",
    "LocalNarrativeGenerator",
    "NarrativeOrchestrator",
    "ServiceError",
    "ServicesConfig",
    "StoryGenerationRequest",
    "build_orchestrator",
]
