"""
HTTP access to the AI services backend.
"""

from .client import CAPABILITIES, AIServicesClient, CapabilityRoute
from .envelope import ServiceResponse
from .models import (
    GeneratedCharacter,
    GeneratedLocation,
    GeneratedMap,
    GeneratedMission,
    GeneratedMonster,
    GeneratedNPC,
    GeneratedObject,
    HealthStatus,
    VoiceConfig,
    WorldHistory,
    extract_mime_type,
    is_valid_audio_data_url,
)
from .transport import AIServicesTransport

__all__ = [
    "AIServicesClient",
    "AIServicesTransport",
    "CAPABILITIES",
    "CapabilityRoute",
    "GeneratedCharacter",
    "GeneratedLocation",
    "GeneratedMap",
    "GeneratedMission",
    "GeneratedMonster",
    "GeneratedNPC",
    "GeneratedObject",
    "HealthStatus",
    "ServiceResponse",
    "VoiceConfig",
    "WorldHistory",
    "extract_mime_type",
    "is_valid_audio_data_url",
]
