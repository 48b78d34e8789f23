"""
Consolidated client for every AI services capability.

Each operation validates its inputs before any network call, sends the request either to
the capability's dedicated endpoint or through the multiplexed ``/aiServices`` endpoint,
and unwraps the envelope payload into a typed record.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

import httpx

from narrative_forge.common.config import RouteMode, ServicesConfig
from narrative_forge.common.errors import (
    ErrorCode,
    ServiceError,
    optional_choice,
    require_choice,
    require_text,
)
from narrative_forge.story_generation.models import (
    ChapterContext,
    EducationalFeedback,
    GeneratedChapter,
    GeneratedStory,
    SkillAssessment,
    StoryGenerationRequest,
)

from .models import (
    LANGUAGES,
    LOCATION_TYPES,
    MAP_SIZES,
    MAP_TYPES,
    MISSION_DIFFICULTIES,
    MISSION_TYPES,
    OBJECT_RARITIES,
    OBJECT_TYPES,
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
    is_valid_audio_data_url,
)
from .transport import AIServicesTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_ENDPOINT = "/aiServices"
HEALTH_ENDPOINT = "/healthCheck"


@dataclass(frozen=True)
class CapabilityRoute:
    """Where a capability lives on the backend, in both request shapes."""

    path: str
    service: str
    operation: str
    label: str


CAPABILITIES: dict[str, CapabilityRoute] = {
    "character": CapabilityRoute("/generateCharacter", "character", "create", "character"),
    "voice": CapabilityRoute("/generateVoice", "voice", "generate", "audio"),
    "world_history": CapabilityRoute(
        "/generateWorldHistory", "worldbuilding", "generateWorldHistory", "world history"
    ),
    "monster": CapabilityRoute("/generateMonster", "worldbuilding", "generateMonster", "monster"),
    "mission": CapabilityRoute("/generateMission", "worldbuilding", "generateMission", "mission"),
    "npc": CapabilityRoute("/generateNPC", "worldbuilding", "generateNPC", "NPC"),
    "object": CapabilityRoute("/generateObject", "worldbuilding", "generateObject", "object"),
    "location": CapabilityRoute(
        "/generateLocation", "worldbuilding", "generateLocation", "location"
    ),
    "map": CapabilityRoute("/generateMap", "worldbuilding", "generateMap", "map"),
    "story": CapabilityRoute("/generateStory", "narrative", "generateStory", "story"),
    "chapter": CapabilityRoute("/generateChapter", "narrative", "generateChapter", "chapter"),
    "skills": CapabilityRoute("/assessSkills", "narrative", "assessSkills", "assessment"),
    "feedback": CapabilityRoute(
        "/generateFeedback", "narrative", "generateFeedback", "feedback"
    ),
}

_AUDIO_KEYS = ("audioContent", "audio", "dataUrl", "data")


def _compact(body: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in body.items() if value is not None}


def _decode_json(data: Any, label: str) -> Any:
    """Second-stage parse for payloads the backend sends as JSON-encoded strings."""
    if not isinstance(data, str):
        return data
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise ServiceError(
            f"Failed to parse {label} data",
            code=ErrorCode.PARSE_ERROR,
            cause=exc,
        ) from exc


def _build(label: str, factory: Callable[[Mapping[str, Any]], T], data: Any) -> T:
    payload = _decode_json(data, label)
    if not isinstance(payload, Mapping):
        raise ServiceError(
            f"Failed to parse {label} data",
            code=ErrorCode.PARSE_ERROR,
            cause=TypeError(f"expected a JSON object, got {type(payload).__name__}"),
        )
    try:
        return factory(payload)
    except (TypeError, ValueError) as exc:
        raise ServiceError(
            f"Failed to parse {label} data",
            code=ErrorCode.PARSE_ERROR,
            cause=exc,
        ) from exc


class AIServicesClient:
    """
    One client value exposing every capability over a single transport.

    Parameters
    ----------
    transport:
        The :class:`AIServicesTransport` bound to the backend base URL.
    route_mode:
        Default request shape: ``"dedicated"`` (one path per capability) or ``"generic"``
        (everything through ``/aiServices``). Every operation accepts ``generic=`` to
        override it per call.
    """

    def __init__(
        self,
        transport: AIServicesTransport,
        *,
        route_mode: RouteMode = "dedicated",
    ) -> None:
        if route_mode not in ("dedicated", "generic"):
            raise ValueError(f"Unknown route mode {route_mode!r}")
        self._transport = transport
        self._route_mode = route_mode

    @classmethod
    def from_config(
        cls,
        config: ServicesConfig,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "AIServicesClient":
        transport = AIServicesTransport(
            base_url or config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base,
            backoff_cap=config.backoff_cap,
            client=client,
        )
        return cls(transport, route_mode=config.route_mode)

    @classmethod
    def for_narrative(
        cls,
        config: ServicesConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> "AIServicesClient":
        """Client bound to the remote narrative Cloud Function."""
        if not config.narrative_function_url:
            raise ValueError("No narrative function URL is configured.")
        return cls.from_config(config, base_url=config.narrative_function_url, client=client)

    @property
    def base_url(self) -> str:
        return self._transport.base_url

    @property
    def route_mode(self) -> RouteMode:
        return self._route_mode

    async def __aenter__(self) -> "AIServicesClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _use_generic(self, generic: bool | None) -> bool:
        if generic is None:
            return self._route_mode == "generic"
        return generic

    async def _call(
        self,
        capability: str,
        body: Mapping[str, Any],
        *,
        generic: bool | None,
    ) -> Any:
        route = CAPABILITIES[capability]
        if self._use_generic(generic):
            envelope = await self._transport.request(
                GENERIC_ENDPOINT,
                body={"service": route.service, "operation": route.operation, "data": dict(body)},
            )
        else:
            envelope = await self._transport.request(route.path, body=body)

        if not envelope.has_data:
            raise ServiceError(f"No {route.label} data received", code=ErrorCode.NO_DATA)
        return envelope.data

    async def check_services_health(self) -> HealthStatus:
        envelope = await self._transport.request(HEALTH_ENDPOINT, method="GET")
        if not envelope.has_data:
            raise ServiceError("No health data received", code=ErrorCode.NO_DATA)

        health = _build("health", HealthStatus.from_mapping, envelope.data)
        if not health.is_healthy:
            raise ServiceError(
                f"AI Services are {health.status}",
                code=ErrorCode.SERVICE_UNHEALTHY,
                status_code=503,
            )
        return health

    async def generate_character(
        self,
        prompt: str,
        *,
        cached: bool | None = None,
        generic: bool | None = None,
    ) -> GeneratedCharacter:
        prompt = require_text(prompt, field="prompt", code=ErrorCode.INVALID_PROMPT)
        data = await self._call(
            "character", _compact({"prompt": prompt, "cached": cached}), generic=generic
        )

        parsed = _decode_json(data, "character")
        if isinstance(parsed, Mapping) and isinstance(parsed.get("personaje_creado"), Mapping):
            parsed = parsed["personaje_creado"]
        return _build("character", GeneratedCharacter.from_mapping, parsed)

    async def generate_voice(
        self,
        text: str,
        voice_config: VoiceConfig | None = None,
        *,
        generic: bool | None = None,
    ) -> str:
        """
        Convert text to speech and return the ``data:audio/<type>;base64,...`` URL.
        """
        text = require_text(text, field="text", code=ErrorCode.INVALID_TEXT)
        body: dict[str, Any] = {"text": text}
        if voice_config is not None:
            body["voiceConfig"] = voice_config.as_dict()
        data = await self._call("voice", body, generic=generic)

        if isinstance(data, str) and data.lstrip().startswith(("{", '"')):
            data = _decode_json(data, "audio")
        if isinstance(data, Mapping):
            data = next((data[key] for key in _AUDIO_KEYS if isinstance(data.get(key), str)), None)

        if not isinstance(data, str) or not is_valid_audio_data_url(data):
            raise ServiceError("Invalid audio data format", code=ErrorCode.INVALID_AUDIO_FORMAT)
        return data

    async def generate_world_history(
        self,
        world_name: str,
        prompt: str,
        *,
        language: str | None = None,
        generic: bool | None = None,
    ) -> WorldHistory:
        body = {
            "worldName": require_text(world_name, field="world name"),
            "prompt": require_text(prompt, field="prompt", code=ErrorCode.INVALID_PROMPT),
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("world_history", _compact(body), generic=generic)
        return _build("world history", WorldHistory.from_mapping, data)

    async def generate_monster(
        self,
        creature_name: str,
        creature_type: str,
        *,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedMonster:
        body = {
            "creatureName": require_text(creature_name, field="creature name"),
            "type": require_text(creature_type, field="creature type"),
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("monster", _compact(body), generic=generic)
        return _build("monster", GeneratedMonster.from_mapping, data)

    async def generate_mission(
        self,
        title: str,
        mission_type: str,
        difficulty: str,
        setting: str,
        *,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedMission:
        body = {
            "title": require_text(title, field="title"),
            "type": require_choice(mission_type, field="mission type", choices=MISSION_TYPES),
            "difficulty": require_choice(
                difficulty, field="difficulty", choices=MISSION_DIFFICULTIES
            ),
            "setting": require_text(setting, field="setting"),
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("mission", _compact(body), generic=generic)
        return _build("mission", GeneratedMission.from_mapping, data)

    async def generate_npc(
        self,
        race: str,
        occupation: str,
        personality: str,
        setting: str,
        *,
        name: str | None = None,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedNPC:
        body = {
            "name": name.strip() if name and name.strip() else None,
            "race": require_text(race, field="race"),
            "occupation": require_text(occupation, field="occupation"),
            "personality": require_text(personality, field="personality"),
            "setting": require_text(setting, field="setting"),
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("npc", _compact(body), generic=generic)
        return _build("NPC", GeneratedNPC.from_mapping, data)

    async def generate_object(
        self,
        object_type: str,
        rarity: str,
        setting: str,
        *,
        theme: str | None = None,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedObject:
        body = {
            "objectType": require_choice(object_type, field="object type", choices=OBJECT_TYPES),
            "rarity": require_choice(rarity, field="rarity", choices=OBJECT_RARITIES),
            "setting": require_text(setting, field="setting"),
            "theme": theme,
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("object", _compact(body), generic=generic)
        return _build("object", GeneratedObject.from_mapping, data)

    async def generate_location(
        self,
        location_name: str,
        location_type: str,
        setting: str,
        *,
        mood: str | None = None,
        climate: str | None = None,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedLocation:
        body = {
            "locationName": require_text(location_name, field="location name"),
            "locationType": require_choice(
                location_type, field="location type", choices=LOCATION_TYPES
            ),
            "setting": require_text(setting, field="setting"),
            "mood": mood,
            "climate": climate,
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("location", _compact(body), generic=generic)
        return _build("location", GeneratedLocation.from_mapping, data)

    async def generate_map(
        self,
        map_name: str,
        map_type: str,
        size: str,
        *,
        biome: str | None = None,
        theme: str | None = None,
        language: str | None = None,
        generic: bool | None = None,
    ) -> GeneratedMap:
        body = {
            "mapName": require_text(map_name, field="map name"),
            "mapType": require_choice(map_type, field="map type", choices=MAP_TYPES),
            "size": require_choice(size, field="map size", choices=MAP_SIZES),
            "biome": biome,
            "theme": theme,
            "language": optional_choice(language, field="language", choices=LANGUAGES),
        }
        data = await self._call("map", _compact(body), generic=generic)
        return _build("map", GeneratedMap.from_mapping, data)

    async def generate_story(
        self,
        request: StoryGenerationRequest,
        *,
        generic: bool | None = None,
    ) -> GeneratedStory:
        request.validate()
        data = await self._call("story", request.as_dict(), generic=generic)
        story = _build(
            "story",
            lambda payload: GeneratedStory.from_mapping(
                payload, request=request, ai_model="ai-services"
            ),
            data,
        )
        if not any(chapter.has_content for chapter in story.chapters):
            raise ServiceError(
                "Failed to parse story data",
                code=ErrorCode.PARSE_ERROR,
                cause=ValueError("story payload has no chapter content"),
            )
        logger.info("Remote story %r generated with %d chapters", story.title, len(story.chapters))
        return story

    async def generate_chapter(
        self,
        context: ChapterContext,
        *,
        generic: bool | None = None,
    ) -> GeneratedChapter:
        context.validate()
        data = await self._call("chapter", {"context": context.as_dict()}, generic=generic)
        return _build(
            "chapter",
            lambda payload: GeneratedChapter.from_mapping(
                payload, default_number=context.next_chapter_number
            ),
            data,
        )

    async def assess_skills(
        self,
        text: str,
        user_id: str,
        *,
        generic: bool | None = None,
    ) -> SkillAssessment:
        body = {
            "text": require_text(text, field="text", code=ErrorCode.INVALID_TEXT),
            "userId": require_text(user_id, field="user id"),
        }
        data = await self._call("skills", body, generic=generic)
        return _build("assessment", SkillAssessment.from_mapping, data)

    async def generate_feedback(
        self,
        text: str,
        assessment: SkillAssessment,
        user_id: str,
        *,
        generic: bool | None = None,
    ) -> EducationalFeedback:
        user_id = require_text(user_id, field="user id")
        body = {
            "text": require_text(text, field="text", code=ErrorCode.INVALID_TEXT),
            "skillAssessment": assessment.as_input_dict(),
            "userId": user_id,
        }
        data = await self._call("feedback", body, generic=generic)
        return _build(
            "feedback",
            lambda payload: EducationalFeedback.from_mapping(
                payload, defaults=EducationalFeedback(user_id=user_id)
            ),
            data,
        )
