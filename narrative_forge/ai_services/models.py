"""
Typed results of the AI services capabilities that are not part of the narrative flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from narrative_forge.common.coerce import (
    as_mapping,
    coerce_float,
    coerce_int,
    coerce_optional_str,
    coerce_str,
    mapping_list,
    string_list,
)
from narrative_forge.common.errors import optional_choice

HEALTH_STATUSES = ("healthy", "unhealthy", "degraded")
VOICE_CHARACTERS = ("narrator", "merchant", "sage", "mysterious", "companion")
VOICE_EMOTIONS = ("neutral", "dramatic", "mysterious", "excited", "somber", "thoughtful")
LANGUAGES = ("ES", "EN")
MISSION_TYPES = ("main", "side", "fetch", "escort", "combat", "puzzle")
MISSION_DIFFICULTIES = ("easy", "medium", "hard", "epic")
OBJECT_TYPES = ("weapon", "armor", "tool", "artifact", "consumable", "treasure")
OBJECT_RARITIES = ("common", "uncommon", "rare", "epic", "legendary")
LOCATION_TYPES = ("city", "village", "dungeon", "wilderness", "landmark", "building")
MAP_TYPES = ("world", "continent", "region", "city", "dungeon", "building")
MAP_SIZES = ("small", "medium", "large", "massive")

AUDIO_DATA_URL_PATTERN = re.compile(r"^data:audio/[a-zA-Z0-9]+;base64,")
_MIME_TYPE_PATTERN = re.compile(r"^data:([^;]+);")


def is_valid_audio_data_url(data_url: str) -> bool:
    return bool(AUDIO_DATA_URL_PATTERN.match(data_url))


def extract_mime_type(data_url: str) -> str | None:
    match = _MIME_TYPE_PATTERN.match(data_url)
    return match.group(1) if match else None


@dataclass(frozen=True)
class HealthStatus:
    status: str
    timestamp: str = ""
    version: str = ""
    services: tuple[str, ...] = ()
    caching: str = "disabled"

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HealthStatus":
        status = coerce_str(data.get("status"), "unhealthy").lower()
        if status not in HEALTH_STATUSES:
            raise ValueError(f"Unknown health status {status!r}")
        return cls(
            status=status,
            timestamp=coerce_str(data.get("timestamp")),
            version=coerce_str(data.get("version")),
            services=string_list(data.get("services")),
            caching=coerce_str(data.get("caching"), "disabled"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "version": self.version,
            "services": list(self.services),
            "caching": self.caching,
        }


@dataclass(frozen=True)
class VoiceConfig:
    """Text-to-speech options; every field is optional."""

    character_id: str | None = None
    emotion: str | None = None
    custom_ssml: str | None = None
    language_code: str | None = None
    voice_name: str | None = None

    def __post_init__(self) -> None:
        optional_choice(self.character_id, field="voice character", choices=VOICE_CHARACTERS)
        optional_choice(self.emotion, field="voice emotion", choices=VOICE_EMOTIONS)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VoiceConfig":
        return cls(
            character_id=coerce_optional_str(data.get("characterId")),
            emotion=coerce_optional_str(data.get("emotion")),
            custom_ssml=coerce_optional_str(data.get("customSSML")),
            language_code=coerce_optional_str(data.get("languageCode")),
            voice_name=coerce_optional_str(data.get("voiceName")),
        )

    def as_dict(self) -> dict[str, Any]:
        payload = {
            "characterId": self.character_id,
            "emotion": self.emotion,
            "customSSML": self.custom_ssml,
            "languageCode": self.language_code,
            "voiceName": self.voice_name,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class CharacterAppearance:
    height: str = ""
    build: str = ""
    hair: str = ""
    eyes: str = ""
    distinctive_features: tuple[str, ...] = ()


@dataclass(frozen=True)
class CharacterPersonality:
    traits: tuple[str, ...] = ()
    ideals: tuple[str, ...] = ()
    bonds: tuple[str, ...] = ()
    flaws: tuple[str, ...] = ()


@dataclass(frozen=True)
class CharacterHistory:
    origin: str = ""
    key_events: tuple[str, ...] = ()
    current_goals: tuple[str, ...] = ()


@dataclass(frozen=True)
class CharacterAbilities:
    combat: tuple[str, ...] = ()
    social: tuple[str, ...] = ()
    knowledge: tuple[str, ...] = ()
    special: tuple[str, ...] = ()


@dataclass(frozen=True)
class CharacterEquipment:
    weapons: tuple[str, ...] = ()
    armor: str = ""
    special_items: tuple[str, ...] = ()


@dataclass(frozen=True)
class CharacterStats:
    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    wisdom: int = 10
    charisma: int = 10


@dataclass(frozen=True)
class GeneratedCharacter:
    """
    A generated RPG character.

    The backend answers with Spanish keys (``nombre``, ``raza``, ``clase`` ...); they are
    mapped once here and :meth:`as_dict` restores the backend shape.
    """

    name: str
    race: str = ""
    character_class: str = ""
    age: int = 0
    motivations: tuple[str, ...] = ()
    appearance: CharacterAppearance = field(default_factory=CharacterAppearance)
    personality: CharacterPersonality = field(default_factory=CharacterPersonality)
    history: CharacterHistory = field(default_factory=CharacterHistory)
    abilities: CharacterAbilities = field(default_factory=CharacterAbilities)
    equipment: CharacterEquipment = field(default_factory=CharacterEquipment)
    stats: CharacterStats = field(default_factory=CharacterStats)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedCharacter":
        name = coerce_optional_str(data.get("nombre"))
        if not name:
            raise ValueError("Character payload must include a non-empty 'nombre'.")

        appearance = as_mapping(data.get("apariencia"))
        personality = as_mapping(data.get("personalidad"))
        history = as_mapping(data.get("historia"))
        abilities = as_mapping(data.get("habilidades"))
        equipment = as_mapping(data.get("equipo"))
        stats = as_mapping(data.get("estadisticas"))

        return cls(
            name=name,
            race=coerce_str(data.get("raza")),
            character_class=coerce_str(data.get("clase")),
            age=coerce_int(data.get("edad"), 0),
            motivations=string_list(data.get("motivaciones")),
            appearance=CharacterAppearance(
                height=coerce_str(appearance.get("altura")),
                build=coerce_str(appearance.get("constitucion")),
                hair=coerce_str(appearance.get("cabello")),
                eyes=coerce_str(appearance.get("ojos")),
                distinctive_features=string_list(appearance.get("rasgos_distintivos")),
            ),
            personality=CharacterPersonality(
                traits=string_list(personality.get("rasgos")),
                ideals=string_list(personality.get("ideales")),
                bonds=string_list(personality.get("vinculos")),
                flaws=string_list(personality.get("defectos")),
            ),
            history=CharacterHistory(
                origin=coerce_str(history.get("origen")),
                key_events=string_list(history.get("eventos_importantes")),
                current_goals=string_list(history.get("objetivos_actuales")),
            ),
            abilities=CharacterAbilities(
                combat=string_list(abilities.get("combate")),
                social=string_list(abilities.get("sociales")),
                knowledge=string_list(abilities.get("conocimientos")),
                special=string_list(abilities.get("especiales")),
            ),
            equipment=CharacterEquipment(
                weapons=string_list(equipment.get("armas")),
                armor=coerce_str(equipment.get("armadura")),
                special_items=string_list(equipment.get("objetos_especiales")),
            ),
            stats=CharacterStats(
                strength=coerce_int(stats.get("fuerza"), 10),
                dexterity=coerce_int(stats.get("destreza"), 10),
                constitution=coerce_int(stats.get("constitucion"), 10),
                intelligence=coerce_int(stats.get("inteligencia"), 10),
                wisdom=coerce_int(stats.get("sabiduria"), 10),
                charisma=coerce_int(stats.get("carisma"), 10),
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "nombre": self.name,
            "raza": self.race,
            "clase": self.character_class,
            "edad": self.age,
            "motivaciones": list(self.motivations),
            "apariencia": {
                "altura": self.appearance.height,
                "constitucion": self.appearance.build,
                "cabello": self.appearance.hair,
                "ojos": self.appearance.eyes,
                "rasgos_distintivos": list(self.appearance.distinctive_features),
            },
            "personalidad": {
                "rasgos": list(self.personality.traits),
                "ideales": list(self.personality.ideals),
                "vinculos": list(self.personality.bonds),
                "defectos": list(self.personality.flaws),
            },
            "historia": {
                "origen": self.history.origin,
                "eventos_importantes": list(self.history.key_events),
                "objetivos_actuales": list(self.history.current_goals),
            },
            "habilidades": {
                "combate": list(self.abilities.combat),
                "sociales": list(self.abilities.social),
                "conocimientos": list(self.abilities.knowledge),
                "especiales": list(self.abilities.special),
            },
            "equipo": {
                "armas": list(self.equipment.weapons),
                "armadura": self.equipment.armor,
                "objetos_especiales": list(self.equipment.special_items),
            },
            "estadisticas": {
                "fuerza": self.stats.strength,
                "destreza": self.stats.dexterity,
                "constitucion": self.stats.constitution,
                "inteligencia": self.stats.intelligence,
                "sabiduria": self.stats.wisdom,
                "carisma": self.stats.charisma,
            },
        }


def _required_name(data: Mapping[str, Any], key: str, label: str) -> str:
    value = coerce_optional_str(data.get(key))
    if not value:
        raise ValueError(f"{label} payload must include a non-empty '{key}'.")
    return value


@dataclass(frozen=True)
class WorldHistory:
    world_name: str
    continents: tuple[dict[str, Any], ...] = ()
    climate_zones: tuple[dict[str, Any], ...] = ()
    cultures: tuple[dict[str, Any], ...] = ()
    history_highlights: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WorldHistory":
        geography = as_mapping(data.get("geography"))
        return cls(
            world_name=_required_name(data, "worldName", "World history"),
            continents=mapping_list(geography.get("continents")),
            climate_zones=mapping_list(geography.get("climateZones")),
            cultures=mapping_list(data.get("cultures")),
            history_highlights=mapping_list(data.get("historyHighlights")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "worldName": self.world_name,
            "geography": {
                "continents": [dict(item) for item in self.continents],
                "climateZones": [dict(item) for item in self.climate_zones],
            },
            "cultures": [dict(item) for item in self.cultures],
            "historyHighlights": [dict(item) for item in self.history_highlights],
        }


@dataclass(frozen=True)
class GeneratedMonster:
    creature_name: str
    type: str = ""
    description: str = ""
    abilities: tuple[dict[str, Any], ...] = ()
    habitat: str = ""
    image_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedMonster":
        return cls(
            creature_name=_required_name(data, "creatureName", "Monster"),
            type=coerce_str(data.get("type")),
            description=coerce_str(data.get("description")),
            abilities=mapping_list(data.get("abilities")),
            habitat=coerce_str(data.get("habitat")),
            image_url=coerce_optional_str(data.get("imageUrl")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "creatureName": self.creature_name,
            "type": self.type,
            "description": self.description,
            "abilities": [dict(item) for item in self.abilities],
            "habitat": self.habitat,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class GeneratedMission:
    title: str
    type: str = ""
    difficulty: str = ""
    description: str = ""
    objectives: tuple[dict[str, Any], ...] = ()
    rewards: tuple[dict[str, Any], ...] = ()
    npcs_involved: tuple[dict[str, Any], ...] = ()
    estimated_duration: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedMission":
        return cls(
            title=_required_name(data, "title", "Mission"),
            type=coerce_str(data.get("type")),
            difficulty=coerce_str(data.get("difficulty")),
            description=coerce_str(data.get("description")),
            objectives=mapping_list(data.get("objectives")),
            rewards=mapping_list(data.get("rewards")),
            npcs_involved=mapping_list(data.get("npcsInvolved")),
            estimated_duration=coerce_str(data.get("estimatedDuration")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "type": self.type,
            "difficulty": self.difficulty,
            "description": self.description,
            "objectives": [dict(item) for item in self.objectives],
            "rewards": [dict(item) for item in self.rewards],
            "npcsInvolved": [dict(item) for item in self.npcs_involved],
            "estimatedDuration": self.estimated_duration,
        }


@dataclass(frozen=True)
class GeneratedNPC:
    name: str
    race: str = ""
    occupation: str = ""
    age: str = ""
    personality: dict[str, Any] = field(default_factory=dict)
    appearance: str = ""
    backstory: str = ""
    motivation: str = ""
    secrets: tuple[str, ...] = ()
    relationships: tuple[dict[str, Any], ...] = ()
    dialogue: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedNPC":
        return cls(
            name=_required_name(data, "name", "NPC"),
            race=coerce_str(data.get("race")),
            occupation=coerce_str(data.get("occupation")),
            age=coerce_str(data.get("age")),
            personality=dict(as_mapping(data.get("personality"))),
            appearance=coerce_str(data.get("appearance")),
            backstory=coerce_str(data.get("backstory")),
            motivation=coerce_str(data.get("motivation")),
            secrets=string_list(data.get("secrets")),
            relationships=mapping_list(data.get("relationships")),
            dialogue=dict(as_mapping(data.get("dialogue"))),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "race": self.race,
            "occupation": self.occupation,
            "age": self.age,
            "personality": dict(self.personality),
            "appearance": self.appearance,
            "backstory": self.backstory,
            "motivation": self.motivation,
            "secrets": list(self.secrets),
            "relationships": [dict(item) for item in self.relationships],
            "dialogue": dict(self.dialogue),
        }


@dataclass(frozen=True)
class GeneratedObject:
    name: str
    type: str = ""
    rarity: str = ""
    description: str = ""
    properties: tuple[dict[str, Any], ...] = ()
    lore: str = ""
    value_gold: float = 0.0
    currency: str = "gold"
    requirements: tuple[str, ...] = ()
    image_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedObject":
        value = as_mapping(data.get("value"))
        return cls(
            name=_required_name(data, "name", "Object"),
            type=coerce_str(data.get("type")),
            rarity=coerce_str(data.get("rarity")),
            description=coerce_str(data.get("description")),
            properties=mapping_list(data.get("properties")),
            lore=coerce_str(data.get("lore")),
            value_gold=coerce_float(value.get("gold"), 0.0),
            currency=coerce_str(value.get("currency"), "gold"),
            requirements=string_list(data.get("requirements")),
            image_url=coerce_optional_str(data.get("imageUrl")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "rarity": self.rarity,
            "description": self.description,
            "properties": [dict(item) for item in self.properties],
            "lore": self.lore,
            "value": {"gold": self.value_gold, "currency": self.currency},
            "requirements": list(self.requirements),
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class GeneratedLocation:
    name: str
    type: str = ""
    description: str = ""
    atmosphere: str = ""
    key_features: tuple[str, ...] = ()
    npcs_present: tuple[dict[str, Any], ...] = ()
    points_of_interest: tuple[dict[str, Any], ...] = ()
    history: str = ""
    rumors: tuple[str, ...] = ()
    image_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedLocation":
        return cls(
            name=_required_name(data, "name", "Location"),
            type=coerce_str(data.get("type")),
            description=coerce_str(data.get("description")),
            atmosphere=coerce_str(data.get("atmosphere")),
            key_features=string_list(data.get("keyFeatures")),
            npcs_present=mapping_list(data.get("npcsPresent")),
            points_of_interest=mapping_list(data.get("pointsOfInterest")),
            history=coerce_str(data.get("history")),
            rumors=string_list(data.get("rumors")),
            image_url=coerce_optional_str(data.get("imageUrl")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "atmosphere": self.atmosphere,
            "keyFeatures": list(self.key_features),
            "npcsPresent": [dict(item) for item in self.npcs_present],
            "pointsOfInterest": [dict(item) for item in self.points_of_interest],
            "history": self.history,
            "rumors": list(self.rumors),
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class GeneratedMap:
    name: str
    type: str = ""
    size: str = ""
    description: str = ""
    dimensions: dict[str, Any] = field(default_factory=dict)
    regions: tuple[dict[str, Any], ...] = ()
    landmarks: tuple[dict[str, Any], ...] = ()
    connections: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratedMap":
        return cls(
            name=_required_name(data, "name", "Map"),
            type=coerce_str(data.get("type")),
            size=coerce_str(data.get("size")),
            description=coerce_str(data.get("description")),
            dimensions=dict(as_mapping(data.get("dimensions"))),
            regions=mapping_list(data.get("regions")),
            landmarks=mapping_list(data.get("landmarks")),
            connections=mapping_list(data.get("connections")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "description": self.description,
            "dimensions": dict(self.dimensions),
            "regions": [dict(item) for item in self.regions],
            "landmarks": [dict(item) for item in self.landmarks],
            "connections": [dict(item) for item in self.connections],
        }
