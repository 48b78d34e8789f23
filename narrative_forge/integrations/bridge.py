"""
Data shaping between Narrative Forge and its sibling products.

RPG Immersive characters become story characters and World Builder worlds become
world contexts. The functions here only reshape records that callers have already
loaded; they never touch storage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from narrative_forge.common.coerce import (
    as_mapping,
    coerce_int,
    coerce_str,
    count_words,
    first_present,
    mapping_list,
    new_id,
)
from narrative_forge.story_generation.models import (
    GeneratedChapter,
    GeneratedStory,
    StoryCharacter,
    StoryMetadata,
    WorldContext,
)

logger = logging.getLogger(__name__)

RPG_MODULE = "rpg-immersive"

STAT_NAMES = ("strength", "dexterity", "constitution", "intelligence", "wisdom", "charisma")
DEFAULT_STAT = 10
NOTABLE_STAT = 15

RACE_APPEARANCE = {
    "human": "Average height with diverse features reflecting their human heritage",
    "elf": "Tall and graceful with pointed ears and an otherworldly beauty",
    "dwarf": "Sturdy and strong with a magnificent beard and weathered hands",
    "halfling": "Small in stature but large in heart, with curly hair and bright eyes",
    "dragonborn": "Imposing figure with draconic features and scales that shimmer in the light",
    "tiefling": "Striking appearance with horns, tail, and eyes that hint at infernal heritage",
}
DEFAULT_APPEARANCE = "Distinctive features that reflect their unique heritage"

# Checked in this order; at most four traits are kept.
STAT_TRAITS = (
    ("strength", ("Strong", "Protective")),
    ("intelligence", ("Intelligent", "Analytical")),
    ("wisdom", ("Wise", "Perceptive")),
    ("charisma", ("Charismatic", "Persuasive")),
    ("dexterity", ("Agile", "Quick-thinking")),
    ("constitution", ("Resilient", "Determined")),
)
CLASS_TRAITS = {
    "fighter": ("Brave", "Disciplined"),
    "wizard": ("Studious", "Curious"),
    "rogue": ("Cunning", "Resourceful"),
    "cleric": ("Devout", "Compassionate"),
    "ranger": ("Independent", "Nature-loving"),
    "bard": ("Creative", "Sociable"),
}
CLASS_MOTIVATIONS = {
    "fighter": ("Protect the innocent", "Prove their strength"),
    "wizard": ("Uncover ancient knowledge", "Master their craft"),
    "rogue": ("Seek fortune", "Right past wrongs"),
    "cleric": ("Serve their deity", "Heal the suffering"),
    "ranger": ("Protect nature", "Hunt dangerous beasts"),
    "bard": ("Share stories", "Inspire others"),
}
DEFAULT_MOTIVATIONS = ("Find their destiny", "Make a difference")
STAT_IDEALS = (
    ("strength", "Strength protects the weak"),
    ("intelligence", "Knowledge is power"),
    ("wisdom", "Truth above all"),
    ("charisma", "Unity through leadership"),
)
CLASS_EMOTIONS = {
    "fighter": "determination",
    "wizard": "curiosity",
    "rogue": "excitement",
    "cleric": "joy",
    "ranger": "neutral",
    "bard": "joy",
}
DEFAULT_FEARS = ("Failing their companions", "Losing their identity")
STAT_DIALOGUE = (
    ("intelligence", "eloquent"),
    ("wisdom", "thoughtful"),
    ("charisma", "persuasive"),
    ("strength", "direct"),
)
RACE_DIALOGUE = {"elf": "poetic", "dwarf": "gruff"}

FEMININE_ENDINGS = ("a", "ia", "ina", "ara", "ella")
MASCULINE_ENDINGS = ("us", "or", "in", "on", "ar")


@dataclass(frozen=True)
class RPGCharacterRecord:
    """
    A character exported by RPG Immersive, with stats normalised to their defaults.
    """

    id: str
    name: str
    character_class: str = "Unknown"
    race: str = "Unknown"
    level: int = 1
    description: str = ""
    appearance: str = ""
    stats: dict[str, int] = field(default_factory=dict)
    equipment: Any = None
    image_url: str | None = None
    campaign: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RPGCharacterRecord":
        character_id = coerce_str(data.get("id"))
        if not character_id:
            raise ValueError("RPG character record must include an 'id'.")

        stats = as_mapping(data.get("stats"))
        attributes = as_mapping(data.get("attributes"))
        return cls(
            id=character_id,
            name=coerce_str(data.get("name"), "Unnamed Character"),
            character_class=coerce_str(data.get("class"), "Unknown"),
            race=coerce_str(data.get("race"), "Unknown"),
            level=coerce_int(data.get("level"), 0) or 1,
            description=coerce_str(first_present(data, "description", "backstory")),
            appearance=coerce_str(data.get("appearance")),
            stats={
                name: coerce_int(stats.get(name), 0)
                or coerce_int(attributes.get(name), 0)
                or DEFAULT_STAT
                for name in STAT_NAMES
            },
            equipment=first_present(data, "equipment", "inventory") or {},
            image_url=first_present(data, "imageUrl", "portraitUrl"),
            campaign=first_present(data, "campaign", "adventureName"),
        )

    def stat(self, name: str) -> int:
        return self.stats.get(name, DEFAULT_STAT)

    def is_notable(self, name: str) -> bool:
        return self.stat(name) > NOTABLE_STAT

    @property
    def class_key(self) -> str:
        return self.character_class.lower()

    @property
    def race_key(self) -> str:
        return self.race.lower()


@dataclass(frozen=True)
class PersonalityProfile:
    traits: tuple[str, ...]
    motivations: tuple[str, ...]
    ideals: tuple[str, ...]
    fears: tuple[str, ...] = DEFAULT_FEARS
    confidence: float = 0.5
    intelligence: float = 0.5
    physicality: float = 0.5
    dominant_emotion: str = "neutral"

    def as_dict(self) -> dict[str, Any]:
        return {
            "traits": list(self.traits),
            "motivations": list(self.motivations),
            "fears": list(self.fears),
            "ideals": list(self.ideals),
            "confidence": self.confidence,
            "intelligence": self.intelligence,
            "physicality": self.physicality,
            "dominantEmotion": self.dominant_emotion,
        }


@dataclass(frozen=True)
class VoiceProfile:
    id: str
    name: str
    gender: str
    age: str
    pace: str = "normal"
    pitch: str = "normal"

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "age": self.age,
            "pace": self.pace,
            "pitch": self.pitch,
        }


@dataclass(frozen=True)
class ImportedCharacter:
    """A story character together with the profiles derived from its RPG sheet."""

    character: StoryCharacter
    personality: PersonalityProfile
    voice: VoiceProfile

    def as_dict(self) -> dict[str, Any]:
        payload = self.character.as_dict()
        payload["personality"] = self.personality.as_dict()
        payload["voiceProfile"] = self.voice.as_dict()
        return payload


def appearance_from_race(race: str) -> str:
    return RACE_APPEARANCE.get(race.lower(), DEFAULT_APPEARANCE)


def character_background(record: RPGCharacterRecord) -> str:
    race = record.race
    character_class = record.character_class if record.character_class != "Unknown" else "Adventurer"
    campaign = record.campaign or "a distant land"
    return (
        f"A level {record.level} {race} {character_class} who has journeyed from {campaign}, "
        "carrying the wisdom and scars of their adventures."
    )


def traits_from_stats(record: RPGCharacterRecord) -> tuple[str, ...]:
    traits: list[str] = []
    for stat, stat_traits in STAT_TRAITS:
        if record.is_notable(stat):
            traits.extend(stat_traits)
    traits.extend(CLASS_TRAITS.get(record.class_key, ()))
    return tuple(traits[:4])


def motivations_from_class(character_class: str) -> tuple[str, ...]:
    return CLASS_MOTIVATIONS.get(character_class.lower(), DEFAULT_MOTIVATIONS)


def ideals_from_stats(record: RPGCharacterRecord) -> tuple[str, ...]:
    ideals = [ideal for stat, ideal in STAT_IDEALS if record.is_notable(stat)]
    return tuple(ideals[:2])


def dominant_emotion(character_class: str) -> str:
    return CLASS_EMOTIONS.get(character_class.lower(), "neutral")


def personality_from_stats(record: RPGCharacterRecord) -> PersonalityProfile:
    return PersonalityProfile(
        traits=traits_from_stats(record),
        motivations=motivations_from_class(record.character_class),
        ideals=ideals_from_stats(record),
        confidence=record.stat("charisma") / 20,
        intelligence=record.stat("intelligence") / 20,
        physicality=record.stat("strength") / 20,
        dominant_emotion=dominant_emotion(record.character_class),
    )


def narrative_role(record: RPGCharacterRecord) -> str:
    """Experienced characters mentor; charismatic or seasoned ones lead."""
    if record.level >= 10:
        return "mentor"
    if record.is_notable("charisma") or record.level >= 5:
        return "protagonist"
    return "supporting"


def dialogue_style(record: RPGCharacterRecord) -> str:
    styles = [style for stat, style in STAT_DIALOGUE if record.is_notable(stat)]
    race_style = RACE_DIALOGUE.get(record.race_key)
    if race_style:
        styles.append(race_style)
    return ", ".join(styles) or "conversational"


def infer_gender(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith(FEMININE_ENDINGS):
        return "female"
    if lowered.endswith(MASCULINE_ENDINGS):
        return "male"
    return "neutral"


def infer_age(level: int) -> str:
    if level < 3:
        return "teen"
    if level < 15:
        return "adult"
    return "elderly"


def voice_profile(record: RPGCharacterRecord) -> VoiceProfile:
    return VoiceProfile(
        id=f"voice-{record.id}",
        name=f"{record.name} Voice",
        gender=infer_gender(record.name),
        age=infer_age(record.level),
    )


def import_rpg_character(data: Mapping[str, Any] | RPGCharacterRecord) -> ImportedCharacter:
    """
    Convert an RPG Immersive character into a story character with derived profiles.

    Parameters
    ----------
    data:
        The exported character record, or an already-normalised :class:`RPGCharacterRecord`.
    """
    record = data if isinstance(data, RPGCharacterRecord) else RPGCharacterRecord.from_mapping(data)
    personality = personality_from_stats(record)
    character = StoryCharacter(
        id=f"story-{record.id}",
        name=record.name,
        narrative_role=narrative_role(record),
        description=record.description,
        background=character_background(record),
        appearance=record.appearance or appearance_from_race(record.race),
        personality_traits=personality.traits,
        motivations=personality.motivations,
        dialogue_style=dialogue_style(record),
        source_module=RPG_MODULE,
        source_character_id=record.id,
    )
    logger.debug("Imported RPG character %s as %s", record.id, character.narrative_role)
    return ImportedCharacter(character=character, personality=personality, voice=voice_profile(record))


def story_character_from_rpg(data: Mapping[str, Any] | RPGCharacterRecord) -> StoryCharacter:
    return import_rpg_character(data).character


def world_context_from_world_builder(data: Mapping[str, Any]) -> WorldContext:
    """
    Convert a World Builder world into the context used by story prompts.

    Locations fall back to the world's regions; unnamed entries get placeholder names.
    """
    world_id = coerce_str(data.get("id"))
    if not world_id:
        raise ValueError("World Builder record must include an 'id'.")

    locations = data.get("locations") or data.get("regions") or ()
    lore = as_mapping(data.get("lore"))
    return WorldContext(
        id=world_id,
        name=coerce_str(data.get("name"), "Unnamed World"),
        description=coerce_str(data.get("description")),
        genre=coerce_str(data.get("genre")) or None,
        setting=coerce_str(data.get("setting")),
        timeframe=coerce_str(data.get("timeframe")),
        location_names=_entry_names(locations, "Unnamed Location"),
        culture_names=_entry_names(lore.get("cultures"), "Unnamed Culture"),
        npc_names=_entry_names(data.get("npcs"), "Unnamed NPC"),
    )


def adapt_adventure_to_story(
    adventure: Mapping[str, Any],
    sessions: Sequence[Mapping[str, Any]],
    *,
    characters: Sequence[StoryCharacter] = (),
) -> GeneratedStory:
    """
    Turn an RPG adventure and its game sessions into a story draft, one chapter per session.

    Session order follows ``sessionNumber``. Notable dice rolls, combats and decisions are
    kept in the story outline under ``gameElements``.
    """
    adventure_id = coerce_str(adventure.get("id"))
    ordered = sorted(sessions, key=lambda session: coerce_int(session.get("sessionNumber"), 0))

    chapters = tuple(_session_chapter(session, index) for index, session in enumerate(ordered, start=1))

    outline = {
        "sourceAdventureId": adventure_id,
        "adaptationMethod": "rpg-session",
        "originalSessions": len(ordered),
        "timeline": [_session_event(session, index) for index, session in enumerate(ordered, start=1)],
        "gameElements": {
            "diceRolls": [
                roll
                for session in ordered
                for roll in mapping_list(session.get("diceRolls"))
                if _is_significant_roll(roll)
            ],
            "combatEncounters": [
                combat for session in ordered for combat in mapping_list(session.get("combats"))
            ],
            "characterDecisions": [
                decision
                for session in ordered
                for decision in mapping_list(session.get("decisions"))
            ],
        },
    }
    return GeneratedStory(
        id=new_id(),
        title=coerce_str(adventure.get("title"), "Adapted Adventure"),
        description=coerce_str(adventure.get("description")),
        chapters=chapters,
        characters=tuple(characters),
        outline=outline,
        metadata=StoryMetadata.for_chapters(chapters),
    )


def session_narrative(session: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for event in session.get("events") or ():
        if isinstance(event, str):
            parts.append(event)
        elif isinstance(event, Mapping):
            parts.append(coerce_str(first_present(event, "description", "text")))
    narrative = " ".join(part for part in parts if part)
    if narrative:
        return narrative
    number = session.get("sessionNumber") or "unknown"
    return f"A chapter from the adventure, session {number}."


def _session_chapter(session: Mapping[str, Any], index: int) -> GeneratedChapter:
    content = session_narrative(session)
    return GeneratedChapter(
        chapter_number=index,
        title=coerce_str(session.get("title"), f"Chapter {index}"),
        content=content,
        summary=coerce_str(session.get("summary")),
        word_count=count_words(content),
    )


def _session_event(session: Mapping[str, Any], index: int) -> dict[str, Any]:
    number = session.get("sessionNumber") or index
    return {
        "id": coerce_str(session.get("id")),
        "name": coerce_str(session.get("title"), f"Session {index}"),
        "description": coerce_str(session.get("summary"), f"Game session {number}"),
        "date": session.get("date"),
        "importance": 7,
    }


def _is_significant_roll(roll: Mapping[str, Any]) -> bool:
    result = coerce_int(roll.get("result"), 0)
    return result in (1, 20) or coerce_int(roll.get("importance"), 0) > 7


def _entry_names(value: Any, placeholder: str) -> tuple[str, ...]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    names: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            names.append(coerce_str(item.get("name"), placeholder))
        elif isinstance(item, str) and item.strip():
            names.append(item.strip())
    return tuple(names)
