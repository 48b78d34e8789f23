import pytest

from narrative_forge.integrations import (
    RPGCharacterRecord,
    adapt_adventure_to_story,
    import_rpg_character,
    story_character_from_rpg,
    world_context_from_world_builder,
)
from narrative_forge.integrations.bridge import (
    DEFAULT_APPEARANCE,
    DEFAULT_MOTIVATIONS,
    RACE_APPEARANCE,
    RPG_MODULE,
    infer_age,
    infer_gender,
)
from narrative_forge.story_generation import StoryCharacter

ELVEN_WIZARD = {
    "id": "c-42",
    "name": "Elaria",
    "class": "Wizard",
    "race": "Elf",
    "level": 12,
    "stats": {"intelligence": 17, "wisdom": 17, "charisma": 12},
    "campaign": "The Shattered Isles",
}


def test_experienced_elven_wizard_becomes_a_mentor():
    imported = import_rpg_character(ELVEN_WIZARD)
    character = imported.character

    assert character.id == "story-c-42"
    assert character.name == "Elaria"
    assert character.narrative_role == "mentor"
    assert character.personality_traits == ("Intelligent", "Analytical", "Wise", "Perceptive")
    assert character.motivations == ("Uncover ancient knowledge", "Master their craft")
    assert character.dialogue_style == "eloquent, thoughtful, poetic"
    assert character.appearance == RACE_APPEARANCE["elf"]
    assert character.background == (
        "A level 12 Elf Wizard who has journeyed from The Shattered Isles, "
        "carrying the wisdom and scars of their adventures."
    )
    assert character.source_module == RPG_MODULE
    assert character.source_character_id == "c-42"

    personality = imported.personality
    assert personality.ideals == ("Knowledge is power", "Truth above all")
    assert personality.intelligence == pytest.approx(0.85)
    assert personality.confidence == pytest.approx(0.6)
    assert personality.physicality == pytest.approx(0.5)
    assert personality.dominant_emotion == "curiosity"

    assert imported.voice.gender == "female"
    assert imported.voice.age == "adult"
    assert imported.voice.id == "voice-c-42"
    assert imported.as_dict()["voiceProfile"]["name"] == "Elaria Voice"


def test_minimal_record_uses_defaults():
    imported = import_rpg_character({"id": "c-1"})
    character = imported.character

    assert character.name == "Unnamed Character"
    assert character.narrative_role == "supporting"
    assert character.personality_traits == ()
    assert character.motivations == DEFAULT_MOTIVATIONS
    assert character.dialogue_style == "conversational"
    assert character.appearance == DEFAULT_APPEARANCE
    assert character.background == (
        "A level 1 Unknown Adventurer who has journeyed from a distant land, "
        "carrying the wisdom and scars of their adventures."
    )
    assert imported.personality.ideals == ()
    assert imported.personality.dominant_emotion == "neutral"
    assert imported.voice.age == "teen"


def test_stats_fall_back_to_attributes_then_default():
    record = RPGCharacterRecord.from_mapping(
        {
            "id": "c-2",
            "name": "Borin",
            "stats": {"strength": 0},
            "attributes": {"strength": 18, "charisma": 16},
        }
    )

    assert record.stat("strength") == 18
    assert record.stat("charisma") == 16
    assert record.stat("dexterity") == 10

    character = story_character_from_rpg(record)
    assert character.narrative_role == "protagonist"
    assert character.personality_traits == ("Strong", "Protective", "Charismatic", "Persuasive")
    assert character.dialogue_style == "persuasive, direct"


def test_supplied_appearance_is_kept():
    character = story_character_from_rpg({"id": "c-3", "race": "Dwarf", "appearance": "A scarred brow"})

    assert character.appearance == "A scarred brow"
    assert character.dialogue_style == "gruff"


def test_mid_level_character_is_a_protagonist():
    assert story_character_from_rpg({"id": "c-4", "level": 5}).narrative_role == "protagonist"


def test_record_without_id_is_rejected():
    with pytest.raises(ValueError):
        RPGCharacterRecord.from_mapping({"name": "Nobody"})


@pytest.mark.parametrize(
    "name, expected",
    [("Lyra", "female"), ("Seraphina", "female"), ("Marcus", "male"), ("Thorin", "male"), ("Kay", "neutral")],
)
def test_infer_gender_from_name_endings(name, expected):
    assert infer_gender(name) == expected


@pytest.mark.parametrize("level, expected", [(1, "teen"), (3, "adult"), (14, "adult"), (15, "elderly")])
def test_infer_age_from_level(level, expected):
    assert infer_age(level) == expected


def test_world_builder_world_becomes_context():
    world = world_context_from_world_builder(
        {
            "id": "w-1",
            "name": "Eldoria",
            "description": "Floating islands",
            "regions": [{"name": "North Reach"}, {}],
            "lore": {"cultures": [{"name": "Sky Folk"}]},
            "npcs": ["Borin", {"role": "merchant"}],
        }
    )

    assert world.id == "w-1"
    assert world.name == "Eldoria"
    assert world.location_names == ("North Reach", "Unnamed Location")
    assert world.culture_names == ("Sky Folk",)
    assert world.npc_names == ("Borin", "Unnamed NPC")
    assert world.genre is None


def test_world_without_name_gets_placeholder():
    world = world_context_from_world_builder({"id": "w-2", "locations": [{"name": "Harbor"}], "regions": [{"name": "X"}]})

    assert world.name == "Unnamed World"
    assert world.location_names == ("Harbor",)


def test_world_without_id_is_rejected():
    with pytest.raises(ValueError):
        world_context_from_world_builder({"name": "Eldoria"})


def test_adventure_sessions_become_ordered_chapters():
    adventure = {"id": "adv-1", "description": "A dragon hunt"}
    sessions = [
        {
            "sessionNumber": 2,
            "title": "The Dragon",
            "events": ["The dragon attacked."],
            "diceRolls": [{"result": 20}, {"result": 12}, {"result": 5, "importance": 9}],
            "combats": [{"enemy": "dragon"}],
        },
        {
            "sessionNumber": 1,
            "events": [{"description": "They met at the inn."}],
            "decisions": [{"choice": "help the farmer"}],
        },
        {"sessionNumber": 3},
    ]
    heroes = (StoryCharacter(name="Elaria"),)

    story = adapt_adventure_to_story(adventure, sessions, characters=heroes)

    assert story.title == "Adapted Adventure"
    assert [chapter.title for chapter in story.chapters] == ["Chapter 1", "The Dragon", "Chapter 3"]
    assert [chapter.content for chapter in story.chapters] == [
        "They met at the inn.",
        "The dragon attacked.",
        "A chapter from the adventure, session 3.",
    ]
    assert story.metadata.word_count == 15
    assert story.characters == heroes

    outline = story.outline
    assert outline["sourceAdventureId"] == "adv-1"
    assert outline["adaptationMethod"] == "rpg-session"
    assert outline["originalSessions"] == 3
    assert [event["name"] for event in outline["timeline"]] == ["Session 1", "The Dragon", "Session 3"]
    elements = outline["gameElements"]
    assert elements["diceRolls"] == [{"result": 20}, {"result": 5, "importance": 9}]
    assert elements["combatEncounters"] == [{"enemy": "dragon"}]
    assert elements["characterDecisions"] == [{"choice": "help the farmer"}]
