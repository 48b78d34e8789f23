"""
Importers for records exported by RPG Immersive and World Builder.
"""

from .bridge import (
    ImportedCharacter,
    PersonalityProfile,
    RPGCharacterRecord,
    VoiceProfile,
    adapt_adventure_to_story,
    import_rpg_character,
    story_character_from_rpg,
    world_context_from_world_builder,
)

__all__ = [
    "ImportedCharacter",
    "PersonalityProfile",
    "RPGCharacterRecord",
    "VoiceProfile",
    "adapt_adventure_to_story",
    "import_rpg_character",
    "story_character_from_rpg",
    "world_context_from_world_builder",
]
