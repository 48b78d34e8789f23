"""
Narrative records, prompt builders and model-output parsers.
"""

from .defaults import apply_audience_defaults, contains_inappropriate_content, describe_generation_error
from .models import (
    ChapterContext,
    EducationalFeedback,
    GeneratedChapter,
    GeneratedStory,
    SkillAssessment,
    SkillTarget,
    StoryCharacter,
    StoryGenerationRequest,
    StoryMetadata,
    WorldContext,
)
from .parsing import (
    extract_json_object,
    parse_chapter_response,
    parse_feedback_response,
    parse_skill_assessment,
    parse_story_response,
)
from .prompting import NarrativePrompt, build_story_prompt, enhance_prompt

__all__ = [
    "ChapterContext",
    "EducationalFeedback",
    "GeneratedChapter",
    "GeneratedStory",
    "NarrativePrompt",
    "SkillAssessment",
    "SkillTarget",
    "StoryCharacter",
    "StoryGenerationRequest",
    "StoryMetadata",
    "WorldContext",
    "apply_audience_defaults",
    "build_story_prompt",
    "contains_inappropriate_content",
    "describe_generation_error",
    "enhance_prompt",
    "extract_json_object",
    "parse_chapter_response",
    "parse_feedback_response",
    "parse_skill_assessment",
    "parse_story_response",
]
