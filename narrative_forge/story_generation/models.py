"""
Typed narrative records exchanged with the AI backend and returned to callers.

Every record is validated once at the parse boundary through ``from_mapping`` and
serialised back to the backend's camelCase wire shape with ``as_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Sequence

import yaml

from narrative_forge.common.coerce import (
    as_mapping,
    coerce_bool,
    coerce_float,
    coerce_int,
    coerce_optional_int,
    coerce_optional_str,
    coerce_str,
    count_words,
    first_present,
    mapping_list,
    new_id,
    reading_time_minutes,
    string_list,
    utc_now_iso,
)
from narrative_forge.common.errors import (
    ErrorCode,
    ServiceError,
    require_choice,
    require_text,
)

GENRES = (
    "fantasy",
    "science-fiction",
    "mystery",
    "adventure",
    "historical",
    "contemporary",
    "horror",
    "romance",
    "thriller",
)
AUDIENCES = ("child", "preteen", "teen", "young-adult", "adult")
STORY_LENGTHS = ("short", "medium", "long", "novel")
SKILL_LEVELS = ("beginner", "elementary", "intermediate", "advanced", "expert")
FEEDBACK_TONES = ("encouraging", "constructive", "celebratory")
SKILL_DIMENSIONS = ("vocabulary", "grammar", "narrative", "creativity", "style")

DEFAULT_SCORE = 5
DEFAULT_SKILL_LEVEL = "intermediate"


def _names_from(value: Any) -> tuple[str, ...]:
    """Collect ``name`` entries from a list of mappings or plain strings."""
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    names: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            name = coerce_optional_str(item.get("name"))
        else:
            name = coerce_optional_str(item)
        if name:
            names.append(name)
    return tuple(names)


@dataclass(frozen=True)
class StoryCharacter:
    """
    A character taking part in a story, either original or imported from a sibling product.
    """

    name: str
    id: str = ""
    narrative_role: str = "supporting"
    description: str = ""
    background: str = ""
    appearance: str = ""
    personality_traits: tuple[str, ...] = ()
    motivations: tuple[str, ...] = ()
    dialogue_style: str = ""
    source_module: str | None = None
    source_character_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StoryCharacter":
        name = coerce_optional_str(data.get("name"))
        if not name:
            raise ValueError("Story character payload must include a non-empty 'name'.")

        personality = data.get("personality")
        if isinstance(personality, Mapping):
            traits = string_list(personality.get("traits"))
            motivations = string_list(personality.get("motivations"))
        else:
            traits = string_list(personality) if personality is not None else ()
            motivations = ()

        return cls(
            name=name,
            id=coerce_str(data.get("id")),
            narrative_role=coerce_str(
                first_present(data, "narrativeRole", "role"), "supporting"
            ),
            description=coerce_str(data.get("description")),
            background=coerce_str(data.get("background")),
            appearance=coerce_str(data.get("appearance")),
            personality_traits=traits,
            motivations=motivations,
            dialogue_style=coerce_str(data.get("dialogueStyle")),
            source_module=coerce_optional_str(data.get("sourceModule")),
            source_character_id=coerce_optional_str(data.get("sourceCharacterId")),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "role": self.narrative_role,
            "narrativeRole": self.narrative_role,
            "description": self.description,
            "background": self.background,
            "appearance": self.appearance,
            "personality": {
                "traits": list(self.personality_traits),
                "motivations": list(self.motivations),
            },
            "dialogueStyle": self.dialogue_style,
        }
        if self.source_module:
            payload["sourceModule"] = self.source_module
        if self.source_character_id:
            payload["sourceCharacterId"] = self.source_character_id
        return payload


@dataclass(frozen=True)
class WorldContext:
    """
    The world a story takes place in, usually imported from World Builder.
    """

    name: str
    id: str = ""
    description: str = ""
    genre: str | None = None
    setting: str = ""
    timeframe: str = ""
    location_names: tuple[str, ...] = ()
    culture_names: tuple[str, ...] = ()
    npc_names: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WorldContext":
        name = coerce_optional_str(first_present(data, "name", "setting"))
        if not name:
            raise ValueError("World context payload must include a 'name' or 'setting'.")

        lore = as_mapping(data.get("lore"))
        return cls(
            name=name,
            id=coerce_str(data.get("id")),
            description=coerce_str(first_present(data, "description", "worldDetails")),
            genre=coerce_optional_str(data.get("genre")),
            setting=coerce_str(data.get("setting")),
            timeframe=coerce_str(data.get("timeframe")),
            location_names=_names_from(data.get("locations")),
            culture_names=_names_from(lore.get("cultures")),
            npc_names=_names_from(data.get("npcs")),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "setting": self.setting,
            "timeframe": self.timeframe,
            "worldDetails": self.description,
            "locations": [{"name": name} for name in self.location_names],
            "npcs": [{"name": name} for name in self.npc_names],
            "lore": {"cultures": [{"name": name} for name in self.culture_names]},
        }
        if self.genre:
            payload["genre"] = self.genre
        return payload


@dataclass(frozen=True)
class SkillTarget:
    """An educational skill a story should exercise."""

    skill: str
    goal: str = ""
    current_level: int | None = None
    target_level: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | str) -> "SkillTarget":
        if isinstance(data, str):
            data = {"skill": data}
        if not isinstance(data, Mapping):
            raise ValueError(f"Skill target must be a string or an object, got {type(data).__name__}.")

        skill = coerce_optional_str(data.get("skill"))
        if not skill:
            raise ValueError("Skill target payload must include a non-empty 'skill'.")
        return cls(
            skill=skill,
            goal=coerce_str(data.get("goal")),
            current_level=coerce_optional_int(data.get("currentLevel")),
            target_level=coerce_optional_int(data.get("targetLevel")),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"skill": self.skill}
        if self.goal:
            payload["goal"] = self.goal
        if self.current_level is not None:
            payload["currentLevel"] = self.current_level
        if self.target_level is not None:
            payload["targetLevel"] = self.target_level
        return payload


@dataclass(frozen=True)
class StoryGenerationRequest:
    """
    Everything needed to generate a complete story.

    Attributes
    ----------
    initial_prompt:
        The user's story idea (required).
    genre / target_audience:
        Required enum members (see ``GENRES`` and ``AUDIENCES``).
    length:
        One of ``STORY_LENGTHS``; filled from the audience when omitted.
    chapter_count:
        Optional explicit number of chapters.
    characters / world_context:
        Optional imported or original characters and world.
    skill_targets / educational_goals:
        Optional educational focus; goals are filled from the audience when omitted.
    include_images / include_audio / include_interactive:
        Feature toggles; ``None`` means "use the documented default".
    """

    initial_prompt: str
    genre: str
    target_audience: str
    length: str | None = None
    chapter_count: int | None = None
    characters: tuple[StoryCharacter, ...] = ()
    world_context: WorldContext | None = None
    skill_targets: tuple[SkillTarget, ...] = ()
    educational_goals: tuple[str, ...] | None = None
    include_images: bool | None = None
    include_audio: bool | None = None
    include_interactive: bool | None = None
    style: Mapping[str, Any] | None = None
    perspective: str | None = None
    tense: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StoryGenerationRequest":
        """
        Build a request from a camelCase payload. Validation is deferred to :meth:`validate`.
        """
        world = data.get("worldContext")
        goals = data.get("educationalGoals")
        style = data.get("style")
        return cls(
            initial_prompt=coerce_str(data.get("initialPrompt")),
            genre=coerce_str(data.get("genre")),
            target_audience=coerce_str(data.get("targetAudience")),
            length=coerce_optional_str(data.get("length")),
            chapter_count=coerce_optional_int(data.get("chapterCount")),
            characters=tuple(
                StoryCharacter.from_mapping(item)
                for item in data.get("characters") or ()
                if isinstance(item, Mapping)
            ),
            world_context=WorldContext.from_mapping(world) if isinstance(world, Mapping) else None,
            skill_targets=tuple(
                SkillTarget.from_mapping(item) for item in data.get("skillTargets") or ()
            ),
            educational_goals=string_list(goals) if goals is not None else None,
            include_images=coerce_bool(data.get("includeImages")),
            include_audio=coerce_bool(data.get("includeAudio")),
            include_interactive=coerce_bool(data.get("includeInteractive")),
            style=dict(style) if isinstance(style, Mapping) else None,
            perspective=coerce_optional_str(data.get("perspective")),
            tense=coerce_optional_str(data.get("tense")),
        )

    def validate(self) -> "StoryGenerationRequest":
        """
        Fail fast on blank or out-of-range fields. Returns ``self`` for chaining.
        """
        require_text(self.initial_prompt, field="initial prompt", code=ErrorCode.INVALID_PROMPT)
        require_choice(self.genre, field="genre", choices=GENRES)
        require_choice(self.target_audience, field="target audience", choices=AUDIENCES)
        if self.length is not None:
            require_choice(self.length, field="length", choices=STORY_LENGTHS)
        if self.chapter_count is not None and self.chapter_count < 1:
            raise ServiceError(
                "Chapter count must be at least 1.",
                code=ErrorCode.INVALID_INPUT,
                status_code=400,
            )
        return self

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "initialPrompt": self.initial_prompt,
            "genre": self.genre,
            "targetAudience": self.target_audience,
        }
        if self.length is not None:
            payload["length"] = self.length
        if self.chapter_count is not None:
            payload["chapterCount"] = self.chapter_count
        if self.characters:
            payload["characters"] = [character.as_dict() for character in self.characters]
        if self.world_context is not None:
            payload["worldContext"] = self.world_context.as_dict()
        if self.skill_targets:
            payload["skillTargets"] = [target.as_dict() for target in self.skill_targets]
        if self.educational_goals is not None:
            payload["educationalGoals"] = list(self.educational_goals)
        for key, value in (
            ("includeImages", self.include_images),
            ("includeAudio", self.include_audio),
            ("includeInteractive", self.include_interactive),
            ("perspective", self.perspective),
            ("tense", self.tense),
        ):
            if value is not None:
                payload[key] = value
        if self.style is not None:
            payload["style"] = dict(self.style)
        return payload


@dataclass(frozen=True)
class ChapterContext:
    """
    State of an ongoing story, used to write its next chapter.

    ``current_chapter`` is the number of chapters written so far; the generated chapter
    is number ``current_chapter + 1``.
    """

    story_id: str
    story_title: str
    current_chapter: int
    narrative: str = ""
    characters: tuple[StoryCharacter, ...] = ()
    world_context: WorldContext | None = None
    target_audience: str | None = None

    @property
    def next_chapter_number(self) -> int:
        return self.current_chapter + 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChapterContext":
        world = data.get("worldContext")
        return cls(
            story_id=coerce_str(data.get("storyId")),
            story_title=coerce_str(data.get("storyTitle")),
            current_chapter=coerce_int(data.get("currentChapter"), 0),
            narrative=str(data.get("narrative") or ""),
            characters=tuple(
                StoryCharacter.from_mapping(item)
                for item in data.get("characters") or ()
                if isinstance(item, Mapping)
            ),
            world_context=WorldContext.from_mapping(world) if isinstance(world, Mapping) else None,
            target_audience=coerce_optional_str(data.get("targetAudience")),
        )

    def validate(self) -> "ChapterContext":
        require_text(self.story_id, field="story id")
        if self.current_chapter < 0:
            raise ServiceError(
                "Current chapter cannot be negative.",
                code=ErrorCode.INVALID_INPUT,
                status_code=400,
            )
        if self.target_audience is not None:
            require_choice(self.target_audience, field="target audience", choices=AUDIENCES)
        return self

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "storyId": self.story_id,
            "storyTitle": self.story_title,
            "currentChapter": self.current_chapter,
            "narrative": self.narrative,
            "characters": [character.as_dict() for character in self.characters],
        }
        if self.world_context is not None:
            payload["worldContext"] = self.world_context.as_dict()
        if self.target_audience is not None:
            payload["targetAudience"] = self.target_audience
        return payload


@dataclass(frozen=True)
class PlotProgression:
    tension_level: float = DEFAULT_SCORE
    pace_level: float = DEFAULT_SCORE
    emotional_impact: float = DEFAULT_SCORE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlotProgression":
        return cls(
            tension_level=coerce_float(first_present(data, "tensionLevel", "tension"), DEFAULT_SCORE),
            pace_level=coerce_float(data.get("paceLevel"), DEFAULT_SCORE),
            emotional_impact=coerce_float(
                first_present(data, "emotionalImpact", "significance"), DEFAULT_SCORE
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "tensionLevel": self.tension_level,
            "paceLevel": self.pace_level,
            "emotionalImpact": self.emotional_impact,
        }


@dataclass(frozen=True)
class GeneratedChapter:
    """A single generated chapter."""

    chapter_number: int
    title: str
    content: str
    id: str = field(default_factory=new_id)
    summary: str = ""
    prompt: str = ""
    word_count: int = 0
    mood: str = "neutral"
    plot_progression: PlotProgression = field(default_factory=PlotProgression)
    skills_focused: tuple[str, ...] = ()
    interactive_elements: tuple[dict[str, Any], ...] = ()
    media_content: dict[str, Any] = field(default_factory=dict)

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip())

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        default_number: int = 1,
    ) -> "GeneratedChapter":
        number = coerce_int(first_present(data, "chapterNumber", "number"), default_number)
        content = str(first_present(data, "content", "text") or "").strip()
        title = coerce_str(data.get("title"), f"Chapter {number}")
        word_count = coerce_int(data.get("wordCount"), count_words(content))
        return cls(
            chapter_number=number,
            title=title,
            content=content,
            id=coerce_str(data.get("id")) or new_id(),
            summary=coerce_str(first_present(data, "summary", "outline")),
            prompt=str(data.get("prompt") or ""),
            word_count=word_count,
            mood=coerce_str(data.get("mood"), "neutral"),
            plot_progression=PlotProgression.from_mapping(as_mapping(data.get("plotProgression"))),
            skills_focused=string_list(data.get("skillsFocused")),
            interactive_elements=mapping_list(data.get("interactiveElements")),
            media_content=dict(as_mapping(data.get("mediaContent"))),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "chapterNumber": self.chapter_number,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "prompt": self.prompt,
            "wordCount": self.word_count,
            "mood": self.mood,
            "plotProgression": self.plot_progression.as_dict(),
        }
        if self.skills_focused:
            payload["skillsFocused"] = list(self.skills_focused)
        if self.interactive_elements:
            payload["interactiveElements"] = [dict(item) for item in self.interactive_elements]
        if self.media_content:
            payload["mediaContent"] = dict(self.media_content)
        return payload


@dataclass(frozen=True)
class StoryMetadata:
    word_count: int = 0
    estimated_reading_time: int = 0
    complexity: float = DEFAULT_SCORE
    themes: tuple[str, ...] = ()
    content_warnings: tuple[str, ...] = ()
    educational_value: float = DEFAULT_SCORE
    tags: tuple[str, ...] = ()

    @classmethod
    def for_chapters(
        cls,
        chapters: Sequence[GeneratedChapter],
        **overrides: Any,
    ) -> "StoryMetadata":
        total = sum(chapter.word_count for chapter in chapters)
        return cls(
            word_count=total,
            estimated_reading_time=reading_time_minutes(total),
            **overrides,
        )

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        chapters: Sequence[GeneratedChapter] = (),
    ) -> "StoryMetadata":
        chapter_words = sum(chapter.word_count for chapter in chapters)
        word_count = coerce_int(data.get("wordCount"), 0) or chapter_words
        return cls(
            word_count=word_count,
            estimated_reading_time=coerce_int(
                data.get("estimatedReadingTime"), reading_time_minutes(word_count)
            ),
            complexity=coerce_float(data.get("complexity"), DEFAULT_SCORE),
            themes=string_list(data.get("themes")),
            content_warnings=string_list(data.get("contentWarnings")),
            educational_value=coerce_float(data.get("educationalValue"), DEFAULT_SCORE),
            tags=string_list(data.get("tags")),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "wordCount": self.word_count,
            "estimatedReadingTime": self.estimated_reading_time,
            "complexity": self.complexity,
            "themes": list(self.themes),
            "contentWarnings": list(self.content_warnings),
            "educationalValue": self.educational_value,
        }
        if self.tags:
            payload["tags"] = list(self.tags)
        return payload


@dataclass(frozen=True)
class GeneratedStory:
    """A complete generated story with provenance metadata."""

    title: str
    chapters: tuple[GeneratedChapter, ...]
    metadata: StoryMetadata
    id: str = field(default_factory=new_id)
    description: str = ""
    synopsis: str = ""
    outline: dict[str, Any] = field(default_factory=dict)
    characters: tuple[StoryCharacter, ...] = ()
    generation_params: dict[str, Any] = field(default_factory=dict)
    generated_at: str = field(default_factory=utc_now_iso)
    ai_model: str = ""
    processing_time: int = 0

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        request: StoryGenerationRequest | None = None,
        ai_model: str = "",
    ) -> "GeneratedStory":
        raw_chapters = data.get("chapters")
        if raw_chapters is not None and (
            not isinstance(raw_chapters, Sequence) or isinstance(raw_chapters, (str, bytes))
        ):
            raise ValueError("Story payload 'chapters' must be a list.")

        chapters = tuple(
            GeneratedChapter.from_mapping(item, default_number=index)
            for index, item in enumerate(raw_chapters or (), start=1)
            if isinstance(item, Mapping)
        )

        raw_characters = data.get("characters")
        if raw_characters:
            characters = tuple(
                StoryCharacter.from_mapping(item)
                for item in raw_characters
                if isinstance(item, Mapping) and item.get("name")
            )
        else:
            characters = request.characters if request is not None else ()

        params = data.get("generationParams")
        if isinstance(params, Mapping):
            generation_params = dict(params)
        else:
            generation_params = request.as_dict() if request is not None else {}

        return cls(
            id=coerce_str(data.get("id")) or new_id(),
            title=coerce_str(data.get("title"), "Generated Story"),
            description=coerce_str(data.get("description")),
            synopsis=coerce_str(data.get("synopsis")),
            chapters=chapters,
            outline=dict(as_mapping(data.get("outline"))),
            characters=characters,
            metadata=StoryMetadata.from_mapping(as_mapping(data.get("metadata")), chapters=chapters),
            generation_params=generation_params,
            generated_at=coerce_str(data.get("generatedAt")) or utc_now_iso(),
            ai_model=coerce_str(data.get("aiModel"), ai_model),
            processing_time=coerce_int(data.get("processingTime"), 0),
        )

    def with_processing_time(self, milliseconds: int) -> "GeneratedStory":
        return replace(self, processing_time=milliseconds)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "synopsis": self.synopsis,
            "chapters": [chapter.as_dict() for chapter in self.chapters],
            "outline": dict(self.outline),
            "characters": [character.as_dict() for character in self.characters],
            "metadata": self.metadata.as_dict(),
            "generationParams": dict(self.generation_params),
            "generatedAt": self.generated_at,
            "aiModel": self.ai_model,
            "processingTime": self.processing_time,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.as_dict(), sort_keys=False, allow_unicode=True)


@dataclass(frozen=True)
class SkillScore:
    score: float = DEFAULT_SCORE
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, default: "SkillScore") -> "SkillScore":
        strengths = data.get("strengths")
        improvements = data.get("improvements")
        return cls(
            score=coerce_float(data.get("score"), default.score),
            strengths=string_list(strengths) if strengths is not None else default.strengths,
            improvements=(
                string_list(improvements) if improvements is not None else default.improvements
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
        }


@dataclass(frozen=True)
class OverallSkill:
    level: str = DEFAULT_SKILL_LEVEL
    score: float = DEFAULT_SCORE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, default: "OverallSkill") -> "OverallSkill":
        level = coerce_str(data.get("level"), default.level).lower()
        return cls(
            level=level if level in SKILL_LEVELS else default.level,
            score=coerce_float(data.get("score"), default.score),
        )

    def as_dict(self) -> dict[str, Any]:
        return {"level": self.level, "score": self.score}


@dataclass(frozen=True)
class SkillAssessment:
    """Scores for each writing dimension plus an overall level."""

    overall: OverallSkill = field(default_factory=OverallSkill)
    vocabulary: SkillScore = field(default_factory=SkillScore)
    grammar: SkillScore = field(default_factory=SkillScore)
    narrative: SkillScore = field(default_factory=SkillScore)
    creativity: SkillScore = field(default_factory=SkillScore)
    style: SkillScore = field(default_factory=SkillScore)
    generated_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        defaults: "SkillAssessment | None" = None,
    ) -> "SkillAssessment":
        """
        Build an assessment, filling each missing dimension independently from ``defaults``.
        """
        base = defaults or cls()
        dimensions = {
            name: SkillScore.from_mapping(as_mapping(data[name]), default=getattr(base, name))
            if isinstance(data.get(name), Mapping)
            else getattr(base, name)
            for name in SKILL_DIMENSIONS
        }
        overall_raw = data.get("overall")
        overall = (
            OverallSkill.from_mapping(overall_raw, default=base.overall)
            if isinstance(overall_raw, Mapping)
            else base.overall
        )
        return cls(
            overall=overall,
            generated_at=coerce_str(data.get("generatedAt")) or base.generated_at,
            **dimensions,
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"overall": self.overall.as_dict()}
        for name in SKILL_DIMENSIONS:
            payload[name] = getattr(self, name).as_dict()
        payload["generatedAt"] = self.generated_at
        return payload

    def as_input_dict(self) -> dict[str, Any]:
        """Scores-only shape accepted by the feedback endpoint."""
        payload: dict[str, Any] = {"overall": self.overall.as_dict()}
        for name in SKILL_DIMENSIONS:
            payload[name] = {"score": getattr(self, name).score}
        return payload


@dataclass(frozen=True)
class EducationalFeedback:
    """Encouraging, actionable feedback for a young writer."""

    id: str = field(default_factory=new_id)
    user_id: str = ""
    overall_tone: str = "encouraging"
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    exercises: tuple[str, ...] = ()
    encouragement: str = ""
    next_steps: tuple[str, ...] = ()
    skill_progression: dict[str, Any] = field(default_factory=dict)
    generated_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        defaults: "EducationalFeedback | None" = None,
    ) -> "EducationalFeedback":
        """
        Build feedback, filling each missing field independently from ``defaults``.
        """
        base = defaults or cls()

        def _list(key: str, fallback: tuple[str, ...]) -> tuple[str, ...]:
            value = data.get(key)
            if value is None:
                return fallback
            items = string_list(value)
            return items or fallback

        tone = coerce_str(data.get("overallTone"), base.overall_tone).lower()
        progression = data.get("skillProgression")
        return cls(
            id=coerce_str(data.get("id")) or base.id,
            user_id=coerce_str(data.get("userId"), base.user_id),
            overall_tone=tone if tone in FEEDBACK_TONES else base.overall_tone,
            strengths=_list("strengths", base.strengths),
            improvements=_list("improvements", base.improvements),
            exercises=_list("exercises", base.exercises),
            encouragement=coerce_str(data.get("encouragement"), base.encouragement),
            next_steps=_list("nextSteps", base.next_steps),
            skill_progression=(
                dict(progression) if isinstance(progression, Mapping) else dict(base.skill_progression)
            ),
            generated_at=coerce_str(data.get("generatedAt")) or base.generated_at,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "overallTone": self.overall_tone,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "exercises": list(self.exercises),
            "encouragement": self.encouragement,
            "nextSteps": list(self.next_steps),
            "skillProgression": dict(self.skill_progression),
            "generatedAt": self.generated_at,
        }
