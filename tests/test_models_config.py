import json
from dataclasses import replace

import pytest
import yaml

from narrative_forge.common import ChatResult, ServiceError, ServicesConfig
from narrative_forge.common.config import DEFAULT_AI_SERVICES_URL, DEFAULT_LOCAL_MODEL
from narrative_forge.common.errors import ErrorCode
from narrative_forge.pipeline import LocalNarrativeGenerator
from narrative_forge.story_generation import (
    SkillTarget,
    StoryGenerationRequest,
    apply_audience_defaults,
    contains_inappropriate_content,
    describe_generation_error,
    parse_story_response,
)
from narrative_forge.story_generation.defaults import DEFAULT_EDUCATIONAL_GOALS

from conftest import story_json

ENV_VARS = (
    "NARRATIVE_FORGE_AI_SERVICES_URL",
    "AI_SERVICES_BASE_URL",
    "NARRATIVE_FORGE_NARRATIVE_URL",
    "CLOUD_NARRATIVE_GENERATION_FULLURL",
    "CLOUD_CHARACTER_CREATION_FULLURL",
    "NARRATIVE_FORGE_ROUTE_MODE",
    "NARRATIVE_FORGE_EXECUTION_CONTEXT",
    "NARRATIVE_FORGE_LOCAL_MODEL",
    "NARRATIVE_AI_MODEL",
    "LITELLM_MODEL",
    "NARRATIVE_FORGE_LOCAL_API_KEY",
    "GEMINI_API_KEY",
    "LITELLM_API_KEY",
    "NARRATIVE_FORGE_LOCAL_ENABLED",
    "NARRATIVE_FORGE_TIMEOUT",
    "NARRATIVE_FORGE_MAX_RETRIES",
    "NARRATIVE_FORGE_CACHE_TTL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_config_defaults_from_empty_environment(clean_env):
    config = ServicesConfig.from_env()

    assert config.base_url == DEFAULT_AI_SERVICES_URL
    assert config.narrative_function_url is None
    assert not config.remote_enabled
    assert config.route_mode == "dedicated"
    assert config.is_server_side
    assert config.local_model == DEFAULT_LOCAL_MODEL
    assert config.max_retries == 0


def test_config_reads_environment(clean_env):
    clean_env.setenv("CLOUD_CHARACTER_CREATION_FULLURL", "https://character-creator-abc.a.run.app")
    clean_env.setenv("NARRATIVE_FORGE_ROUTE_MODE", "generic")
    clean_env.setenv("NARRATIVE_FORGE_EXECUTION_CONTEXT", "browser")
    clean_env.setenv("LITELLM_MODEL", "openai/gpt-4o-mini")
    clean_env.setenv("NARRATIVE_FORGE_LOCAL_ENABLED", "no")
    clean_env.setenv("NARRATIVE_FORGE_MAX_RETRIES", "2")
    clean_env.setenv("NARRATIVE_FORGE_TIMEOUT", "30")

    config = ServicesConfig.from_env()

    assert config.narrative_function_url == "https://narrative-generator-abc.a.run.app"
    assert config.remote_enabled
    assert config.route_mode == "generic"
    assert not config.is_server_side
    assert config.local_model == "openai/gpt-4o-mini"
    assert config.local_enabled is False
    assert config.max_retries == 2
    assert config.timeout == 30.0


def test_explicit_narrative_url_wins(clean_env):
    clean_env.setenv("CLOUD_CHARACTER_CREATION_FULLURL", "https://character-creator-abc.a.run.app")
    clean_env.setenv("NARRATIVE_FORGE_NARRATIVE_URL", " https://narrative.example.test ")

    assert ServicesConfig.from_env().narrative_function_url == "https://narrative.example.test"


def test_non_numeric_environment_value_is_rejected(clean_env):
    clean_env.setenv("NARRATIVE_FORGE_TIMEOUT", "soon")

    with pytest.raises(ValueError, match="NARRATIVE_FORGE_TIMEOUT"):
        ServicesConfig.from_env()


def test_invalid_config_values_are_rejected():
    with pytest.raises(ValueError):
        ServicesConfig(route_mode="broadcast")
    with pytest.raises(ValueError):
        ServicesConfig(execution_context="edge")
    with pytest.raises(ValueError):
        ServicesConfig(max_retries=-1)


def test_config_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown configuration keys: colour"):
        ServicesConfig.from_mapping({"timeout": 10, "colour": "blue"})


def test_config_from_yaml_and_json_files(tmp_path):
    yaml_path = tmp_path / "services.yaml"
    yaml_path.write_text(
        "narrative_function_url: https://narrative.example.test\nmax_retries: 3\n", encoding="utf-8"
    )
    json_path = tmp_path / "services.json"
    json_path.write_text(json.dumps({"route_mode": "generic"}), encoding="utf-8")

    from_yaml = ServicesConfig.from_file(yaml_path)
    from_json = ServicesConfig.from_file(json_path)

    assert from_yaml.remote_enabled
    assert from_yaml.max_retries == 3
    assert from_json.route_mode == "generic"
    assert from_json.with_overrides(local_enabled=False).local_enabled is False


def test_config_file_with_unsupported_suffix(tmp_path):
    path = tmp_path / "services.toml"
    path.write_text("timeout = 3", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported configuration file format"):
        ServicesConfig.from_file(path)


def test_audience_defaults_fill_omitted_fields(story_request):
    request = apply_audience_defaults(replace(story_request, target_audience="teen"))

    assert request.length == "medium"
    assert request.educational_goals == DEFAULT_EDUCATIONAL_GOALS["teen"]
    assert request.include_images is True
    assert request.include_audio is False
    assert request.include_interactive is True


def test_audience_defaults_keep_caller_values(story_request):
    request = apply_audience_defaults(
        replace(story_request, length="long", educational_goals=(), include_images=False)
    )

    assert request.length == "long"
    assert request.educational_goals == ()
    assert request.include_images is False


@pytest.mark.parametrize(
    "prompt, blocked",
    [("A HARMFUL plan", True), ("An adult dragon", True), ("A friendly dragon", False)],
)
def test_keyword_safety_gate(prompt, blocked):
    assert contains_inappropriate_content(prompt) is blocked


@pytest.mark.parametrize(
    "message, expected_status",
    [("Quota exceeded for project", 503), ("Request timed out", 408), ("timeout", 408), ("boom", 500)],
)
def test_describe_generation_error(message, expected_status):
    status, _ = describe_generation_error(RuntimeError(message))

    assert status == expected_status


@pytest.mark.parametrize(
    "changes, code",
    [
        ({"initial_prompt": "  "}, ErrorCode.INVALID_PROMPT),
        ({"genre": "cooking"}, ErrorCode.INVALID_INPUT),
        ({"target_audience": "toddler"}, ErrorCode.INVALID_INPUT),
        ({"length": "epic"}, ErrorCode.INVALID_INPUT),
        ({"chapter_count": 0}, ErrorCode.INVALID_INPUT),
    ],
)
def test_request_validation(story_request, changes, code):
    with pytest.raises(ServiceError) as excinfo:
        replace(story_request, **changes).validate()

    assert excinfo.value.code == code
    assert excinfo.value.status_code == 400
    assert excinfo.value.is_validation_error


def test_request_from_mapping_round_trips_wire_shape():
    payload = {
        "initialPrompt": "A robot learns to paint",
        "genre": "science-fiction",
        "targetAudience": "teen",
        "chapterCount": "4",
        "characters": [{"name": "Bolt", "personality": {"traits": ["kind"]}}],
        "worldContext": {"name": "Neon City", "locations": [{"name": "Tower"}]},
        "skillTargets": ["imagery", {"skill": "dialogue", "goal": "Natural speech"}],
        "educationalGoals": [],
        "includeAudio": "true",
    }

    request = StoryGenerationRequest.from_mapping(payload)

    assert request.chapter_count == 4
    assert request.characters[0].personality_traits == ("kind",)
    assert request.world_context.location_names == ("Tower",)
    assert [target.skill for target in request.skill_targets] == ["imagery", "dialogue"]
    assert request.educational_goals == ()
    assert request.include_audio is True
    assert request.include_images is None
    wire = request.as_dict()
    assert wire["chapterCount"] == 4
    assert wire["educationalGoals"] == []
    assert "includeImages" not in wire


@pytest.mark.parametrize("item", [None, 42, "   ", {"goal": "Natural speech"}, {"skill": " "}])
def test_skill_target_rejects_malformed_entries_with_value_error(item):
    with pytest.raises(ValueError):
        SkillTarget.from_mapping(item)


def test_skill_target_accepts_string_or_object():
    assert SkillTarget.from_mapping(" imagery ") == SkillTarget(skill="imagery")
    assert SkillTarget.from_mapping({"skill": "dialogue", "targetLevel": "4"}).target_level == 4


def test_story_yaml_export_is_loadable(story_request):
    story = parse_story_response(story_json(), story_request, ai_model="m")

    loaded = yaml.safe_load(story.to_yaml())

    assert loaded["title"] == "The Lantern Path"
    assert [chapter["chapterNumber"] for chapter in loaded["chapters"]] == [1, 2]
    assert loaded["characters"][0]["name"] == "Aria"
    assert loaded["metadata"]["themes"] == ["courage"]


@pytest.mark.asyncio
async def test_local_generator_rejects_empty_model_text(story_request):
    async def empty_completion(**kwargs):
        return ChatResult(text="", raw={}, model=kwargs["model"])

    generator = LocalNarrativeGenerator(completion_fn=empty_completion)

    with pytest.raises(RuntimeError, match="did not contain any text content"):
        await generator.generate_story(story_request)


def test_local_generator_requires_positive_batch_size():
    with pytest.raises(ValueError):
        LocalNarrativeGenerator(batch_size=0)
