"""
CLI example to generate a complete Narrative Forge story.

Usage:
    python scripts/run_story_generation.py \
        --request story_request.yaml \
        --rpg-character characters/aria.json \
        --world worlds/eldoria.yaml \
        --output story.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from narrative_forge import GenerationFailedError, ServiceError, ServicesConfig, build_orchestrator
from narrative_forge.integrations import story_character_from_rpg, world_context_from_world_builder
from narrative_forge.story_generation import StoryGenerationRequest


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for story generation.
    """

    def __init__(self) -> None:
        self._chapter_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "cache:lookup":
                self._write("[1/4] Checking the story cache...")
            case "cache:hit":
                self._write("[1/4] Found a cached story.")
            case "tier:attempt":
                tier = payload.get("tier", "unknown")
                self._write(f"[2/4] Generating the story with the {tier} tier...")
            case "tier:failed":
                tier = payload.get("tier", "unknown")
                self._write(f"[2/4] The {tier} tier failed: {payload.get('error', 'unknown error')}")
            case "tier:succeeded":
                self._write(f"[2/4] The {payload.get('tier', 'unknown')} tier returned a story.")
            case "chapters:batch_started":
                if self._chapter_bar is None:
                    total = payload.get("total", 0)
                    self._write(f"[3/4] Writing {total} outlined chapters...")
                    self._chapter_bar = tqdm(total=total, desc="Chapters", unit="chapter")
                self._chapter_bar.set_description(
                    f"Chapters {payload.get('start')}-{payload.get('end')}"
                )
            case "chapters:batch_done":
                if self._chapter_bar is not None:
                    self._chapter_bar.update(payload.get("end", 0) - payload.get("start", 1) + 1)
            case "story:complete":
                self.close()
                word_count = payload.get("word_count")
                summary = (
                    f" (~{word_count} words)." if isinstance(word_count, int) and word_count > 0 else "."
                )
                self._write(f"[4/4] Story complete with {payload.get('chapters', 0)} chapters{summary}")

    def close(self) -> None:
        if self._chapter_bar is not None:
            self._chapter_bar.close()
            self._chapter_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a Narrative Forge story.")
    parser.add_argument(
        "--request",
        default=None,
        help="Path to a story request YAML/JSON file (camelCase keys).",
    )
    parser.add_argument("--prompt", default=None, help="Story idea; overrides the request file.")
    parser.add_argument("--genre", default=None, help="Story genre; overrides the request file.")
    parser.add_argument(
        "--audience",
        default=None,
        help="Target audience; overrides the request file.",
    )
    parser.add_argument(
        "--length",
        default=None,
        help="Story length (short, medium, long, novel). Defaults from the audience.",
    )
    parser.add_argument(
        "--rpg-character",
        action="append",
        default=[],
        help="RPG Immersive character export to include in the story (repeatable).",
    )
    parser.add_argument(
        "--world",
        default=None,
        help="World Builder world export to set the story in.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML/JSON services configuration file. Defaults to the environment.",
    )
    parser.add_argument(
        "--route-mode",
        choices=("dedicated", "generic"),
        default=None,
        help="Override the AI services request shape.",
    )
    parser.add_argument(
        "--local-model",
        default=None,
        help="Override the model used by the local generation tier.",
    )
    parser.add_argument(
        "--no-local",
        dest="local_enabled",
        action="store_false",
        default=None,
        help="Disable the local generation tier.",
    )
    parser.add_argument(
        "--output",
        default="story.yaml",
        help="Output YAML file to store the generated story.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def load_mapping(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported file format for {path}. Use YAML or JSON.")

    if not isinstance(data, dict):
        raise ValueError(f"{path} must deserialize to a mapping.")
    return data


def build_request_mapping(args: argparse.Namespace) -> Dict[str, Any]:
    mapping: Dict[str, Any] = load_mapping(Path(args.request)) if args.request else {}
    for key, value in (
        ("initialPrompt", args.prompt),
        ("genre", args.genre),
        ("targetAudience", args.audience),
        ("length", args.length),
    ):
        if value is not None:
            mapping[key] = value

    if args.rpg_character:
        characters = list(mapping.get("characters") or [])
        for path in args.rpg_character:
            characters.append(story_character_from_rpg(load_mapping(Path(path))).as_dict())
        mapping["characters"] = characters

    if args.world:
        mapping["worldContext"] = world_context_from_world_builder(load_mapping(Path(args.world))).as_dict()
    return mapping


def load_config(args: argparse.Namespace) -> ServicesConfig:
    config = ServicesConfig.from_file(args.config) if args.config else ServicesConfig.from_env()
    overrides = {
        key: value
        for key, value in (
            ("route_mode", args.route_mode),
            ("local_model", args.local_model),
            ("local_enabled", args.local_enabled),
        )
        if value is not None
    }
    return config.with_overrides(**overrides) if overrides else config


async def generate(config: ServicesConfig, request: StoryGenerationRequest, tracker: ProgressTracker):
    async with build_orchestrator(config) as orchestrator:
        return await orchestrator.generate_story(request, progress_callback=tracker)


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args)
    request = StoryGenerationRequest.from_mapping(build_request_mapping(args))
    tracker = ProgressTracker()

    try:
        story = asyncio.run(generate(config, request, tracker))
    except ServiceError as exc:
        tqdm.write(f"Story generation failed: {exc}")
        if isinstance(exc, GenerationFailedError):
            for attempt in exc.attempts:
                tqdm.write(f"  - {attempt.describe()}")
        return 1
    finally:
        tracker.close()

    output_path = Path(args.output)
    output_path.write_text(story.to_yaml(), encoding="utf-8")
    print(f"Saved story to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
