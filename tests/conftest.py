"""Shared fixtures and fakes for the Narrative Forge test suite."""

import json
import re
from typing import Any, Callable

import httpx
import pytest

from narrative_forge.ai_services import AIServicesClient, AIServicesTransport
from narrative_forge.common import ChatResult
from narrative_forge.story_generation import StoryCharacter, StoryGenerationRequest, WorldContext

BASE_URL = "https://functions.example.test"

CHAPTER_HEADING = re.compile(r"Write Chapter (\d+):")


def envelope(data: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "timestamp": "2024-01-01T00:00:00Z"}
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return payload


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request to {request.url}")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if callable(response):
            return response(request)
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def bodies(self) -> list[Any]:
        return [json.loads(request.content) if request.content else None for request in self.requests]

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_transport(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> AIServicesTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AIServicesTransport(BASE_URL, client=client, **kwargs)


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> AIServicesClient:
    return AIServicesClient(make_transport(handler), **kwargs)


class FakeCompletion:
    """
    Async stand-in for ``call_chat_completion``.

    ``responder`` receives the user prompt and returns the model text.
    """

    def __init__(self, responder: Callable[[str], str] | str):
        self._responder = responder
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> ChatResult:
        self.calls.append(kwargs)
        user_prompt = kwargs["messages"][-1]["content"]
        text = self._responder(user_prompt) if callable(self._responder) else self._responder
        return ChatResult(text=text, raw={}, model=kwargs["model"])

    @property
    def user_prompts(self) -> list[str]:
        return [call["messages"][-1]["content"] for call in self.calls]


class FailingCompletion:
    def __init__(self, message: str = "model exploded"):
        self.message = message
        self.calls = 0

    async def __call__(self, **kwargs: Any) -> ChatResult:
        self.calls += 1
        raise RuntimeError(self.message)


def story_json(*, chapters: list[dict[str, Any]] | None = None, title: str = "The Lantern Path") -> str:
    if chapters is None:
        chapters = [
            {"chapterNumber": 1, "title": "The Map", "content": "Aria found a glowing map in the attic."},
            {"chapterNumber": 2, "title": "The Forest", "content": "The map led her into a whispering forest."},
        ]
    payload = {
        "title": title,
        "description": "A girl follows a glowing map.",
        "synopsis": "Aria learns courage.",
        "chapters": chapters,
        "metadata": {"themes": ["courage"]},
    }
    return "Here is your story:\n" + json.dumps(payload) + "\nEnjoy!"


def outlined_chapter_text(user_prompt: str) -> str:
    match = CHAPTER_HEADING.search(user_prompt)
    number = match.group(1) if match else "?"
    return f"Chapter {number} prose with a few words."


@pytest.fixture
def story_request() -> StoryGenerationRequest:
    return StoryGenerationRequest(
        initial_prompt="A brave girl discovers a glowing map",
        genre="fantasy",
        target_audience="child",
        characters=(StoryCharacter(name="Aria", narrative_role="protagonist"),),
        world_context=WorldContext(name="Eldoria", description="A land of floating islands"),
    )
