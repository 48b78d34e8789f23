import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from narrative_forge.api import VerifiedUser, create_app, create_story_router
from narrative_forge.api.story_routes import RESPONSE_AI_MODEL, SERVICE_NAME, STORY_GENERATOR_PATH
from narrative_forge.common import GenerationFailedError, ServiceError
from narrative_forge.common.errors import ErrorCode
from narrative_forge.pipeline import LocalNarrativeGenerator, NarrativeOrchestrator

from conftest import FakeCompletion, story_json

AUTH = {"Authorization": "Bearer good-token"}

PAYLOAD = {
    "initialPrompt": "A brave girl discovers a glowing map",
    "genre": "fantasy",
    "targetAudience": "child",
    "characters": [{"name": "Aria", "narrativeRole": "protagonist"}],
}


async def verify_token(token):
    if token != "good-token":
        raise PermissionError("bad token")
    return VerifiedUser(uid="user-1", email="aria@example.test")


class RaisingOrchestrator:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    async def generate_story(self, request, **kwargs):
        self.calls += 1
        raise self.error

    async def aclose(self):
        pass


def client_for(orchestrator):
    app = FastAPI()
    app.include_router(create_story_router(orchestrator, verify_token))
    return TestClient(app)


@pytest.fixture
def completion():
    return FakeCompletion(story_json())


@pytest.fixture
def client(completion):
    orchestrator = NarrativeOrchestrator(local=LocalNarrativeGenerator(completion_fn=completion))
    return client_for(orchestrator)


def test_generates_story_for_authenticated_user(client, completion):
    response = client.post(STORY_GENERATOR_PATH, json=PAYLOAD, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    story = body["story"]
    assert story["title"] == "The Lantern Path"
    assert story["userId"] == "user-1"
    assert story["userEmail"] == "aria@example.test"
    assert story["generationParams"]["length"] == "short"
    assert story["processingTime"] == body["metadata"]["processingTime"]
    assert body["metadata"]["aiModel"] == RESPONSE_AI_MODEL
    assert body["metadata"]["safety"] == {
        "contentFiltered": True,
        "ageAppropriate": True,
        "educationalValue": 7,
    }
    assert len(completion.calls) == 1


def test_missing_authorization_header(client, completion):
    response = client.post(STORY_GENERATOR_PATH, json=PAYLOAD)

    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}
    assert completion.calls == []


def test_non_bearer_authorization_header(client):
    response = client.post(STORY_GENERATOR_PATH, json=PAYLOAD, headers={"Authorization": "Basic abc"})

    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}


def test_rejected_token(client):
    response = client.post(
        STORY_GENERATOR_PATH, json=PAYLOAD, headers={"Authorization": "Bearer forged"}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid authentication token"}


@pytest.mark.parametrize("content", [b"{not json", b"[1, 2, 3]"])
def test_malformed_body(client, content):
    response = client.post(
        STORY_GENERATOR_PATH,
        content=content,
        headers={**AUTH, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request format"}


@pytest.mark.parametrize("missing", ["initialPrompt", "genre", "targetAudience"])
def test_missing_required_field(client, missing):
    payload = {key: value for key, value in PAYLOAD.items() if key != missing}

    response = client.post(STORY_GENERATOR_PATH, json=payload, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {
        "error": "Missing required fields: initialPrompt, genre, targetAudience"
    }


def test_unknown_audience(client):
    response = client.post(
        STORY_GENERATOR_PATH, json={**PAYLOAD, "targetAudience": "toddler"}, headers=AUTH
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid target audience"}


def test_unsafe_prompt_is_blocked(client, completion):
    response = client.post(
        STORY_GENERATOR_PATH,
        json={**PAYLOAD, "initialPrompt": "A story full of Violence"},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Content does not meet safety guidelines"}
    assert completion.calls == []


@pytest.mark.parametrize(
    "extra",
    [
        {"chapterCount": "many"},
        {"skillTargets": [None]},
        {"skillTargets": [42]},
        {"skillTargets": ["  "]},
        {"skillTargets": [{"goal": "no skill"}]},
    ],
)
def test_unparseable_optional_fields(client, completion, extra):
    response = client.post(STORY_GENERATOR_PATH, json={**PAYLOAD, **extra}, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request format"}
    assert completion.calls == []


def test_invalid_genre_reports_validation_message(client):
    response = client.post(STORY_GENERATOR_PATH, json={**PAYLOAD, "genre": "cooking"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid genre 'cooking'")


@pytest.mark.parametrize(
    "message, status_code, expected",
    [
        ("Failed to generate story: Quota exceeded", 503, "AI service temporarily unavailable. Please try again later."),
        ("Failed to generate story: request timeout", 408, "Story generation timed out. Please try a shorter prompt."),
        ("Failed to generate story: model exploded", 500, "Story generation failed. Please try again."),
    ],
)
def test_generation_failures_map_to_user_messages(message, status_code, expected):
    client = client_for(RaisingOrchestrator(GenerationFailedError(message)))

    response = client.post(STORY_GENERATOR_PATH, json=PAYLOAD, headers=AUTH)

    assert response.status_code == status_code
    assert response.json() == {"error": expected}


def test_validation_error_from_orchestrator_is_a_bad_request():
    error = ServiceError("Initial prompt cannot be empty", code=ErrorCode.INVALID_PROMPT, status_code=400)
    client = client_for(RaisingOrchestrator(error))

    response = client.post(STORY_GENERATOR_PATH, json=PAYLOAD, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "Initial prompt cannot be empty"}


def test_health_probe(client):
    response = client.get(STORY_GENERATOR_PATH)

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == SERVICE_NAME
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["timestamp"]


def test_create_app_serves_router_and_closes_orchestrator():
    class ClosingOrchestrator(RaisingOrchestrator):
        closed = False

        async def aclose(self):
            self.closed = True

    orchestrator = ClosingOrchestrator(RuntimeError("unused"))
    app = create_app(orchestrator, verify_token)

    with TestClient(app) as client:
        assert client.get(STORY_GENERATOR_PATH).status_code == 200

    assert orchestrator.closed
    assert app.title == SERVICE_NAME
