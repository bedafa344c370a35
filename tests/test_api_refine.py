from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from conftest import USER_ID
from promptbuilder.models.subscription import Subscription
from promptbuilder.services.providers import ProviderError, ProviderName
from promptbuilder.services.refinement import QualificationResult


def _active_subscription():
    return Subscription(
        user_id=USER_ID,
        plan_id="pro",
        status="active",
        current_period_end=datetime.now(timezone.utc) + timedelta(days=30),
    )


def test_refine_requires_auth(client):
    response = client.post("/api/refine", json={"prompt": "Write a poem"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_refine_denied_without_subscription(client, headers):
    response = client.post("/api/refine", json={"prompt": "Write a poem"}, headers=headers)
    assert response.status_code == 403
    assert "requires an active subscription or trial" in response.json()["error"]


def test_refine_denied_for_free_plan(client, headers, seed):
    seed(Subscription(user_id=USER_ID, plan_id="free", status="active",
                      current_period_end=datetime.now(timezone.utc) + timedelta(days=30)))
    response = client.post("/api/refine", json={"prompt": "Write a poem"}, headers=headers)
    assert response.status_code == 403


def test_refine_with_active_subscription(client, headers, seed):
    seed(_active_subscription())
    with patch("promptbuilder.api.routes.refine.refine_prompt", new=AsyncMock(return_value="A better poem prompt")) as refine:
        response = client.post("/api/refine", json={"prompt": "Write a poem"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"refinedPrompt": "A better poem prompt"}
    assert refine.await_args.args[1] == "Write a poem"


def test_refine_during_trial(client, headers, seed):
    seed(Subscription(
        user_id=USER_ID,
        plan_id="free",
        status="trialing",
        trial_ends_at=datetime.now(timezone.utc) + timedelta(days=5),
    ))
    with patch("promptbuilder.api.routes.refine.refine_prompt", new=AsyncMock(return_value="Trial prompt")):
        response = client.post("/api/refine", json={"prompt": "Write a poem"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"refinedPrompt": "Trial prompt"}


def test_refine_from_components(client, headers, seed):
    seed(_active_subscription())
    body = {
        "components": [{"id": 0, "type": "Instructions", "content": "Summarize {{doc}}"}],
        "variables": {"doc": "the memo"},
    }
    with patch("promptbuilder.api.routes.refine.refine_prompt", new=AsyncMock(return_value="ok")) as refine:
        response = client.post("/api/refine", json=body, headers=headers)
    assert response.status_code == 200
    assert refine.await_args.args[1] == "**Instructions:**\nSummarize the memo"


def test_refine_rejects_empty_prompt_and_bad_provider(client, headers, seed):
    seed(_active_subscription())
    assert client.post("/api/refine", json={"prompt": "  "}, headers=headers).status_code == 400
    response = client.post("/api/refine", json={"prompt": "x", "provider": "mistral"}, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Unsupported provider: mistral"}


def test_refine_unconfigured_managed_provider(client, headers, seed):
    seed(_active_subscription())
    response = client.post("/api/refine", json={"prompt": "x", "provider": "anthropic"}, headers=headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Anthropic API key not configured on server."}


def test_qualify_prompt(client, headers, seed):
    seed(_active_subscription())
    with patch(
        "promptbuilder.api.routes.refine.qualify_prompt",
        new=AsyncMock(return_value=QualificationResult("too_vague_or_incomplete")),
    ):
        response = client.post("/api/qualify-prompt", json={"promptText": "summary"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"type": "too_vague_or_incomplete"}


def test_qualify_prompt_is_gated(client, headers):
    response = client.post("/api/qualify-prompt", json={"promptText": "summary"}, headers=headers)
    assert response.status_code == 403


def test_refine_user_requires_key_when_anonymous(client):
    body = {"prompt": "Write a poem", "provider": "openai", "model": "gpt-4o"}
    response = client.post("/api/refine-user", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "User API Key is required."}


def test_refine_user_with_request_key(client):
    body = {"prompt": "Write a poem", "provider": "openai", "model": "gpt-4o", "apiKey": "sk-user"}
    with patch("promptbuilder.api.routes.refine.refine_prompt", new=AsyncMock(return_value="Refined")) as refine:
        response = client.post("/api/refine-user", json=body)
    assert response.status_code == 200
    assert response.json() == {"refinedPrompt": "Refined"}
    provider = refine.await_args.args[0]
    assert provider.api_key == "sk-user"
    assert "SOLE TASK" in refine.await_args.kwargs["system_prompt"]


def test_refine_user_maps_provider_errors(client):
    body = {"prompt": "Write a poem", "provider": "openai", "model": "gpt-4o", "apiKey": "sk-user"}
    error = ProviderError(ProviderName.OPENAI, 401, "Incorrect API key provided")
    with patch("promptbuilder.api.routes.refine.refine_prompt", new=AsyncMock(side_effect=error)):
        response = client.post("/api/refine-user", json=body)
    assert response.status_code == 500
    assert response.json() == {"error": "Authentication failed. Please check your API Key."}


def test_validation_errors_use_error_envelope(client):
    response = client.post("/api/refine-user", json={"provider": "openai"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body."
    assert response.json()["details"]


def test_compose_endpoint(client):
    body = {
        "components": [
            {"id": 0, "type": "Role", "content": "You are {{persona}}"},
            {"id": 1, "type": "Context", "content": ""},
        ],
        "variables": {"persona": "a pirate", "unused": "x"},
    }
    response = client.post("/api/compose", json=body)
    assert response.status_code == 200
    assert response.json() == {
        "prompt": "**Role:**\nYou are {{persona}}\n\n---\n\n**Context:**",
        "renderedPrompt": "**Role:**\nYou are a pirate\n\n---\n\n**Context:**",
        "variables": ["persona"],
        "variableValues": {"persona": "a pirate"},
    }
