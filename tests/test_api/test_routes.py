"""
Tests for API Routes

Tests for storyboardgen/api/*.py wired through storyboardgen/main.py
"""

import json

import pytest
from fastapi.testclient import TestClient

from storyboardgen.api.deps import (
    get_caption_settings_service,
    get_current_user_id,
    get_generation_context,
    get_model_client,
    get_orchestrator,
    get_persistence,
    get_regenerator,
    get_subscription_service,
    get_usage_ledger,
    limiter,
)
from storyboardgen.core.config import settings
from storyboardgen import main as main_module
from storyboardgen.main import app
from storyboardgen.services.subscriptions import SubscriptionService

from tests.conftest import USER_ID


@pytest.fixture
def client(
    orchestrator, regenerator, ledger, persistence, model, caption_settings, subscription_store, paid_context,
    monkeypatch,
):
    """Test client with services backed by the in-memory stores."""
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides.update({
        get_current_user_id: lambda: USER_ID,
        get_generation_context: lambda: paid_context,
        get_orchestrator: lambda: orchestrator,
        get_regenerator: lambda: regenerator,
        get_usage_ledger: lambda: ledger,
        get_persistence: lambda: persistence,
        get_model_client: lambda: model,
        get_caption_settings_service: lambda: caption_settings,
        get_subscription_service: lambda: SubscriptionService(
            subscription_store, ledger, webhook_secret="", production=False,
        ),
    })
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def reference_payload(reference):
    return {"id": reference.id, "data": reference.data, "mime_type": reference.mime_type}


class TestHealth:
    """Tests for health endpoints."""

    def test_health(self, client):
        """Test the health check reports the service."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["service"] == "storyboardgen-api"

    def test_ready_when_configured(self, client, monkeypatch):
        """Test readiness passes once Supabase and Gemini are configured."""
        monkeypatch.setattr(settings, "supabase_url", "https://project.supabase.co")
        monkeypatch.setattr(settings, "supabase_service_key", "service-key")
        monkeypatch.setattr(settings, "gemini_api_key", "gemini-key")

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_lists_missing_settings(self, client, monkeypatch):
        """Test readiness fails with 503 naming each missing setting."""
        monkeypatch.setattr(settings, "supabase_url", "https://project.supabase.co")
        monkeypatch.setattr(settings, "supabase_service_key", "")
        monkeypatch.setattr(settings, "gemini_api_key", "")

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["missing"] == ["SUPABASE_SERVICE_KEY", "GEMINI_API_KEY"]

    def test_startup_configures_logging(self, monkeypatch):
        """Test serving the app configures logging at the configured level."""
        levels = []
        monkeypatch.setattr(main_module, "setup_logging", lambda level: levels.append(level))

        with TestClient(app):
            pass

        assert levels == [settings.log_level]


class TestGenerationRoutes:
    """Tests for /api/generation."""

    def test_run_from_prompt_text(self, client, reference_payload, usage_store):
        """Test a newline-separated prompt block is split and generated."""
        response = client.post("/api/generation/runs", json={
            "prompt_text": "Wake: Boy wakes up\n\nBreakfast: Boy eats",
            "references": [reference_payload],
            "project_name": "Morning",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["successful_count"] == 2
        assert body["project_id"]
        assert [r["prompt"] for r in body["results"]] == ["Wake: Boy wakes up", "Breakfast: Boy eats"]
        assert usage_store.row().used == 2

    def test_insufficient_credits_is_402(self, client, reference_payload, usage_store, pro_limit):
        """Test the pre-flight refusal maps to 402 with the remaining count."""
        usage_store.seed(USER_ID, used=pro_limit, monthly_limit=pro_limit)

        response = client.post("/api/generation/runs", json={
            "prompts": ["A"], "references": [reference_payload],
        })

        assert response.status_code == 402
        detail = response.json()["detail"]
        assert detail["code"] == "insufficient_credits"
        assert detail["remaining"] == 0

    def test_missing_references_is_400(self, client):
        """Test a run without references is a validation error."""
        response = client.post("/api/generation/runs", json={"prompts": ["A"], "references": []})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"

    def test_regenerate(self, client, reference_payload):
        """Test one scene is regenerated and returned in place."""
        response = client.post("/api/generation/regenerate", json={
            "scene_index": 1,
            "results": [{"prompt": "A"}, {"prompt": "B", "error": "Model overloaded"}],
            "references": [reference_payload],
        })

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[1]["image_url"].startswith("data:image/png;base64,")
        assert results[1]["error"] is None

    def test_suggestions(self, client):
        """Test scene suggestions come back without touching credits."""
        response = client.post("/api/generation/suggestions", json={"topic": "Morning routine", "count": 2})

        assert response.status_code == 200
        assert response.json()["prompts"] == [
            "Scene 1 about Morning routine",
            "Scene 2 about Morning routine",
        ]

    def test_suggestions_are_rate_limited(self, client, monkeypatch):
        """Test requests past the configured limit are refused with 429."""
        monkeypatch.setattr(limiter, "enabled", True)
        limiter.reset()
        allowed = int(settings.suggestion_rate_limit.split("/")[0])

        statuses = [
            client.post("/api/generation/suggestions", json={"topic": "Morning"}).status_code
            for _ in range(allowed + 1)
        ]

        assert statuses[:allowed] == [200] * allowed
        assert statuses[-1] == 429
        limiter.reset()


class TestUsageRoutes:
    """Tests for /api/usage."""

    def test_get_usage(self, client, usage_store):
        """Test the current period is returned with remaining credits."""
        usage_store.seed(USER_ID, used=20, monthly_limit=180)

        response = client.get("/api/usage")

        assert response.status_code == 200
        assert response.json()["remaining"] == 160

    def test_reset_plan(self, client, usage_store):
        """Test the active plan can reset the period."""
        usage_store.seed(USER_ID, used=20, monthly_limit=90)

        response = client.post("/api/usage/reset-plan", json={"plan_type": "pro"})

        assert response.status_code == 200
        assert response.json()["used"] == 0
        assert response.json()["monthly_limit"] == 180

    def test_reset_plan_for_other_plan_is_forbidden(self, client):
        """Test a plan the account does not hold cannot be reset to."""
        response = client.post("/api/usage/reset-plan", json={"plan_type": "business"})

        assert response.status_code == 403


class TestProjectRoutes:
    """Tests for /api/projects."""

    def test_missing_project_is_404(self, client):
        """Test an unknown project id is not found."""
        response = client.get("/api/projects/does-not-exist")

        assert response.status_code == 404

    def test_list_after_run(self, client, reference_payload):
        """Test a saved run appears in the project list."""
        client.post("/api/generation/runs", json={
            "prompts": ["A"], "references": [reference_payload], "project_name": "Saved",
        })

        response = client.get("/api/projects")

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Saved"]


class TestCaptionSettingsRoutes:
    """Tests for /api/caption-settings."""

    def test_get_seeds_defaults(self, client, caption_settings_store):
        """Test the first read returns and stores the default settings."""
        response = client.get("/api/caption-settings")

        assert response.status_code == 200
        body = response.json()
        assert body["hashtags"] == []
        assert body["caption_rules"]["tiktok"][0]["is_default"] is True
        assert caption_settings_store.creates == 1

    def test_put_updates_sections(self, client, caption_settings_store):
        """Test a partial update changes only the sections sent."""
        response = client.put("/api/caption-settings", json={
            "hashtags": ["kids"],
            "guidelines": [{"name": "Tone", "rule": "Gentle"}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["hashtags"] == ["#kids"]
        assert [g["name"] for g in body["guidelines"]] == ["Default", "Tone"]
        assert caption_settings_store.rows[USER_ID]["hashtags"] == ["#kids"]

    def test_saved_hashtags_reach_runs(self, client, reference_payload):
        """Test a run without hashtags uses the saved ones."""
        client.put("/api/caption-settings", json={"hashtags": ["#saved"]})

        response = client.post("/api/generation/runs", json={
            "prompts": ["Boy waves"],
            "references": [reference_payload],
        })

        assert response.status_code == 200
        assert response.json()["captions"]["tiktok"] == ["TikTok Boy waves\n\n#saved"]

    def test_store_failure_is_500(self, client, caption_settings_store):
        """Test a settings store outage is reported as a server error."""
        caption_settings_store.fail_reads = True

        response = client.get("/api/caption-settings")

        assert response.status_code == 500


class TestWebhookRoutes:
    """Tests for /api/webhooks."""

    def test_checkout_event(self, client, subscription_store):
        """Test a checkout event is applied and acknowledged."""
        payload = {
            "type": "checkout.session.completed",
            "data": {"object": {"customer": "cus_1", "client_reference_id": USER_ID}},
        }

        response = client.post("/api/webhooks/stripe", content=json.dumps(payload))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert subscription_store.rows[USER_ID]["stripe_customer_id"] == "cus_1"

    def test_malformed_payload_is_400(self, client):
        """Test an unreadable payload is rejected."""
        response = client.post("/api/webhooks/stripe", content=b"nope")

        assert response.status_code == 400
