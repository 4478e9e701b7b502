"""
Pytest Configuration and Fixtures

Shared fixtures for all tests: in-memory stores, a scripted model client
and the services wired on top of them.
"""

import asyncio
import io
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from storyboardgen.core.constants import PLAN_CREDITS, SubscriptionPlan
from storyboardgen.core.exceptions import ModelUnavailableError
from storyboardgen.models.generation import Captions, ReferenceImage, SceneSummaries
from storyboardgen.models.project import ProjectOutput
from storyboardgen.models.usage import MonthlyUsage, SubscriptionInfo
from storyboardgen.services.gemini import GeneratedImage
from storyboardgen.services.caption_settings import CaptionSettingsService
from storyboardgen.services.orchestrator import SceneOrchestrator
from storyboardgen.services.persistence import ProjectPersistence
from storyboardgen.services.regeneration import SceneRegenerator
from storyboardgen.services.usage_ledger import GenerationContext, UsageLedger, current_period_start
from storyboardgen.stores.base import (
    CaptionSettingsStore,
    ObjectStorage,
    ProfileStore,
    ProjectStore,
    SubscriptionStore,
    UsageStore,
)

USER_ID = "user-123"


def make_png(color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


PNG_BYTES = make_png()


# =============================================================================
# IN-MEMORY STORES
# =============================================================================

class InMemoryUsageStore(UsageStore):
    """Usage rows with a single-step check-and-increment."""

    def __init__(self):
        self.rows: Dict[tuple, MonthlyUsage] = {}
        self.consume_calls: List[int] = []
        self.fail_reads = False

    def seed(self, user_id: str, used: int, monthly_limit: int, period_start: date = None) -> None:
        period = period_start or current_period_start()
        self.rows[(user_id, period)] = MonthlyUsage(
            user_id=user_id, period_start=period, used=used, monthly_limit=monthly_limit,
        )

    def row(self, user_id: str = USER_ID) -> Optional[MonthlyUsage]:
        return self.rows.get((user_id, current_period_start()))

    async def get_usage(self, user_id, period_start):
        if self.fail_reads:
            raise ConnectionError("usage table unreachable")
        row = self.rows.get((user_id, period_start))
        return row.model_copy() if row else None

    async def consume(self, user_id, period_start, amount, monthly_limit):
        self.consume_calls.append(amount)
        # Let concurrent callers interleave before the check
        await asyncio.sleep(0)
        key = (user_id, period_start)
        row = self.rows.get(key)
        if row is None:
            if amount > monthly_limit:
                return None
            row = MonthlyUsage(user_id=user_id, period_start=period_start, used=0, monthly_limit=monthly_limit)
        if row.used + amount > row.monthly_limit:
            return None
        self.rows[key] = row.model_copy(update={"used": row.used + amount})
        return self.rows[key].model_copy()

    async def set_limit(self, user_id, period_start, monthly_limit):
        row = self.rows.get((user_id, period_start))
        used = row.used if row else 0
        self.rows[(user_id, period_start)] = MonthlyUsage(
            user_id=user_id, period_start=period_start, used=used, monthly_limit=monthly_limit,
        )
        return self.rows[(user_id, period_start)].model_copy()

    async def reset(self, user_id, period_start, monthly_limit):
        self.rows[(user_id, period_start)] = MonthlyUsage(
            user_id=user_id, period_start=period_start, used=0, monthly_limit=monthly_limit,
        )
        return self.rows[(user_id, period_start)].model_copy()


class InMemoryProfileStore(ProfileStore):
    def __init__(self):
        self.flags: Dict[str, bool] = {}
        self.fail_writes = False

    async def has_generated_free_image(self, user_id):
        return self.flags.get(user_id, False)

    async def mark_free_image_generated(self, user_id):
        if self.fail_writes:
            raise ConnectionError("profiles table unreachable")
        self.flags[user_id] = True


class InMemorySubscriptionStore(SubscriptionStore):
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}

    async def get_subscription(self, user_id):
        row = self.rows.get(user_id)
        return SubscriptionInfo.model_validate({"user_id": user_id, **row}) if row else None

    async def find_user_by_customer(self, customer_id):
        for user_id, row in self.rows.items():
            if row.get("stripe_customer_id") == customer_id:
                return user_id
        return None

    async def upsert_subscription(self, user_id, fields):
        self.rows.setdefault(user_id, {}).update(fields)

    async def deactivate_by_user(self, user_id):
        if user_id in self.rows:
            self.rows[user_id]["is_active"] = False

    async def deactivate_by_subscription(self, subscription_id):
        for row in self.rows.values():
            if row.get("stripe_subscription_id") == subscription_id:
                row["is_active"] = False


class InMemoryProjectStore(ProjectStore):
    def __init__(self):
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.outputs: Dict[str, List[Dict[str, Any]]] = {}
        self.created = 0
        self.fail_replace = False

    async def create_project(self, user_id, fields):
        project_id = str(uuid.uuid4())
        self.projects[project_id] = {"id": project_id, "user_id": user_id, **fields}
        self.created += 1
        return project_id

    async def update_project(self, user_id, project_id, fields):
        project = self.projects.get(project_id)
        if not project or project["user_id"] != user_id:
            raise LookupError(f"Project {project_id} not found")
        project.update(fields)

    async def replace_outputs(self, project_id, outputs: List[ProjectOutput]):
        if self.fail_replace:
            raise ConnectionError("project_outputs unreachable")
        self.outputs[project_id] = [
            {
                "project_id": project_id,
                "scene_index": output.scene_index,
                "prompt": output.prompt,
                "title": output.title,
                "description": output.description,
                "file_path": output.image_pointer,
                "mime_type": output.mime_type,
            }
            for output in outputs
        ]

    async def list_projects(self, user_id):
        rows = [p for p in self.projects.values() if p["user_id"] == user_id]
        return list(reversed(rows))

    async def get_project(self, user_id, project_id):
        project = self.projects.get(project_id)
        if project and project["user_id"] == user_id:
            return project
        return None

    async def get_outputs(self, project_id):
        return sorted(self.outputs.get(project_id, []), key=lambda row: row["scene_index"])


class InMemoryObjectStorage(ObjectStorage):
    """Bucket whose signed URLs look like ``https://storage.test/<path>?ttl=<n>``."""

    base_url = "https://storage.test/"

    def __init__(self):
        self.objects: Dict[str, tuple] = {}
        self.uploads: List[str] = []
        self.downloads: List[str] = []
        self.removed: List[str] = []
        self.fail_uploads = False
        self.fail_removes = False
        self.fail_signing = set()

    async def upload(self, path, data, mime_type):
        if self.fail_uploads:
            raise ConnectionError("storage unreachable")
        self.uploads.append(path)
        self.objects[path] = (data, mime_type)

    async def download(self, path):
        self.downloads.append(path)
        if path not in self.objects:
            raise LookupError(path)
        return self.objects[path][0]

    async def remove(self, paths):
        if self.fail_removes:
            raise ConnectionError("storage unreachable")
        for path in paths:
            self.removed.append(path)
            self.objects.pop(path, None)

    async def create_signed_url(self, path, ttl_seconds):
        if path in self.fail_signing:
            raise LookupError(path)
        return f"{self.base_url}{path}?ttl={ttl_seconds}"

    def path_from_url(self, url):
        if not url.startswith(self.base_url):
            return None
        return url[len(self.base_url):].split("?", 1)[0] or None


class InMemoryCaptionSettingsStore(CaptionSettingsStore):
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.creates = 0
        self.fail_reads = False

    async def get_settings(self, user_id):
        if self.fail_reads:
            raise ConnectionError("caption_settings unreachable")
        row = self.rows.get(user_id)
        return dict(row) if row else None

    async def create_settings(self, user_id, fields):
        self.creates += 1
        self.rows.setdefault(user_id, dict(fields))

    async def update_settings(self, user_id, fields):
        if user_id not in self.rows:
            raise LookupError(f"Caption settings for {user_id} not found")
        self.rows[user_id].update(fields)


# =============================================================================
# SCRIPTED MODEL
# =============================================================================

class ScriptedModel:
    """Stand-in for the Gemini client.

    ``failures`` maps a scene prompt to the exception its image call raises;
    ``delays`` sets per-scene latency; ``on_image`` runs before each call settles.
    """

    def __init__(self):
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}
        self.on_image = None
        self.image_calls: List[Dict[str, Any]] = []
        self.caption_calls: List[Dict[str, Any]] = []
        self.caption_error: Optional[Exception] = None
        self.summary_error: Optional[Exception] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_image(self, prompt, references, size):
        scene = prompt.rsplit("### Current Scene to Illustrate:\n", 1)[-1]
        self.image_calls.append({"scene": scene, "references": list(references), "size": size})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(scene, 0.01))
            if self.on_image:
                self.on_image(scene)
            if scene in self.failures:
                raise self.failures[scene]
            return GeneratedImage(data=PNG_BYTES, mime_type="image/png")
        finally:
            self.in_flight -= 1

    async def generate_captions(self, prompts, references, rules, guidelines=(), hashtags=None):
        self.caption_calls.append({"rules": rules, "guidelines": list(guidelines), "hashtags": hashtags})
        if self.caption_error:
            raise self.caption_error
        return Captions(
            tiktok=[f"TikTok {p}" for p in prompts],
            instagram=[f"Instagram {p}" for p in prompts],
        )

    async def generate_summaries(self, prompts, guidelines=()):
        if self.summary_error:
            raise self.summary_error
        return SceneSummaries(
            titles=[f"Title {idx + 1}" for idx in range(len(prompts))],
            descriptions=[f"Description of {p}" for p in prompts],
        )

    async def suggest_scenes(self, topic, count=4):
        return [f"Scene {idx + 1} about {topic}" for idx in range(count)]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def subscription_store() -> InMemorySubscriptionStore:
    return InMemorySubscriptionStore()


@pytest.fixture
def project_store() -> InMemoryProjectStore:
    return InMemoryProjectStore()


@pytest.fixture
def object_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def ledger(usage_store, profile_store) -> UsageLedger:
    return UsageLedger(usage_store, profile_store)


@pytest.fixture
def persistence(project_store, object_storage) -> ProjectPersistence:
    return ProjectPersistence(project_store, object_storage, signed_url_ttl=3600)


@pytest.fixture
def caption_settings_store() -> InMemoryCaptionSettingsStore:
    return InMemoryCaptionSettingsStore()


@pytest.fixture
def caption_settings(caption_settings_store) -> CaptionSettingsService:
    return CaptionSettingsService(caption_settings_store)


@pytest.fixture
def orchestrator(model, ledger, persistence, caption_settings) -> SceneOrchestrator:
    return SceneOrchestrator(model, ledger, persistence, caption_settings)


@pytest.fixture
def regenerator(orchestrator) -> SceneRegenerator:
    return SceneRegenerator(orchestrator)


@pytest.fixture
def paid_context() -> GenerationContext:
    """Active Pro subscriber."""
    return GenerationContext(user_id=USER_ID, plan_type=SubscriptionPlan.PRO, is_paid=True)


@pytest.fixture
def free_context() -> GenerationContext:
    """Account without a subscription that has not used its free image."""
    return GenerationContext(user_id=USER_ID)


@pytest.fixture
def reference() -> ReferenceImage:
    return ReferenceImage.from_bytes(PNG_BYTES, "image/png", "ref-1")


@pytest.fixture
def pro_limit() -> int:
    return PLAN_CREDITS[SubscriptionPlan.PRO]


@pytest.fixture
def model_failure():
    """Factory for a provider failure on one scene."""
    def _make(message: str = "Model overloaded") -> Exception:
        return ModelUnavailableError(message, status_code=503)
    return _make
