"""
Supabase Stores

Supabase-backed implementations of the store interfaces. The supabase-py
client is synchronous, so every call runs in a worker thread.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote, urlparse

from supabase import Client

from storyboardgen.core.logging import get_logger
from storyboardgen.models.project import ProjectOutput
from storyboardgen.models.usage import MonthlyUsage, SubscriptionInfo
from .base import (
    CaptionSettingsStore,
    ObjectStorage,
    ProfileStore,
    ProjectStore,
    SubscriptionStore,
    UsageStore,
)

logger = get_logger("stores.supabase")

USAGE_TABLE = "monthly_usage"
PROFILES_TABLE = "profiles"
SUBSCRIPTIONS_TABLE = "subscriptions"
PROJECTS_TABLE = "projects"
OUTPUTS_TABLE = "project_outputs"
CAPTION_SETTINGS_TABLE = "caption_settings"

# Storage URL path segments that address an object directly
OBJECT_URL_KINDS = ("sign", "public", "authenticated")


async def _run(fn: Callable[[], Any]) -> Any:
    return await asyncio.to_thread(fn)


def _first(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseUsageStore(UsageStore):
    """Monthly usage rows; consume goes through the ``consume_usage_credits`` function."""

    def __init__(self, client: Client):
        self.client = client

    async def get_usage(self, user_id: str, period_start: date) -> Optional[MonthlyUsage]:
        response = await _run(
            lambda: self.client.table(USAGE_TABLE)
            .select("user_id, period_start, used, monthly_limit")
            .eq("user_id", user_id)
            .eq("period_start", period_start.isoformat())
            .limit(1)
            .execute()
        )
        row = _first(response.data)
        return MonthlyUsage.model_validate(row) if row else None

    async def consume(
        self,
        user_id: str,
        period_start: date,
        amount: int,
        monthly_limit: int,
    ) -> Optional[MonthlyUsage]:
        response = await _run(
            lambda: self.client.rpc("consume_usage_credits", {
                "p_user_id": user_id,
                "p_period_start": period_start.isoformat(),
                "p_amount": amount,
                "p_monthly_limit": monthly_limit,
            }).execute()
        )
        row = _first(response.data)
        if not row or row.get("user_id") is None:
            return None
        return MonthlyUsage.model_validate(row)

    async def set_limit(self, user_id: str, period_start: date, monthly_limit: int) -> MonthlyUsage:
        # One statement that never writes used, so concurrent debits survive
        response = await _run(
            lambda: self.client.rpc("set_usage_limit", {
                "p_user_id": user_id,
                "p_period_start": period_start.isoformat(),
                "p_monthly_limit": monthly_limit,
            }).execute()
        )
        row = _first(response.data)
        if not row:
            raise RuntimeError(f"Setting the usage limit for {user_id} returned no row")
        return MonthlyUsage.model_validate(row)

    async def reset(self, user_id: str, period_start: date, monthly_limit: int) -> MonthlyUsage:
        return await self._upsert(user_id, period_start, 0, monthly_limit)

    async def _upsert(self, user_id: str, period_start: date, used: int, monthly_limit: int) -> MonthlyUsage:
        response = await _run(
            lambda: self.client.table(USAGE_TABLE).upsert({
                "user_id": user_id,
                "period_start": period_start.isoformat(),
                "used": used,
                "monthly_limit": monthly_limit,
                "updated_at": _now(),
            }, on_conflict="user_id,period_start").execute()
        )
        row = _first(response.data)
        if row:
            return MonthlyUsage.model_validate(row)
        return MonthlyUsage(
            user_id=user_id,
            period_start=period_start,
            used=used,
            monthly_limit=monthly_limit,
        )


class SupabaseProfileStore(ProfileStore):
    """Free-generation flag on ``profiles``."""

    def __init__(self, client: Client):
        self.client = client

    async def has_generated_free_image(self, user_id: str) -> bool:
        response = await _run(
            lambda: self.client.table(PROFILES_TABLE)
            .select("has_generated_free_image")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        row = _first(response.data)
        return bool(row and row.get("has_generated_free_image"))

    async def mark_free_image_generated(self, user_id: str) -> None:
        await _run(
            lambda: self.client.table(PROFILES_TABLE).upsert({
                "id": user_id,
                "has_generated_free_image": True,
                "updated_at": _now(),
            }, on_conflict="id").execute()
        )


class SupabaseSubscriptionStore(SubscriptionStore):
    """Subscription rows written by the payment webhook."""

    def __init__(self, client: Client):
        self.client = client

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionInfo]:
        response = await _run(
            lambda: self.client.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        row = _first(response.data)
        return SubscriptionInfo.model_validate(row) if row else None

    async def find_user_by_customer(self, customer_id: str) -> Optional[str]:
        response = await _run(
            lambda: self.client.table(SUBSCRIPTIONS_TABLE)
            .select("user_id")
            .eq("stripe_customer_id", customer_id)
            .limit(1)
            .execute()
        )
        row = _first(response.data)
        return row.get("user_id") if row else None

    async def upsert_subscription(self, user_id: str, fields: Dict[str, Any]) -> None:
        payload = {"user_id": user_id, **fields, "updated_at": _now()}
        await _run(
            lambda: self.client.table(SUBSCRIPTIONS_TABLE)
            .upsert(payload, on_conflict="user_id")
            .execute()
        )

    async def deactivate_by_user(self, user_id: str) -> None:
        await _run(
            lambda: self.client.table(SUBSCRIPTIONS_TABLE)
            .update({"is_active": False, "updated_at": _now()})
            .eq("user_id", user_id)
            .execute()
        )

    async def deactivate_by_subscription(self, subscription_id: str) -> None:
        await _run(
            lambda: self.client.table(SUBSCRIPTIONS_TABLE)
            .update({"is_active": False, "updated_at": _now()})
            .eq("stripe_subscription_id", subscription_id)
            .execute()
        )


class SupabaseProjectStore(ProjectStore):
    """``projects`` and ``project_outputs`` tables."""

    def __init__(self, client: Client):
        self.client = client

    async def create_project(self, user_id: str, fields: Dict[str, Any]) -> str:
        response = await _run(
            lambda: self.client.table(PROJECTS_TABLE)
            .insert({"user_id": user_id, **fields})
            .execute()
        )
        row = _first(response.data)
        if not row or not row.get("id"):
            raise RuntimeError("Project insert returned no id")
        return row["id"]

    async def update_project(self, user_id: str, project_id: str, fields: Dict[str, Any]) -> None:
        response = await _run(
            lambda: self.client.table(PROJECTS_TABLE)
            .update({**fields, "updated_at": _now()})
            .eq("id", project_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not response.data:
            raise LookupError(f"Project {project_id} not found")

    async def replace_outputs(self, project_id: str, outputs: List[ProjectOutput]) -> None:
        rows = [
            {
                "scene_index": output.scene_index,
                "prompt": output.prompt,
                "title": output.title,
                "description": output.description,
                "file_path": output.image_pointer,
                "mime_type": output.mime_type,
            }
            for output in outputs
        ]
        # Delete and insert run inside one database transaction
        await _run(
            lambda: self.client.rpc("replace_project_outputs", {
                "p_project_id": project_id,
                "p_outputs": rows,
            }).execute()
        )

    async def list_projects(self, user_id: str) -> List[Dict[str, Any]]:
        response = await _run(
            lambda: self.client.table(PROJECTS_TABLE)
            .select("id, name, prompts, created_at, updated_at")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def get_project(self, user_id: str, project_id: str) -> Optional[Dict[str, Any]]:
        response = await _run(
            lambda: self.client.table(PROJECTS_TABLE)
            .select("*")
            .eq("id", project_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return _first(response.data)

    async def get_outputs(self, project_id: str) -> List[Dict[str, Any]]:
        response = await _run(
            lambda: self.client.table(OUTPUTS_TABLE)
            .select("*")
            .eq("project_id", project_id)
            .order("scene_index")
            .execute()
        )
        return response.data or []


class SupabaseCaptionSettingsStore(CaptionSettingsStore):
    """Per-user caption rules, guidelines and hashtags as jsonb columns."""

    def __init__(self, client: Client):
        self.client = client

    async def get_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = await _run(
            lambda: self.client.table(CAPTION_SETTINGS_TABLE)
            .select("tiktok_rules, instagram_rules, custom_guidelines, hashtags")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return _first(response.data)

    async def create_settings(self, user_id: str, fields: Dict[str, Any]) -> None:
        await _run(
            lambda: self.client.table(CAPTION_SETTINGS_TABLE)
            .upsert({"user_id": user_id, **fields}, on_conflict="user_id", ignore_duplicates=True)
            .execute()
        )

    async def update_settings(self, user_id: str, fields: Dict[str, Any]) -> None:
        response = await _run(
            lambda: self.client.table(CAPTION_SETTINGS_TABLE)
            .update({**fields, "updated_at": _now()})
            .eq("user_id", user_id)
            .execute()
        )
        if not response.data:
            raise LookupError(f"Caption settings for {user_id} not found")


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage bucket.

    ``base_url`` is the project URL the signed URLs are issued under; only
    URLs on that host and bucket resolve back to object paths.
    """

    def __init__(self, client: Client, bucket: str, base_url: str = ""):
        self.client = client
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")

    async def upload(self, path: str, data: bytes, mime_type: str) -> None:
        await _run(
            lambda: self.client.storage.from_(self.bucket).upload(
                path,
                data,
                {"content-type": mime_type, "upsert": "true"},
            )
        )

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        response = await _run(
            lambda: self.client.storage.from_(self.bucket).create_signed_url(path, ttl_seconds)
        )
        url = response.get("signedURL") or response.get("signedUrl") if response else None
        if not url:
            raise LookupError(f"No signed URL returned for {path}")
        return url

    async def download(self, path: str) -> bytes:
        return await _run(lambda: self.client.storage.from_(self.bucket).download(path))

    async def remove(self, paths: List[str]) -> None:
        if paths:
            await _run(lambda: self.client.storage.from_(self.bucket).remove(list(paths)))

    def path_from_url(self, url: str) -> Optional[str]:
        if not self.base_url:
            return None
        parsed = urlparse(url)
        base = urlparse(self.base_url)
        if (parsed.scheme, parsed.netloc) != (base.scheme, base.netloc):
            return None
        for kind in OBJECT_URL_KINDS:
            prefix = f"{base.path}/storage/v1/object/{kind}/{self.bucket}/"
            if parsed.path.startswith(prefix):
                return unquote(parsed.path[len(prefix):]) or None
        return None
