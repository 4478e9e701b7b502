"""
API Dependencies

Common dependencies for route handlers. Service factories are plain
dependencies so tests can swap them through ``app.dependency_overrides``.
"""

from fastapi import Header, HTTPException, Depends
from functools import lru_cache
from slowapi import Limiter
from slowapi.util import get_remote_address

from storyboardgen.core.config import settings
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.supabase import get_supabase_client, get_service_client
from storyboardgen.core.logging import get_logger
from storyboardgen.services import (
    CaptionSettingsService,
    GenerationContext,
    GeminiClient,
    ProjectPersistence,
    SceneOrchestrator,
    SceneRegenerator,
    SubscriptionService,
    UsageLedger,
)
from storyboardgen.stores import (
    SupabaseCaptionSettingsStore,
    SupabaseObjectStorage,
    SupabaseProfileStore,
    SupabaseProjectStore,
    SupabaseSubscriptionStore,
    SupabaseUsageStore,
)
from .errors import to_http_exception

logger = get_logger("api.deps")

# Rate limiter for routes that spend model calls
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


async def get_current_user_id(authorization: str = Header(...)) -> str:
    """Extract and validate user ID from authorization header."""
    try:
        if not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Invalid token format")

        token = authorization.replace("Bearer ", "")
        client = get_supabase_client()
        response = client.auth.get_user(token)

        if not response or not response.user:
            raise HTTPException(status_code=401, detail="Invalid token")

        return response.user.id

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Auth error: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")


# =============================================================================
# SERVICES
# =============================================================================

@lru_cache()
def get_usage_ledger() -> UsageLedger:
    client = get_service_client()
    return UsageLedger(SupabaseUsageStore(client), SupabaseProfileStore(client))


@lru_cache()
def get_persistence() -> ProjectPersistence:
    client = get_service_client()
    return ProjectPersistence(
        SupabaseProjectStore(client),
        SupabaseObjectStorage(client, settings.output_bucket, settings.supabase_url),
    )


@lru_cache()
def get_caption_settings_service() -> CaptionSettingsService:
    return CaptionSettingsService(SupabaseCaptionSettingsStore(get_service_client()))


@lru_cache()
def get_model_client() -> GeminiClient:
    return GeminiClient()


def get_subscription_service(
    ledger: UsageLedger = Depends(get_usage_ledger),
) -> SubscriptionService:
    return SubscriptionService(SupabaseSubscriptionStore(get_service_client()), ledger)


def get_orchestrator(
    model: GeminiClient = Depends(get_model_client),
    ledger: UsageLedger = Depends(get_usage_ledger),
    persistence: ProjectPersistence = Depends(get_persistence),
    caption_settings: CaptionSettingsService = Depends(get_caption_settings_service),
) -> SceneOrchestrator:
    return SceneOrchestrator(model, ledger, persistence, caption_settings)


def get_regenerator(
    orchestrator: SceneOrchestrator = Depends(get_orchestrator),
) -> SceneRegenerator:
    return SceneRegenerator(orchestrator)


async def get_generation_context(
    user_id: str = Depends(get_current_user_id),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> GenerationContext:
    """Plan and free-tier state for the authenticated user."""
    try:
        return await subscriptions.resolve_context(user_id)
    except StoryboardError as e:
        raise to_http_exception(e)
