"""
Caption Settings API Routes
"""

from fastapi import APIRouter, Depends

from storyboardgen.models.generation import CaptionSettings, CaptionSettingsUpdate
from storyboardgen.api.deps import get_caption_settings_service, get_current_user_id
from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.logging import get_logger
from storyboardgen.services import CaptionSettingsService

router = APIRouter()
logger = get_logger("api.caption_settings")


@router.get("", response_model=CaptionSettings)
async def get_caption_settings(
    user_id: str = Depends(get_current_user_id),
    service: CaptionSettingsService = Depends(get_caption_settings_service),
):
    """Saved caption rules, guidelines and hashtags; defaults for a new account."""
    try:
        return await service.get_settings(user_id)
    except StoryboardError as e:
        logger.error(f"Caption settings read error for {user_id}: {e}")
        raise to_http_exception(e)


@router.put("", response_model=CaptionSettings)
async def update_caption_settings(
    update: CaptionSettingsUpdate,
    user_id: str = Depends(get_current_user_id),
    service: CaptionSettingsService = Depends(get_caption_settings_service),
):
    """Replace the sections present in the request body."""
    try:
        return await service.update_settings(user_id, update)
    except StoryboardError as e:
        logger.error(f"Caption settings update error for {user_id}: {e}")
        raise to_http_exception(e)
