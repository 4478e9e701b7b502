"""
StoryboardGen Services

Generation orchestration, credit accounting and project persistence.
"""

from .scenes import Scene, prompt_to_scene, scene_to_prompt, split_prompts, join_prompts
from .usage_ledger import GenerationContext, UsageLedger, current_period_start
from .gemini import GeminiClient, GeneratedImage, normalize_provider_error
from .persistence import ProjectPersistence
from .caption_settings import CaptionSettingsService
from .orchestrator import GenerationRun, SceneOrchestrator
from .regeneration import SceneRegenerator
from .subscriptions import SubscriptionService

__all__ = [
    "Scene",
    "prompt_to_scene",
    "scene_to_prompt",
    "split_prompts",
    "join_prompts",
    "GenerationContext",
    "UsageLedger",
    "current_period_start",
    "GeminiClient",
    "GeneratedImage",
    "normalize_provider_error",
    "ProjectPersistence",
    "CaptionSettingsService",
    "GenerationRun",
    "SceneOrchestrator",
    "SceneRegenerator",
    "SubscriptionService",
]
