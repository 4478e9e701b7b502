"""
Pydantic Models for API and Services
"""

from .usage import (
    MonthlyUsage,
    SubscriptionInfo,
    ResetPlanRequest,
)
from .generation import (
    ReferenceImage,
    SceneResult,
    RuleGroup,
    CaptionRules,
    CaptionSettings,
    CaptionSettingsUpdate,
    Captions,
    SceneSummaries,
    GenerationOptions,
    GenerationRequest,
    RegenerateRequest,
    GenerationRunResponse,
    SuggestionRequest,
    SuggestionResponse,
)
from .project import (
    ProjectOutput,
    ProjectSummary,
    ProjectOutputDetail,
    ProjectDetail,
)

__all__ = [
    "MonthlyUsage",
    "SubscriptionInfo",
    "ResetPlanRequest",
    "ReferenceImage",
    "SceneResult",
    "RuleGroup",
    "CaptionRules",
    "CaptionSettings",
    "CaptionSettingsUpdate",
    "Captions",
    "SceneSummaries",
    "GenerationOptions",
    "GenerationRequest",
    "RegenerateRequest",
    "GenerationRunResponse",
    "SuggestionRequest",
    "SuggestionResponse",
    "ProjectOutput",
    "ProjectSummary",
    "ProjectOutputDetail",
    "ProjectDetail",
]
