"""
Generation Models
"""

import base64
import binascii
import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from storyboardgen.core.constants import (
    DEFAULT_GUIDELINE_RULE,
    DEFAULT_SCENE_SUGGESTION_COUNT,
    DEFAULT_INSTAGRAM_RULE,
    DEFAULT_TIKTOK_RULE,
    ImageSize,
)
from .usage import MonthlyUsage

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class ReferenceImage(BaseModel):
    """A user-supplied image that grounds the character across scenes.

    ``data`` accepts either a ``data:`` URL or a bare base64 payload.
    """
    id: str
    data: str
    mime_type: str = "image/png"

    @field_validator("data")
    @classmethod
    def _data_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("reference image data is empty")
        return value.strip()

    @property
    def base64_data(self) -> str:
        match = DATA_URL_PATTERN.match(self.data)
        if match:
            return match.group("data")
        return self.data

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.base64_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"reference image {self.id} is not valid base64") from e

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str, image_id: str) -> "ReferenceImage":
        encoded = base64.b64encode(data).decode("ascii")
        return cls(id=image_id, data=f"data:{mime_type};base64,{encoded}", mime_type=mime_type)


class SceneResult(BaseModel):
    """Per-scene outcome of a generation run.

    Pending -> Success | Failed. A result never carries both an image and an error.
    """
    prompt: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_loading: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @model_validator(mode="after")
    def _image_xor_error(self) -> "SceneResult":
        if self.image_url and self.error:
            raise ValueError("a scene result cannot hold both an image and an error")
        return self

    @classmethod
    def pending(cls, prompt: str) -> "SceneResult":
        return cls(prompt=prompt, is_loading=True)

    def restart(self) -> "SceneResult":
        """Re-enter the pending state, keeping whatever the slot showed until it settles."""
        return self.model_copy(update={"is_loading": True})

    def succeed(self, image_url: str) -> "SceneResult":
        return self.model_copy(update={
            "image_url": image_url,
            "is_loading": False,
            "error": None,
            "error_kind": None,
        })

    def fail(self, error: str, error_kind: Optional[str] = None) -> "SceneResult":
        return self.model_copy(update={
            "image_url": None,
            "is_loading": False,
            "error": error or "Generation failed",
            "error_kind": error_kind,
        })

    def with_summary(self, title: str, description: str) -> "SceneResult":
        return self.model_copy(update={
            "title": title or self.title,
            "description": description or self.description,
        })

    @property
    def is_success(self) -> bool:
        return bool(self.image_url)


# =============================================================================
# CAPTIONS
# =============================================================================

class RuleGroup(BaseModel):
    """A named caption rule or brand guideline."""
    name: str = ""
    rule: str
    is_default: bool = False


def default_rule_group(rule: str) -> RuleGroup:
    return RuleGroup(name="Default", rule=rule, is_default=True)


def default_guidelines() -> List[RuleGroup]:
    return [default_rule_group(DEFAULT_GUIDELINE_RULE)]


class CaptionRules(BaseModel):
    """Per-platform caption rules."""
    tiktok: List[RuleGroup] = Field(default_factory=lambda: [default_rule_group(DEFAULT_TIKTOK_RULE)])
    instagram: List[RuleGroup] = Field(default_factory=lambda: [default_rule_group(DEFAULT_INSTAGRAM_RULE)])


class CaptionSettings(BaseModel):
    """An account's saved caption rules, brand guidelines and approved hashtags."""
    caption_rules: CaptionRules = Field(default_factory=CaptionRules)
    guidelines: List[RuleGroup] = Field(default_factory=default_guidelines)
    hashtags: List[str] = Field(default_factory=list)


class CaptionSettingsUpdate(BaseModel):
    """Partial update of saved caption settings; omitted fields keep their value."""
    tiktok: Optional[List[RuleGroup]] = None
    instagram: Optional[List[RuleGroup]] = None
    guidelines: Optional[List[RuleGroup]] = None
    hashtags: Optional[List[str]] = None


class Captions(BaseModel):
    """One caption per scene for each platform."""
    tiktok: List[str] = Field(default_factory=list)
    instagram: List[str] = Field(default_factory=list)


class SceneSummaries(BaseModel):
    """Short titles and descriptions per scene."""
    titles: List[str] = Field(default_factory=list)
    descriptions: List[str] = Field(default_factory=list)


# =============================================================================
# REQUESTS / RESPONSES
# =============================================================================

class GenerationOptions(BaseModel):
    """Rendering and caption options shared by runs and regenerations.

    Guidelines, caption rules and hashtags left out fall back to the
    account's saved caption settings.
    """
    size: ImageSize = ImageSize.SIZE_1K
    transparent_background: bool = True
    guidelines: Optional[List[RuleGroup]] = None
    caption_rules: Optional[CaptionRules] = None
    hashtags: Optional[List[str]] = None

    @property
    def needs_saved_settings(self) -> bool:
        return self.guidelines is None or self.caption_rules is None or self.hashtags is None

    def with_settings(self, saved: CaptionSettings) -> "GenerationOptions":
        """Fill omitted caption fields from saved settings."""
        return self.model_copy(update={
            "guidelines": saved.guidelines if self.guidelines is None else self.guidelines,
            "caption_rules": saved.caption_rules if self.caption_rules is None else self.caption_rules,
            "hashtags": saved.hashtags if self.hashtags is None else self.hashtags,
        })


class GenerationRequest(BaseModel):
    """Start a generation run.

    Prompts come either as a list or as a newline-joined ``prompt_text`` block.
    """
    prompts: List[str] = Field(default_factory=list)
    prompt_text: Optional[str] = None
    references: List[ReferenceImage] = Field(default_factory=list)
    project_name: Optional[str] = None
    project_id: Optional[str] = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class RegenerateRequest(BaseModel):
    """Regenerate one scene of a run whose state the client carries."""
    scene_index: int = Field(ge=0)
    results: List[SceneResult]
    references: List[ReferenceImage] = Field(default_factory=list)
    prompts: List[str] = Field(default_factory=list)
    captions: Captions = Field(default_factory=Captions)
    project_name: Optional[str] = None
    project_id: Optional[str] = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerationRunResponse(BaseModel):
    """Settled run as returned to the client."""
    results: List[SceneResult]
    captions: Captions
    usage: Optional[MonthlyUsage] = None
    project_id: Optional[str] = None
    successful_count: int = 0
    credit_error: Optional[dict] = None
    persistence_error: Optional[str] = None


class SuggestionRequest(BaseModel):
    """Ask for scene prompts from a topic brief."""
    topic: str = Field(min_length=1)
    count: int = Field(default=DEFAULT_SCENE_SUGGESTION_COUNT, ge=1, le=12)


class SuggestionResponse(BaseModel):
    prompts: List[str]
