"""
StoryboardGen Constants

Plan credit table, image sizes and the fixed prompt blocks sent to the models.
"""

from enum import Enum


class SubscriptionPlan(str, Enum):
    """Subscription tiers."""
    BASIC = "basic"
    PRO = "pro"
    BUSINESS = "business"


class ImageSize(str, Enum):
    """Output sizes accepted by the image model."""
    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"


PLAN_CREDITS = {
    SubscriptionPlan.BASIC: 90,
    SubscriptionPlan.PRO: 180,
    SubscriptionPlan.BUSINESS: 600,
}

DEFAULT_PLAN = SubscriptionPlan.BASIC
DEFAULT_MONTHLY_CREDITS = PLAN_CREDITS[DEFAULT_PLAN]

# Lifetime credits an account may use before it has to subscribe
FREE_CREDIT_CAP = 3

DEFAULT_SCENE_SUGGESTION_COUNT = 4

# =============================================================================
# PROMPT BLOCKS
# =============================================================================

DEFAULT_CHARACTER_PROMPT_BASE = """
Use the attached images as strict, non-negotiable visual references.

Generate an illustration of the exact same recurring character, reused identically like a children's book series or sticker set character.

### Character Lock (must not change)
* Identical face shape, eye size, hair silhouette, proportions, clothing and simplicity as the reference images

### Illustration Style Lock (must not change)
* Soft whimsical cartoon style
* Rounded outlines only
* Flat warm pastel colors
* Very minimal shading
* Children's book / educational illustration aesthetic

### Hard Restrictions
* Do NOT redesign or reinterpret the character
* Do NOT change the illustration style
* Do NOT add realism or semi-realism
* Keep everything simple, symbolic, and emotionally clear
""".strip()

DEFAULT_CHARACTER_BACKGROUND_TRANSPARENT = """
### Background (absolute, must follow)
* Transparent background
* No background color
* No gradients
* No shadows
* No surfaces
* Character and props appear as a clean cut-out sticker (but don't add white glow around the illustration) with alpha transparency
""".strip()

DEFAULT_CHARACTER_BACKGROUND_SCENE = """
### Background
* Simple, uncluttered scene background that supports the action
* Same flat pastel palette and minimal shading as the character
* Background must never compete with the character for attention
""".strip()

BRAND_DEFAULT_CONTEXT = (
    "Always show the product in natural use, maintain warm approachable lighting, "
    "include diverse representation, avoid cluttered backgrounds, and keep the scene "
    "clean so the brand story feels calm."
)

DEFAULT_TIKTOK_RULE = (
    "Keep captions slightly long with clear line breaks, weave the brand in naturally, "
    "use exactly five approved hashtags, stay casual and energetic, and prioritize "
    "clarity so the message lands in seconds."
)

DEFAULT_INSTAGRAM_RULE = (
    "Write longer, educational captions that integrate the brand naturally and add "
    "helpful context without sounding salesy, allow more hashtags only when they add "
    "value to discovery, and place the hashtag block at the end."
)

DEFAULT_GUIDELINE_RULE = BRAND_DEFAULT_CONTEXT
