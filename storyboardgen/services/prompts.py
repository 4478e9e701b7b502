"""
Prompt Builders

Text sent to the image and text models.
"""

from typing import List, Sequence

from storyboardgen.core.constants import (
    BRAND_DEFAULT_CONTEXT,
    DEFAULT_CHARACTER_BACKGROUND_SCENE,
    DEFAULT_CHARACTER_BACKGROUND_TRANSPARENT,
    DEFAULT_CHARACTER_PROMPT_BASE,
)
from storyboardgen.models.generation import CaptionRules, RuleGroup

NONE_ITEM = "- (none)"


def format_rules(groups: Sequence[RuleGroup]) -> str:
    """Bullet list of rules, or ``- (none)``."""
    lines = [f"- {group.rule}" for group in groups if group.rule.strip()]
    return "\n".join(lines) or NONE_ITEM


def format_scene_list(prompts: Sequence[str]) -> str:
    return "\n".join(f"{idx + 1}. {prompt}" for idx, prompt in enumerate(prompts))


def format_topic(topic: str) -> str:
    return "\n".join(line.strip() for line in topic.splitlines() if line.strip())


def build_scene_prompt(
    prompt: str,
    guidelines: Sequence[RuleGroup] = (),
    transparent_background: bool = True,
) -> str:
    """Full image prompt for one scene."""
    background = (
        DEFAULT_CHARACTER_BACKGROUND_TRANSPARENT
        if transparent_background
        else DEFAULT_CHARACTER_BACKGROUND_SCENE
    )
    return f"""
{DEFAULT_CHARACTER_PROMPT_BASE}

{background}

### Brand / Scene (default)
{BRAND_DEFAULT_CONTEXT}

### Custom Guidelines (must follow)
{format_rules(guidelines)}

### Current Scene to Illustrate:
{prompt}
""".strip()


def build_caption_prompt(
    prompts: Sequence[str],
    rules: CaptionRules,
    guidelines: Sequence[RuleGroup] = (),
    hashtags: List[str] = None,
) -> str:
    hashtag_list = " ".join(hashtags) if hashtags else "(none)"
    return f"""
You are a social media copywriter.
Create captions for each scene using the attached reference images for character consistency.

Scenes:
{format_scene_list(prompts)}

Global brand guidelines:
{format_rules(guidelines)}

TikTok rules:
{format_rules(rules.tiktok)}

Instagram rules:
{format_rules(rules.instagram)}

Approved hashtags:
{hashtag_list}

Requirements:
- Provide one TikTok and one Instagram caption per scene.
- Keep the tone natural and platform-appropriate.
- If rules conflict, follow platform rules over global guidelines.
- Output JSON only, with this exact shape:
{{
  "tiktok": ["caption for scene 1", "caption for scene 2"],
  "instagram": ["caption for scene 1", "caption for scene 2"]
}}
- The array length must match the number of scenes.
""".strip()


def build_summary_prompt(prompts: Sequence[str], guidelines: Sequence[RuleGroup] = ()) -> str:
    return f"""
You are a storyboard assistant.
Create a concise title and a short description for each scene.

Scenes:
{format_scene_list(prompts)}

Global brand guidelines:
{format_rules(guidelines)}

Requirements:
- Title: 3-6 words.
- Description: 1-2 sentences, focused on visible action and setting.
- Output JSON only as an array of objects, e.g.
[
  {{ "title": "Scene 1 Title", "description": "Scene 1 description." }},
  {{ "title": "Scene 2 Title", "description": "Scene 2 description." }}
]
- The array length must match the number of scenes.
""".strip()


def build_suggestion_prompt(topic: str, count: int) -> str:
    return f"""
You are a storyboard assistant.
Generate {count} concise scene prompts using all details from the multi-line brief below.
Treat each line as an intentional requirement (story beats, style, constraints, audience, mood, camera direction).
Each prompt should describe a clear, concrete visual moment with a setting, subject, and action.
Keep each prompt to 1-2 sentences.
Avoid repeating the same setting or action.

Topic brief:
{format_topic(topic)}

Output JSON only as an array of strings, e.g.
["Scene 1", "Scene 2", "Scene 3", "Scene 4"]
""".strip()
