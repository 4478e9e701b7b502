"""
Scene Prompt Codec

A scene prompt is either ``"Title: Description"`` or a bare description.
The separator is the first ``": "``; a colon without a following space
never splits. Prompt lists travel as newline-joined text blocks.
"""

from dataclasses import dataclass
from typing import Iterable, List

SCENE_SEPARATOR = ": "


@dataclass(frozen=True)
class Scene:
    """Structured scene prompt."""
    title: str
    description: str


def prompt_to_scene(prompt: str) -> Scene:
    """Parse a prompt into title and description."""
    index = prompt.find(SCENE_SEPARATOR)
    if index > 0:
        return Scene(
            title=prompt[:index].strip(),
            description=prompt[index + len(SCENE_SEPARATOR):].strip(),
        )
    return Scene(title="", description=prompt.strip())


def scene_to_prompt(scene: Scene) -> str:
    """Encode a scene; an empty title yields the bare description."""
    title = scene.title.strip()
    description = scene.description.strip()
    if not title:
        return description
    return f"{title}{SCENE_SEPARATOR}{description}"


def split_prompts(text: str) -> List[str]:
    """Split a text block into prompts, one per non-blank line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def join_prompts(prompts: Iterable[str]) -> str:
    return "\n".join(prompts)
