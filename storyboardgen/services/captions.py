"""
Caption Helpers

Hashtag enforcement and display formatting for generated captions.
"""

from typing import Iterable, List

from storyboardgen.models.generation import Captions


def normalize_hashtags(tags: Iterable[str]) -> List[str]:
    """Trimmed, non-empty, de-duplicated hashtags in first-seen order."""
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def append_hashtags(caption: str, tags: List[str]) -> str:
    """Append the approved hashtags the caption does not already contain."""
    if not tags:
        return caption
    existing = {word.strip() for word in caption.split() if word.startswith("#")}
    missing = [tag for tag in tags if tag not in existing]
    if not missing:
        return caption
    trimmed = caption.strip()
    separator = "\n\n" if trimmed else ""
    return f"{trimmed}{separator}{' '.join(missing)}"


def apply_hashtags(captions: Captions, hashtags: Iterable[str]) -> Captions:
    tags = normalize_hashtags(hashtags)
    if not tags:
        return captions
    return Captions(
        tiktok=[append_hashtags(caption, tags) for caption in captions.tiktok],
        instagram=[append_hashtags(caption, tags) for caption in captions.instagram],
    )


def format_caption_display(captions: List[str]) -> str:
    """Join one platform's captions, prefixing ``Scene N:`` when there are several."""
    if len(captions) > 1:
        return "\n\n".join(f"Scene {idx + 1}: {caption}" for idx, caption in enumerate(captions))
    return "\n\n".join(captions)


def set_caption(captions: Captions, index: int, tiktok: str, instagram: str) -> Captions:
    """Copy of ``captions`` with one scene's captions replaced, padding as needed."""
    tiktok_list = list(captions.tiktok)
    instagram_list = list(captions.instagram)
    for items in (tiktok_list, instagram_list):
        while len(items) <= index:
            items.append("")
    tiktok_list[index] = tiktok
    instagram_list[index] = instagram
    return Captions(tiktok=tiktok_list, instagram=instagram_list)
