"""
Caption Settings

Each account's saved caption rules per platform, brand guidelines and
approved hashtags. An account without a row is seeded with the defaults on
first read. Every rule list starts with the built-in default group, followed
by the account's own groups.
"""

from typing import Any, Dict, Iterable, List

from storyboardgen.core.constants import (
    DEFAULT_GUIDELINE_RULE,
    DEFAULT_INSTAGRAM_RULE,
    DEFAULT_TIKTOK_RULE,
)
from storyboardgen.core.exceptions import PersistenceError
from storyboardgen.core.logging import get_logger
from storyboardgen.models.generation import (
    CaptionRules,
    CaptionSettings,
    CaptionSettingsUpdate,
    RuleGroup,
    default_rule_group,
)
from storyboardgen.stores.base import CaptionSettingsStore

logger = get_logger("services.caption_settings")


def normalize_rule_groups(groups: Iterable[RuleGroup], default_rule: str) -> List[RuleGroup]:
    """The default group followed by the non-empty custom groups.

    Incoming default groups are replaced by the built-in one. Custom groups
    without a name are called ``Custom <n>``.
    """
    custom: List[RuleGroup] = []
    for group in groups:
        if group.is_default:
            continue
        rule = group.rule.strip()
        if not rule:
            continue
        name = group.name.strip() or f"Custom {len(custom) + 1}"
        custom.append(RuleGroup(name=name, rule=rule))
    return [default_rule_group(default_rule), *custom]


def coerce_rule_groups(raw: Any, default_rule: str) -> List[RuleGroup]:
    """Rule groups from a stored jsonb value; plain strings are custom rules."""
    if not isinstance(raw, list):
        return [default_rule_group(default_rule)]

    groups = []
    for item in raw:
        if isinstance(item, str):
            groups.append(RuleGroup(rule=item))
        elif isinstance(item, dict) and isinstance(item.get("rule"), str):
            groups.append(RuleGroup(
                name=item.get("name") if isinstance(item.get("name"), str) else "",
                rule=item["rule"],
                is_default=bool(item.get("is_default") or item.get("isDefault")),
            ))
    return normalize_rule_groups(groups, default_rule)


def clean_hashtags(tags: Iterable[Any]) -> List[str]:
    """``#``-prefixed tags without whitespace, de-duplicated ignoring case."""
    seen = set()
    cleaned = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = "".join(tag.split())
        if not tag:
            continue
        if not tag.startswith("#"):
            tag = f"#{tag}"
        if tag.lower() not in seen:
            seen.add(tag.lower())
            cleaned.append(tag)
    return cleaned


def settings_from_row(row: Dict[str, Any]) -> CaptionSettings:
    return CaptionSettings(
        caption_rules=CaptionRules(
            tiktok=coerce_rule_groups(row.get("tiktok_rules"), DEFAULT_TIKTOK_RULE),
            instagram=coerce_rule_groups(row.get("instagram_rules"), DEFAULT_INSTAGRAM_RULE),
        ),
        guidelines=coerce_rule_groups(row.get("custom_guidelines"), DEFAULT_GUIDELINE_RULE),
        hashtags=clean_hashtags(row.get("hashtags") or []),
    )


def _dump(groups: List[RuleGroup]) -> List[Dict[str, Any]]:
    return [group.model_dump() for group in groups]


class CaptionSettingsService:
    """Read, seed and update an account's caption settings."""

    def __init__(self, store: CaptionSettingsStore):
        self.store = store

    async def get_settings(self, user_id: str) -> CaptionSettings:
        """Saved settings, seeding the defaults for an account without any."""
        try:
            row = await self.store.get_settings(user_id)
            if row is None:
                defaults = CaptionSettings()
                await self.store.create_settings(user_id, {
                    "tiktok_rules": _dump(defaults.caption_rules.tiktok),
                    "instagram_rules": _dump(defaults.caption_rules.instagram),
                    "custom_guidelines": _dump(defaults.guidelines),
                    "hashtags": defaults.hashtags,
                })
                logger.info(f"Seeded default caption settings for {user_id}")
                return defaults
        except Exception as e:
            logger.error(f"Caption settings read failed for {user_id}: {e}")
            raise PersistenceError("Failed to load caption settings", {"user_id": user_id}) from e
        return settings_from_row(row)

    async def update_settings(self, user_id: str, update: CaptionSettingsUpdate) -> CaptionSettings:
        """Replace the fields present in ``update`` and return the saved result."""
        settings = await self.get_settings(user_id)
        rules = settings.caption_rules
        fields: Dict[str, Any] = {}

        if update.tiktok is not None:
            rules = rules.model_copy(update={"tiktok": normalize_rule_groups(update.tiktok, DEFAULT_TIKTOK_RULE)})
            fields["tiktok_rules"] = _dump(rules.tiktok)
        if update.instagram is not None:
            rules = rules.model_copy(update={
                "instagram": normalize_rule_groups(update.instagram, DEFAULT_INSTAGRAM_RULE),
            })
            fields["instagram_rules"] = _dump(rules.instagram)
        settings = settings.model_copy(update={"caption_rules": rules})
        if update.guidelines is not None:
            settings = settings.model_copy(update={
                "guidelines": normalize_rule_groups(update.guidelines, DEFAULT_GUIDELINE_RULE),
            })
            fields["custom_guidelines"] = _dump(settings.guidelines)
        if update.hashtags is not None:
            settings = settings.model_copy(update={"hashtags": clean_hashtags(update.hashtags)})
            fields["hashtags"] = settings.hashtags

        if not fields:
            return settings
        try:
            await self.store.update_settings(user_id, fields)
        except Exception as e:
            logger.error(f"Caption settings update failed for {user_id}: {e}")
            raise PersistenceError("Failed to save caption settings", {"user_id": user_id}) from e

        logger.info(f"Updated caption settings for {user_id}: {', '.join(sorted(fields))}")
        return settings
