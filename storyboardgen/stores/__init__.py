"""
Data Stores
"""

from .base import (
    UsageStore,
    ProfileStore,
    SubscriptionStore,
    ProjectStore,
    ObjectStorage,
    CaptionSettingsStore,
)
from .supabase_store import (
    SupabaseUsageStore,
    SupabaseProfileStore,
    SupabaseSubscriptionStore,
    SupabaseProjectStore,
    SupabaseObjectStorage,
    SupabaseCaptionSettingsStore,
)

__all__ = [
    "UsageStore",
    "ProfileStore",
    "SubscriptionStore",
    "ProjectStore",
    "ObjectStorage",
    "CaptionSettingsStore",
    "SupabaseUsageStore",
    "SupabaseProfileStore",
    "SupabaseSubscriptionStore",
    "SupabaseProjectStore",
    "SupabaseObjectStorage",
    "SupabaseCaptionSettingsStore",
]
