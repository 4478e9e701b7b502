"""
Store Interfaces

Abstract collaborators for the usage ledger, subscriptions, projects, caption
settings and object storage. Services depend only on these; Supabase-backed
implementations live in ``supabase_store``.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from storyboardgen.models.usage import MonthlyUsage, SubscriptionInfo
from storyboardgen.models.project import ProjectOutput


class UsageStore(ABC):
    """Rows of the monthly usage table keyed by ``(user_id, period_start)``."""

    @abstractmethod
    async def get_usage(self, user_id: str, period_start: date) -> Optional[MonthlyUsage]:
        """Fetch the row for the period, or None when none exists."""
        pass

    @abstractmethod
    async def consume(
        self,
        user_id: str,
        period_start: date,
        amount: int,
        monthly_limit: int,
    ) -> Optional[MonthlyUsage]:
        """Atomically add ``amount`` to ``used`` when it stays within the limit.

        Creates the row with ``monthly_limit`` when missing. Returns the
        updated row, or None when the increment was refused.
        """
        pass

    @abstractmethod
    async def set_limit(self, user_id: str, period_start: date, monthly_limit: int) -> MonthlyUsage:
        """Set the period's limit, keeping ``used``."""
        pass

    @abstractmethod
    async def reset(self, user_id: str, period_start: date, monthly_limit: int) -> MonthlyUsage:
        """Zero ``used`` for the period and set the limit."""
        pass


class ProfileStore(ABC):
    """Per-account profile flags."""

    @abstractmethod
    async def has_generated_free_image(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def mark_free_image_generated(self, user_id: str) -> None:
        pass


class SubscriptionStore(ABC):
    """Subscription rows keyed by user id."""

    @abstractmethod
    async def get_subscription(self, user_id: str) -> Optional[SubscriptionInfo]:
        pass

    @abstractmethod
    async def find_user_by_customer(self, customer_id: str) -> Optional[str]:
        """Map a payment customer id to the user it was linked to at checkout."""
        pass

    @abstractmethod
    async def upsert_subscription(self, user_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def deactivate_by_user(self, user_id: str) -> None:
        pass

    @abstractmethod
    async def deactivate_by_subscription(self, subscription_id: str) -> None:
        pass


class ProjectStore(ABC):
    """The ``projects`` and ``project_outputs`` tables."""

    @abstractmethod
    async def create_project(self, user_id: str, fields: Dict[str, Any]) -> str:
        """Insert a project and return its id."""
        pass

    @abstractmethod
    async def update_project(self, user_id: str, project_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def replace_outputs(self, project_id: str, outputs: List[ProjectOutput]) -> None:
        """Make ``outputs`` the project's complete output index."""
        pass

    @abstractmethod
    async def list_projects(self, user_id: str) -> List[Dict[str, Any]]:
        """Projects for the user, newest first."""
        pass

    @abstractmethod
    async def get_project(self, user_id: str, project_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_outputs(self, project_id: str) -> List[Dict[str, Any]]:
        """Output rows ordered by scene index."""
        pass


class ObjectStorage(ABC):
    """Path-addressed blob storage."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, mime_type: str) -> None:
        """Write ``data`` at ``path``, overwriting any previous object."""
        pass

    @abstractmethod
    async def download(self, path: str) -> bytes:
        pass

    @abstractmethod
    async def remove(self, paths: List[str]) -> None:
        pass

    @abstractmethod
    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        pass

    @abstractmethod
    def path_from_url(self, url: str) -> Optional[str]:
        """The object path behind a URL this storage issued, or None for any other URL."""
        pass


class CaptionSettingsStore(ABC):
    """One ``caption_settings`` row per user."""

    @abstractmethod
    async def get_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Raw row with ``tiktok_rules``, ``instagram_rules``, ``custom_guidelines`` and ``hashtags``."""
        pass

    @abstractmethod
    async def create_settings(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Insert the row unless one already exists."""
        pass

    @abstractmethod
    async def update_settings(self, user_id: str, fields: Dict[str, Any]) -> None:
        pass
