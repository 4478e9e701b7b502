"""
Usage and Subscription Models
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from storyboardgen.core.constants import SubscriptionPlan


class MonthlyUsage(BaseModel):
    """Credit ledger entry for one user and one monthly period."""
    user_id: str
    period_start: date
    used: int = Field(default=0, ge=0)
    monthly_limit: int = Field(ge=0)

    @computed_field
    @property
    def remaining(self) -> int:
        return max(self.monthly_limit - self.used, 0)


class SubscriptionInfo(BaseModel):
    """Subscription row for a user."""
    user_id: str
    plan_type: Optional[SubscriptionPlan] = None
    is_active: bool = False
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None


class ResetPlanRequest(BaseModel):
    """Reset the current period's ledger for a new plan."""
    plan_type: SubscriptionPlan
