"""
Usage Ledger

Monthly credit accounting per user. The only shared mutable state in the
generation path is the usage row; ``consume`` relies on the store's single
conditional check-and-increment rather than any in-process locking.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from storyboardgen.core.constants import (
    DEFAULT_PLAN,
    FREE_CREDIT_CAP,
    PLAN_CREDITS,
    SubscriptionPlan,
)
from storyboardgen.core.exceptions import (
    CreditLimitExceededError,
    InsufficientCreditsError,
    LedgerUnavailableError,
)
from storyboardgen.core.logging import get_logger
from storyboardgen.models.usage import MonthlyUsage
from storyboardgen.stores.base import ProfileStore, UsageStore

logger = get_logger("services.usage_ledger")


@dataclass
class GenerationContext:
    """Who is generating and on what terms.

    Resolved per request from the subscription and profile rows and passed
    explicitly into the orchestrator and regeneration path.
    """
    user_id: str
    plan_type: SubscriptionPlan = DEFAULT_PLAN
    is_paid: bool = False
    has_generated_free_image: bool = False


def current_period_start(now: Optional[datetime] = None) -> date:
    """First day of the current month (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.date().replace(day=1)


def plan_limit(plan_type: Optional[SubscriptionPlan]) -> int:
    return PLAN_CREDITS[plan_type or DEFAULT_PLAN]


class UsageLedger:
    """Monthly usage reads, atomic debits and plan resets."""

    def __init__(self, store: UsageStore, profiles: ProfileStore):
        self.store = store
        self.profiles = profiles

    async def get_usage(
        self,
        user_id: str,
        plan_type: Optional[SubscriptionPlan] = None,
        period_start: Optional[date] = None,
    ) -> MonthlyUsage:
        """Current period usage.

        Without a row, returns a zero-used record seeded from the plan. A row
        whose limit differs from the plan's is brought in line, keeping ``used``.
        """
        period = period_start or current_period_start()
        limit = plan_limit(plan_type)
        try:
            usage = await self.store.get_usage(user_id, period)
            if usage is None:
                return MonthlyUsage(user_id=user_id, period_start=period, used=0, monthly_limit=limit)
            if plan_type is not None and usage.monthly_limit != limit:
                logger.info(
                    f"Syncing monthly limit for {user_id}: {usage.monthly_limit} -> {limit}"
                )
                usage = await self.store.set_limit(user_id, period, limit)
            return usage
        except Exception as e:
            logger.error(f"Usage read failed for {user_id}: {e}")
            raise LedgerUnavailableError("Could not read usage", {"user_id": user_id}) from e

    async def consume(
        self,
        user_id: str,
        amount: int,
        plan_type: Optional[SubscriptionPlan] = None,
        period_start: Optional[date] = None,
    ) -> MonthlyUsage:
        """Debit ``amount`` credits, or raise CreditLimitExceededError leaving the row unchanged."""
        if amount <= 0:
            raise ValueError("amount must be positive")

        period = period_start or current_period_start()
        limit = plan_limit(plan_type)
        try:
            usage = await self.store.consume(user_id, period, amount, limit)
        except Exception as e:
            logger.error(f"Usage debit of {amount} failed for {user_id}: {e}")
            raise LedgerUnavailableError("Could not record usage", {"user_id": user_id}) from e

        if usage is None:
            current = await self.get_usage(user_id, period_start=period)
            logger.warning(
                f"Debit of {amount} refused for {user_id}: "
                f"used {current.used} of {current.monthly_limit}"
            )
            raise CreditLimitExceededError(
                requested=amount,
                remaining=current.remaining,
                monthly_limit=current.monthly_limit,
            )

        logger.info(f"Debited {amount} credit(s) for {user_id}: used {usage.used}/{usage.monthly_limit}")
        return usage

    async def reset_for_new_plan(self, user_id: str, plan_type: SubscriptionPlan) -> MonthlyUsage:
        """Start the current period over on the new plan's limit."""
        period = current_period_start()
        limit = plan_limit(plan_type)
        try:
            usage = await self.store.reset(user_id, period, limit)
        except Exception as e:
            logger.error(f"Usage reset failed for {user_id}: {e}")
            raise LedgerUnavailableError("Could not reset usage", {"user_id": user_id}) from e
        logger.info(f"Reset usage for {user_id} on plan {plan_type.value} ({limit} credits)")
        return usage

    async def check_budget(self, context: GenerationContext, count: int) -> MonthlyUsage:
        """Pre-flight check that ``count`` generations fit the remaining credits."""
        if not context.is_paid and context.has_generated_free_image:
            raise InsufficientCreditsError(
                requested=count, remaining=0, monthly_limit=0, upgrade_required=True,
            )

        usage = await self.get_usage(context.user_id, context.plan_type)

        if count > usage.remaining:
            raise InsufficientCreditsError(
                requested=count,
                remaining=usage.remaining,
                monthly_limit=usage.monthly_limit,
                upgrade_required=not context.is_paid,
            )

        if not context.is_paid and usage.used >= FREE_CREDIT_CAP:
            raise InsufficientCreditsError(
                requested=count,
                remaining=usage.remaining,
                monthly_limit=usage.monthly_limit,
                upgrade_required=True,
            )

        return usage

    async def has_generated_free_image(self, user_id: str) -> bool:
        try:
            return await self.profiles.has_generated_free_image(user_id)
        except Exception as e:
            logger.error(f"Free-image flag read failed for {user_id}: {e}")
            raise LedgerUnavailableError("Could not read profile", {"user_id": user_id}) from e

    async def mark_free_generation(self, context: GenerationContext) -> None:
        """Record that a non-paying account used its free generation.

        Failure is logged and ignored; the debit already happened.
        """
        if context.is_paid or context.has_generated_free_image:
            return
        try:
            await self.profiles.mark_free_image_generated(context.user_id)
            context.has_generated_free_image = True
        except Exception as e:
            logger.warning(f"Could not set free-image flag for {context.user_id}: {e}")
