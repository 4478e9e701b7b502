"""
Subscription Service

Resolves the generation context for a user and applies Stripe webhook
events to the subscription table.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from storyboardgen.core.config import settings
from storyboardgen.core.constants import DEFAULT_PLAN, SubscriptionPlan
from storyboardgen.core.exceptions import LedgerUnavailableError, PersistenceError, WebhookError
from storyboardgen.core.logging import get_logger
from storyboardgen.stores.base import SubscriptionStore
from .usage_ledger import GenerationContext, UsageLedger

logger = get_logger("services.subscriptions")

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _customer_id(obj: Dict[str, Any]) -> Optional[str]:
    customer = obj.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer


def _plan_from_metadata(obj: Dict[str, Any]) -> SubscriptionPlan:
    plan = (obj.get("metadata") or {}).get("plan")
    try:
        return SubscriptionPlan(plan)
    except ValueError:
        return DEFAULT_PLAN


class SubscriptionService:
    """Subscription lookups and payment webhook handling."""

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        ledger: UsageLedger,
        webhook_secret: str = None,
        production: bool = None,
    ):
        self.subscriptions = subscriptions
        self.ledger = ledger
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        self.production = production if production is not None else settings.is_production

    async def resolve_context(self, user_id: str) -> GenerationContext:
        """Plan, paid flag and free-image flag for the user."""
        try:
            subscription = await self.subscriptions.get_subscription(user_id)
        except Exception as e:
            logger.error(f"Subscription lookup failed for {user_id}: {e}")
            raise LedgerUnavailableError("Could not read subscription", {"user_id": user_id}) from e

        is_paid = bool(subscription and subscription.is_active)
        plan_type = subscription.plan_type if is_paid and subscription.plan_type else DEFAULT_PLAN

        return GenerationContext(
            user_id=user_id,
            plan_type=plan_type,
            is_paid=is_paid,
            has_generated_free_image=await self.ledger.has_generated_free_image(user_id),
        )

    # =========================================================================
    # WEBHOOK
    # =========================================================================

    def parse_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and decode a webhook payload.

        In production a payload is only accepted with a valid signature.
        Elsewhere an unsigned or unverifiable payload is read as plain JSON.
        """
        if self.webhook_secret and signature:
            try:
                stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            except (stripe.SignatureVerificationError, ValueError) as e:
                logger.warning(f"Webhook signature verification failed: {e}")
                if self.production:
                    raise WebhookError(f"Webhook Error: {e}") from e
        elif self.production:
            raise WebhookError("Webhook Error: missing signature")

        try:
            event = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookError(f"Webhook Error: {e}") from e
        if not isinstance(event, dict) or "type" not in event:
            raise WebhookError("Webhook Error: malformed event")
        return event

    async def handle_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == CHECKOUT_COMPLETED:
            await self._checkout_completed(obj)
        elif event_type == SUBSCRIPTION_CREATED:
            await self._subscription_created(obj)
        elif event_type == SUBSCRIPTION_DELETED:
            await self._subscription_deleted(obj)
        else:
            logger.info(f"Unhandled event type: {event_type}")

    async def _checkout_completed(self, session: Dict[str, Any]) -> None:
        customer_id = _customer_id(session)
        if not customer_id:
            raise WebhookError("Missing customer identifier")
        user_id = session.get("client_reference_id")
        if not user_id:
            raise WebhookError("Missing client_reference_id (user_id)")

        await self._write(
            self.subscriptions.upsert_subscription(user_id, {"stripe_customer_id": customer_id}),
            "Failed to map customer to user",
        )
        logger.info(f"Mapped Stripe customer {customer_id} to user {user_id} from checkout session {session.get('id')}")

    async def _subscription_created(self, subscription: Dict[str, Any]) -> None:
        customer_id = _customer_id(subscription)
        if not customer_id:
            raise WebhookError("Missing customer identifier")
        user_id = await self._user_for(customer_id)
        if not user_id:
            raise WebhookError("User not found", {"customer_id": customer_id})

        plan_type = _plan_from_metadata(subscription)
        period_end = subscription.get("current_period_end")
        await self._write(
            self.subscriptions.upsert_subscription(user_id, {
                "is_active": subscription.get("status") == "active",
                "plan_type": plan_type.value,
                "stripe_subscription_id": subscription.get("id"),
                "stripe_customer_id": customer_id,
                "current_period_end": (
                    datetime.fromtimestamp(period_end, tz=timezone.utc).isoformat() if period_end else None
                ),
            }),
            "Failed to update subscription",
        )
        logger.info(f"Subscription {subscription.get('id')} created for user {user_id} with plan {plan_type.value}")

    async def _subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        customer_id = _customer_id(subscription)
        if not customer_id:
            raise WebhookError("Missing customer identifier")
        user_id = await self._user_for(customer_id)

        if user_id:
            await self._write(self.subscriptions.deactivate_by_user(user_id), "Failed to update subscription")
            logger.info(f"Subscription {subscription.get('id')} deactivated for user {user_id}")
        else:
            logger.warning(f"No user for customer {customer_id}; deactivating by subscription id")
            await self._write(
                self.subscriptions.deactivate_by_subscription(subscription.get("id")),
                "Failed to update subscription",
            )

    async def _user_for(self, customer_id: str) -> Optional[str]:
        try:
            return await self.subscriptions.find_user_by_customer(customer_id)
        except Exception as e:
            logger.error(f"Customer lookup failed for {customer_id}: {e}")
            raise PersistenceError("Failed to look up customer") from e

    @staticmethod
    async def _write(operation, message: str) -> None:
        try:
            await operation
        except Exception as e:
            logger.error(f"{message}: {e}")
            raise PersistenceError(message) from e
