"""
Payment Webhook Routes
"""

from fastapi import APIRouter, HTTPException, Depends, Request, Header
from typing import Optional

from storyboardgen.api.deps import get_subscription_service
from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.logging import get_logger
from storyboardgen.services import SubscriptionService

router = APIRouter()
logger = get_logger("api.webhooks")


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """Apply a Stripe checkout or subscription lifecycle event."""
    payload = await request.body()
    try:
        event = subscriptions.parse_event(payload, stripe_signature)
        logger.info(f"Stripe event received: {event.get('type')}")
        await subscriptions.handle_event(event)
        return {"received": True}

    except StoryboardError as e:
        logger.error(f"Webhook rejected: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook processing failed")
