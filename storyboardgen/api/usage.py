"""
Usage API Routes
"""

from fastapi import APIRouter, HTTPException, Depends

from storyboardgen.models.usage import MonthlyUsage, ResetPlanRequest
from storyboardgen.api.deps import get_generation_context, get_usage_ledger
from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.exceptions import StoryboardError
from storyboardgen.core.logging import get_logger
from storyboardgen.services import GenerationContext, UsageLedger

router = APIRouter()
logger = get_logger("api.usage")


@router.get("", response_model=MonthlyUsage)
async def get_usage(
    context: GenerationContext = Depends(get_generation_context),
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    """Current month's credit usage."""
    try:
        return await ledger.get_usage(context.user_id, context.plan_type)
    except StoryboardError as e:
        raise to_http_exception(e)


@router.post("/reset-plan", response_model=MonthlyUsage)
async def reset_plan(
    request: ResetPlanRequest,
    context: GenerationContext = Depends(get_generation_context),
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    """Start the month over on the newly activated plan."""
    if not context.is_paid or context.plan_type != request.plan_type:
        raise HTTPException(status_code=403, detail="Plan is not active for this account")
    try:
        return await ledger.reset_for_new_plan(context.user_id, request.plan_type)
    except StoryboardError as e:
        raise to_http_exception(e)
