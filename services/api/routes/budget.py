"""
Budget and prompt enhancement endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from services.accounts import SessionUser
from services.jobs import parse_budget, summarize_budget
from services.prompts import PromptEnhancementError

from ..deps import AppServices, current_user, get_services
from ..schemas import BudgetUpdate, EnhancePromptRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["budget"])


async def _summary(services: AppServices, user: SessionUser) -> dict:
    row = await services.users.get_user(user.user_id)
    spent = await services.jobs.total_cost_for_user(user.user_id)
    summary = summarize_budget(
        spent,
        row.get("manual_budget") if row else None,
        services.config.budget.default_ceiling,
    )
    return summary.to_dict()


@router.get("/api/budget")
async def get_budget(
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    return await _summary(services, user)


@router.post("/api/budget")
async def set_budget(
    body: BudgetUpdate,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """Set the manual budget; ``null`` restores the default ceiling."""
    try:
        amount = parse_budget(body.budget)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    await services.users.set_manual_budget(user.user_id, amount)
    logger.info(f"User {user.id} budget set to {amount}")
    return await _summary(services, user)


@router.post("/api/enhance-prompt")
async def enhance_prompt(
    body: EnhancePromptRequest,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    try:
        enhanced = await services.enhancer.enhance(body.prompt, body.type)
    except PromptEnhancementError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from None
    return {"enhancedPrompt": enhanced}
