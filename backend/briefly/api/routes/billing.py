"""Billing - read-only view of the caller's resolved subscription plan."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from briefly.api.dependencies import get_current_user_id
from briefly.infrastructure.database import get_db
from briefly.schemas.user import PlanResponse
from briefly.services.subscription import get_user_subscription_plan

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.get("/plan", response_model=PlanResponse)
async def get_plan(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plan = await get_user_subscription_plan(db, user_id)
    return plan.to_dict()
