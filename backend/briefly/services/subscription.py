"""Subscription Lookup - loads the user row and resolves its effective plan."""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from briefly.core.plans import SubscriptionPlan, resolve_subscription_plan
from briefly.models.user import User


async def get_user_subscription_plan(
    db: AsyncSession, user_id: str, now: datetime | None = None,
) -> SubscriptionPlan:
    """Unknown users resolve to Free."""
    user = await db.get(User, user_id)
    return resolve_subscription_plan(user, now or datetime.now(timezone.utc))
