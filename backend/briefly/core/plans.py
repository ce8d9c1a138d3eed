"""Subscription Plans - static plan table and pure plan resolution from user fields.

Invariants:
    - PLANS[0] is Free, PLANS[1] is Pro (lookup by slug, never by index outside this module)
    - A user without subscription_id is always on Free, unsubscribed
    - is_subscribed requires current_period_end + 1 day grace > now
    - Quota checks raise business errors; they never touch IO

Design Decisions:
    - Plan state derived from the user row only: no payment-gateway call on the hot path
      (ADR: reconciliation writes the row, reads stay local)
    - Page quota counts every page, including blank ones
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from briefly.core.errors import (
    ErrorContext, FileTooLargeError, PageLimitExceededError,
)

_MB = 1024 * 1024
SUBSCRIPTION_GRACE = timedelta(days=1)


@dataclass(frozen=True)
class Plan:
    name: str
    slug: str
    quota: int
    pages_per_pdf: int
    max_file_size_mb: int
    price_amount: int


PLANS: tuple[Plan, ...] = (
    Plan(
        name="Free", slug="free", quota=10, pages_per_pdf=5,
        max_file_size_mb=4, price_amount=0,
    ),
    Plan(
        name="Pro", slug="pro", quota=50, pages_per_pdf=25,
        max_file_size_mb=16, price_amount=14,
    ),
)


def get_plan(slug: str) -> Plan:
    for plan in PLANS:
        if plan.slug == slug:
            return plan
    raise KeyError(slug)


class SubscriberLike(Protocol):
    """Subscription columns read from the user row."""
    subscription_id: str | None
    price_id: str | None
    current_period_end: datetime | None


@dataclass(frozen=True)
class SubscriptionPlan:
    """Resolved plan for a user - what routes and ingestion consume."""
    plan: Plan
    is_subscribed: bool
    is_canceled: bool
    current_period_end: datetime | None = None
    subscription_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.plan.name,
            "slug": self.plan.slug,
            "quota": self.plan.quota,
            "pages_per_pdf": self.plan.pages_per_pdf,
            "max_file_size_mb": self.plan.max_file_size_mb,
            "price_amount": self.plan.price_amount,
            "is_subscribed": self.is_subscribed,
            "is_canceled": self.is_canceled,
            "current_period_end": (
                self.current_period_end.isoformat()
                if self.current_period_end else None
            ),
        }


def _free() -> SubscriptionPlan:
    return SubscriptionPlan(
        plan=get_plan("free"), is_subscribed=False, is_canceled=False,
    )


def resolve_subscription_plan(
    user: SubscriberLike | None, now: datetime,
) -> SubscriptionPlan:
    """Resolve the effective plan from the user's stored subscription fields."""
    if user is None or not user.subscription_id:
        return _free()

    period_end = user.current_period_end
    if period_end is not None and period_end.tzinfo is None and now.tzinfo is not None:
        # SQLite hands back naive datetimes; stored values are always UTC
        period_end = period_end.replace(tzinfo=now.tzinfo)

    is_subscribed = bool(
        period_end is not None and period_end + SUBSCRIPTION_GRACE > now
    )
    return SubscriptionPlan(
        plan=get_plan("pro"),
        is_subscribed=is_subscribed,
        is_canceled=not is_subscribed,
        current_period_end=period_end,
        subscription_id=user.subscription_id,
    )


def effective_limits(is_subscribed: bool) -> Plan:
    """Plan whose limits apply to an upload."""
    return get_plan("pro") if is_subscribed else get_plan("free")


def check_page_quota(
    page_count: int, is_subscribed: bool, context: ErrorContext | None = None,
) -> None:
    limit = effective_limits(is_subscribed).pages_per_pdf
    if page_count > limit:
        raise PageLimitExceededError(page_count, limit, context)


def check_file_size(
    size_bytes: int, is_subscribed: bool, context: ErrorContext | None = None,
) -> None:
    limit_mb = effective_limits(is_subscribed).max_file_size_mb
    if size_bytes > limit_mb * _MB:
        raise FileTooLargeError(size_bytes, limit_mb, context)
