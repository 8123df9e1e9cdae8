"""Plan tiers and the read-only plan projection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from billing_engine.models import utcnow
from billing_engine.providers.base import SubscriptionRef

if TYPE_CHECKING:
    from billing_engine.models import User


TRIAL_LENGTH = timedelta(days=30)
GRACE_LENGTH = timedelta(days=7)

SUBSCRIPTION_STATUS_ERROR = "error"


class PlanTier(str, Enum):
    """Stored plan tier values."""

    FREE = "FREE"
    PRO = "PRO"
    PRO_TRIAL = "PRO_TRIAL"


class UserRole(str, Enum):
    """User role values."""

    USER = "USER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


def normalize_plan_tier(tier: str | None) -> PlanTier:
    """Map a stored tier to a PlanTier; unknown values are FREE."""
    if not tier:
        return PlanTier.FREE
    upper = tier.upper()
    if upper == PlanTier.PRO.value:
        return PlanTier.PRO
    if upper == PlanTier.PRO_TRIAL.value:
        return PlanTier.PRO_TRIAL
    return PlanTier.FREE


def is_admin_override(user: User) -> bool:
    """Admins holding the always-active sentinel are PRO unconditionally."""
    role = (user.role or UserRole.USER.value).upper()
    return (
        role == UserRole.ADMIN.value
        and SubscriptionRef.parse(user.stripe_subscription_id).is_always_active
    )


def plan_subject(user: User, plan_owner: User | None = None) -> User:
    """The user whose billing fields govern ``user``'s entitlement."""
    if plan_owner is not None and plan_owner.user_id is not None:
        if plan_owner.user_id != user.user_id:
            return plan_owner
    return user


@dataclass(frozen=True)
class CurrentPlan:
    """Display view of a user's plan."""

    plan_tier: PlanTier
    effective_tier: PlanTier  # FREE or PRO; trials collapse to PRO
    is_trial_active: bool
    is_in_grace_period: bool
    trial_ends_at: datetime | None = None
    grace_ends_at: datetime | None = None
    subscription_cancel_at: datetime | None = None
    subscription_status: str | None = None

    @property
    def is_pro(self) -> bool:
        return self.effective_tier == PlanTier.PRO


def describe_plan(
    user: User, plan_owner: User | None = None, *, now: datetime | None = None
) -> CurrentPlan:
    """Project a user's plan without touching the database or the oracle.

    When ``plan_owner`` is another user, that user's billing fields are
    used. This never downgrades anything; see PlanEntitlementService.
    """
    subject = plan_subject(user, plan_owner)
    now = now or utcnow()

    if is_admin_override(subject):
        tier = PlanTier.PRO
    else:
        tier = normalize_plan_tier(subject.plan_tier)

    trial_ends_at = subject.pro_trial_ends_at
    grace_ends_at = trial_ends_at + GRACE_LENGTH if trial_ends_at else None

    is_trial_active = (
        tier == PlanTier.PRO_TRIAL and trial_ends_at is not None and now < trial_ends_at
    )
    is_in_grace_period = (
        tier == PlanTier.PRO_TRIAL
        and trial_ends_at is not None
        and grace_ends_at is not None
        and trial_ends_at <= now < grace_ends_at
    )
    effective = PlanTier.PRO if tier in (PlanTier.PRO, PlanTier.PRO_TRIAL) else PlanTier.FREE

    return CurrentPlan(
        plan_tier=tier,
        effective_tier=effective,
        is_trial_active=is_trial_active,
        is_in_grace_period=is_in_grace_period,
        trial_ends_at=trial_ends_at,
        grace_ends_at=grace_ends_at,
        subscription_cancel_at=subject.subscription_cancel_at,
        subscription_status=None,
    )
