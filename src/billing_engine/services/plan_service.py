"""Plan entitlement resolution.

Entitlement is re-derived on every "current user" resolution:

- Admins holding the always-active sentinel are PRO, no questions asked.
  Their stored tier is not rewritten.
- PRO is re-verified against the subscription oracle. Only a confirmed
  inactive subscription downgrades; a failed check keeps PRO and carries
  the failure message as an advisory.
- PRO_TRIAL runs trial -> grace -> expired. Entering the 7-day grace
  window sends one reminder; leaving it downgrades to FREE after archiving
  clients beyond the free limit.

Team members are governed by their company owner's plan. The owner's row is
the one read and written; the acting user's row is left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from billing_engine.exceptions import (
    EntityNotFoundError,
    SubscriptionOracleError,
    TrialUnavailableError,
)
from billing_engine.models import Company, User, utcnow
from billing_engine.providers.base import CheckOutcome, SubscriptionRef, TrialReminderSender
from billing_engine.repository import BillingRepository
from billing_engine.services.client_quota import ClientCapacity, ClientQuotaEnforcer
from billing_engine.services.plan import (
    GRACE_LENGTH,
    SUBSCRIPTION_STATUS_ERROR,
    TRIAL_LENGTH,
    CurrentPlan,
    PlanTier,
    UserRole,
    describe_plan,
    is_admin_override,
    normalize_plan_tier,
    plan_subject,
)
from billing_engine.services.subscription_oracle import SubscriptionOracleAdapter

logger = logging.getLogger(__name__)

SUBSCRIPTION_INACTIVE_MESSAGE = "Stripe subscription is no longer active"


@dataclass
class EntitlementResult:
    """A user hydrated with company and plan owner after reconciliation."""

    user: User
    company: Company | None = None
    plan_owner: User | None = None
    subscription_check_error: str | None = None
    changed: bool = False

    @property
    def plan_subject(self) -> User:
        return plan_subject(self.user, self.plan_owner)


def anonymous_user() -> User:
    """Transient FREE user returned when nobody is signed in."""
    return User(
        email="",
        role=UserRole.USER.value,
        plan_tier=PlanTier.FREE.value,
        pro_trial_reminder_sent=False,
    )


class PlanEntitlementService:
    """Applies plan, trial and subscription transitions for a user."""

    def __init__(
        self,
        repository: BillingRepository,
        oracle: SubscriptionOracleAdapter,
        reminder_sender: TrialReminderSender,
        quota_enforcer: ClientQuotaEnforcer | None = None,
    ):
        self.repository = repository
        self.oracle = oracle
        self.reminder_sender = reminder_sender
        self.quota_enforcer = quota_enforcer or ClientQuotaEnforcer(repository)

    async def ensure_trial_state(
        self, user: User | None, *, now: datetime | None = None
    ) -> EntitlementResult:
        """Reconcile the plan governing ``user`` and return it hydrated."""
        if user is None:
            return EntitlementResult(user=anonymous_user())

        now = now or utcnow()
        company, plan_owner = await self.load_plan_owner(user)
        subject = plan_subject(user, plan_owner)

        error, changed = await self._reconcile_subject(subject, now)
        return EntitlementResult(
            user=user,
            company=company,
            plan_owner=plan_owner,
            subscription_check_error=error,
            changed=changed,
        )

    async def get_current_plan(
        self, user: User | None, *, now: datetime | None = None
    ) -> CurrentPlan:
        """describe_plan plus a live subscription read for display fields.

        Oracle failures mark the subscription status as "error".
        """
        if user is None:
            return describe_plan(anonymous_user(), now=now)

        _, plan_owner = await self.load_plan_owner(user)
        plan = describe_plan(user, plan_owner, now=now)
        subject = plan_subject(user, plan_owner)
        ref = SubscriptionRef.parse(subject.stripe_subscription_id)

        if plan.plan_tier != PlanTier.PRO or ref.is_none:
            return plan
        if ref.is_always_active:
            return replace(plan, subscription_status="active")

        try:
            snapshot = await self.oracle.snapshot(ref)
        except SubscriptionOracleError as exc:
            logger.warning("Failed to fetch subscription %s for display: %s", ref.external_id, exc)
            return replace(plan, subscription_status=SUBSCRIPTION_STATUS_ERROR)

        if snapshot is None:
            return replace(plan, subscription_status=SUBSCRIPTION_STATUS_ERROR)

        return replace(
            plan,
            subscription_status=snapshot.status,
            subscription_cancel_at=snapshot.cancel_at or plan.subscription_cancel_at,
        )

    async def start_trial(self, user: User, *, now: datetime | None = None) -> User:
        """Grant a 30-day PRO trial to the plan subject of ``user``.

        Each subject gets one trial. Paid PRO and admin-override subjects
        are returned unchanged.

        Returns:
            The plan subject (the company owner for team members).

        Raises:
            TrialUnavailableError: If a trial is running or was used before
        """
        _, plan_owner = await self.load_plan_owner(user)
        subject = plan_subject(user, plan_owner)

        if is_admin_override(subject) or normalize_plan_tier(subject.plan_tier) == PlanTier.PRO:
            return subject
        if normalize_plan_tier(subject.plan_tier) == PlanTier.PRO_TRIAL:
            raise TrialUnavailableError(subject.user_id, "a trial is already running")
        if subject.pro_trial_granted_at is not None or subject.pro_trial_ends_at is not None:
            raise TrialUnavailableError(subject.user_id, "the trial has already been used")

        now = now or utcnow()
        subject.plan_tier = PlanTier.PRO_TRIAL.value
        subject.pro_trial_granted_at = now
        subject.pro_trial_ends_at = now + TRIAL_LENGTH
        subject.pro_trial_reminder_sent = False
        await self.repository.save_user(subject)
        logger.info(
            "Started PRO trial for user %s until %s", subject.user_id, subject.pro_trial_ends_at
        )
        return subject

    async def client_capacity(self, user: User, company_id: UUID) -> ClientCapacity:
        """Whether ``user``'s company may add another client under its plan.

        Raises:
            EntityNotFoundError: If ``company_id`` is not the user's company
        """
        if user.company_id is None or user.company_id != company_id:
            raise EntityNotFoundError("Company", company_id)
        _, plan_owner = await self.load_plan_owner(user)
        plan = describe_plan(user, plan_owner)
        return await self.quota_enforcer.check_capacity(company_id, unlimited=plan.is_pro)

    async def load_plan_owner(self, user: User) -> tuple[Company | None, User | None]:
        """Load the user's company and the user whose plan governs it.

        Returns the user itself as plan owner when it owns the company, and
        None when the company has no owner (or the owner row is missing).
        """
        company = await self.repository.get_company(user.company_id)
        owner_id = company.owner_id if company is not None else None
        if owner_id is None:
            return company, None
        if owner_id == user.user_id:
            return company, user
        owner = await self.repository.get_user(owner_id)
        return company, owner

    async def _reconcile_subject(self, subject: User, now: datetime) -> tuple[str | None, bool]:
        """Apply transitions to the plan subject.

        Returns:
            (advisory message or None, whether the subject was written)
        """
        # Admin override is projected by describe_plan; the stored tier is kept
        # so removing the sentinel restores whatever plan the row held
        if is_admin_override(subject):
            return None, False

        tier = normalize_plan_tier(subject.plan_tier)

        if tier == PlanTier.PRO:
            return await self._verify_subscription(subject, now)

        if tier != PlanTier.PRO_TRIAL or subject.pro_trial_ends_at is None:
            return None, False

        trial_ends_at = subject.pro_trial_ends_at
        grace_ends_at = trial_ends_at + GRACE_LENGTH

        if now > grace_ends_at:
            await self.quota_enforcer.enforce(subject.company_id)
            subject.plan_tier = PlanTier.FREE.value
            subject.pro_trial_ends_at = None
            subject.pro_trial_reminder_sent = False
            await self.repository.save_user(subject)
            logger.info("PRO trial of user %s expired; downgraded to FREE", subject.user_id)
            return None, True

        if (
            not subject.pro_trial_reminder_sent
            and trial_ends_at <= now <= grace_ends_at
            and subject.email
        ):
            if not await self._send_reminder(subject.email):
                return None, False
            subject.pro_trial_reminder_sent = True
            await self.repository.save_user(subject)
            return None, True

        return None, False

    async def _verify_subscription(self, subject: User, now: datetime) -> tuple[str | None, bool]:
        ref = SubscriptionRef.parse(subject.stripe_subscription_id)
        check = await self.oracle.check(ref, now=now)

        if check.outcome == CheckOutcome.INACTIVE_CONFIRMED:
            subject.plan_tier = PlanTier.FREE.value
            subject.stripe_subscription_id = None
            await self.repository.save_user(subject)
            logger.info(
                "User %s downgraded to FREE: %s",
                subject.user_id,
                check.reason or SUBSCRIPTION_INACTIVE_MESSAGE,
            )
            return check.reason or SUBSCRIPTION_INACTIVE_MESSAGE, True

        if check.outcome == CheckOutcome.CHECK_FAILED:
            return check.reason, False

        return None, False

    async def _send_reminder(self, email: str) -> bool:
        try:
            return await self.reminder_sender.send_trial_reminder(email)
        except Exception:
            logger.exception("Trial reminder to %s failed", email)
            return False
