"""Base protocols and types for external billing collaborators.

The subscription oracle is the payment processor's authoritative view of a
subscription. The reminder sender delivers trial-ending notices.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


# Raw column values that mean "always active" (internal and admin accounts)
ALWAYS_ACTIVE_SENTINELS = frozenset({"ALWAYS", "1"})
ALWAYS_ACTIVE_COLUMN_VALUE = "ALWAYS"

INACTIVE_SUBSCRIPTION_STATUSES = frozenset(
    {"canceled", "incomplete", "incomplete_expired", "unpaid"}
)


class SubscriptionRefKind(str, Enum):
    """How a user's subscription reference is backed."""

    NONE = "none"
    ALWAYS_ACTIVE = "always_active"
    EXTERNAL = "external"


@dataclass(frozen=True)
class SubscriptionRef:
    """Tagged reference to a user's subscription.

    Replaces the raw ``stripe_subscription_id`` column, whose sentinel
    strings mean "always active" rather than a real processor id.
    """

    kind: SubscriptionRefKind
    external_id: str | None = None

    @classmethod
    def none(cls) -> SubscriptionRef:
        return cls(SubscriptionRefKind.NONE)

    @classmethod
    def always_active(cls) -> SubscriptionRef:
        return cls(SubscriptionRefKind.ALWAYS_ACTIVE)

    @classmethod
    def external(cls, subscription_id: str) -> SubscriptionRef:
        if not subscription_id:
            raise ValueError("External subscription id must be non-empty")
        return cls(SubscriptionRefKind.EXTERNAL, subscription_id)

    @classmethod
    def parse(cls, raw: str | None) -> SubscriptionRef:
        """Parse the stored column value."""
        value = (raw or "").strip()
        if not value:
            return cls.none()
        if value in ALWAYS_ACTIVE_SENTINELS:
            return cls.always_active()
        return cls.external(value)

    def to_column(self) -> str | None:
        """Value to store in the subscription id column."""
        if self.kind == SubscriptionRefKind.ALWAYS_ACTIVE:
            return ALWAYS_ACTIVE_COLUMN_VALUE
        return self.external_id

    @property
    def is_none(self) -> bool:
        return self.kind == SubscriptionRefKind.NONE

    @property
    def is_always_active(self) -> bool:
        return self.kind == SubscriptionRefKind.ALWAYS_ACTIVE

    @property
    def is_external(self) -> bool:
        return self.kind == SubscriptionRefKind.EXTERNAL


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """A subscription as reported by the oracle."""

    subscription_id: str
    status: str  # active/trialing/past_due/canceled/incomplete/...
    cancel_at: datetime.datetime | None = None


class CheckOutcome(str, Enum):
    """Outcome of an entitlement check against the oracle."""

    ACTIVE = "active"
    INACTIVE_CONFIRMED = "inactive_confirmed"
    CHECK_FAILED = "check_failed"


@dataclass(frozen=True)
class SubscriptionCheck:
    """Result of checking a subscription.

    ``INACTIVE_CONFIRMED`` means the oracle answered and the subscription
    does not entitle the user. ``CHECK_FAILED`` means no answer was
    obtained (not configured, transport error, timeout).
    """

    outcome: CheckOutcome
    reason: str | None = None

    @classmethod
    def active_result(cls) -> SubscriptionCheck:
        return cls(CheckOutcome.ACTIVE)

    @classmethod
    def inactive(cls, reason: str | None = None) -> SubscriptionCheck:
        return cls(CheckOutcome.INACTIVE_CONFIRMED, reason)

    @classmethod
    def failed(cls, reason: str) -> SubscriptionCheck:
        return cls(CheckOutcome.CHECK_FAILED, reason)

    @property
    def active(self) -> bool:
        """Legacy view: only a confirmed-active subscription counts."""
        return self.outcome == CheckOutcome.ACTIVE

    @property
    def error(self) -> str | None:
        """Legacy view: the message attached to a non-active result."""
        return self.reason

    @property
    def failed_check(self) -> bool:
        return self.outcome == CheckOutcome.CHECK_FAILED


def classify_snapshot(
    snapshot: SubscriptionSnapshot | None, now: datetime.datetime
) -> SubscriptionCheck:
    """Classify a retrieved subscription as active or confirmed inactive."""
    if snapshot is None:
        return SubscriptionCheck.inactive("Subscription not found")
    if snapshot.status in INACTIVE_SUBSCRIPTION_STATUSES:
        return SubscriptionCheck.inactive(f"Subscription status is {snapshot.status}")
    if snapshot.cancel_at is not None and snapshot.cancel_at <= now:
        return SubscriptionCheck.inactive(
            "Subscription is scheduled to cancel or already canceled"
        )
    return SubscriptionCheck.active_result()


class SubscriptionOracle(Protocol):
    """Protocol for subscription oracle adapters.

    Implementations return None when the processor reports the subscription
    does not exist, and raise SubscriptionOracleError when the lookup itself
    fails.
    """

    provider_name: str

    async def retrieve(self, subscription_id: str) -> SubscriptionSnapshot | None:
        """Fetch the current state of a subscription."""
        ...


class TrialReminderSender(Protocol):
    """Protocol for delivering trial-ending reminders."""

    async def send_trial_reminder(self, email: str) -> bool:
        """Send the reminder.

        Returns:
            True if the reminder was handed off for delivery.
        """
        ...
