"""External collaborator adapters (subscription oracle, reminder sender)."""

from billing_engine.providers.base import (
    CheckOutcome,
    SubscriptionCheck,
    SubscriptionOracle,
    SubscriptionRef,
    SubscriptionRefKind,
    SubscriptionSnapshot,
    TrialReminderSender,
    classify_snapshot,
)
from billing_engine.providers.mailer import HttpTrialReminderSender, build_reminder_sender
from billing_engine.providers.stripe_oracle import StripeSubscriptionOracle
from billing_engine.providers.stub import (
    LoggingTrialReminderSender,
    StaticSubscriptionOracle,
    UnconfiguredSubscriptionOracle,
)

__all__ = [
    "CheckOutcome",
    "SubscriptionCheck",
    "SubscriptionOracle",
    "SubscriptionRef",
    "SubscriptionRefKind",
    "SubscriptionSnapshot",
    "TrialReminderSender",
    "classify_snapshot",
    "HttpTrialReminderSender",
    "build_reminder_sender",
    "StripeSubscriptionOracle",
    "LoggingTrialReminderSender",
    "StaticSubscriptionOracle",
    "UnconfiguredSubscriptionOracle",
]
