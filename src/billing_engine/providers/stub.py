"""Stub collaborators for local development and testing."""

from __future__ import annotations

import logging

from billing_engine.exceptions import SubscriptionOracleError
from billing_engine.providers.base import SubscriptionSnapshot

logger = logging.getLogger(__name__)


class StaticSubscriptionOracle:
    """In-memory subscription oracle.

    Subscriptions are registered up front; ids listed in ``failing`` raise
    as if the processor were unreachable.
    """

    provider_name = "static"

    def __init__(
        self,
        subscriptions: dict[str, SubscriptionSnapshot] | None = None,
        failing: dict[str, str] | None = None,
    ):
        self.subscriptions = dict(subscriptions or {})
        self.failing = dict(failing or {})
        self.calls: list[str] = []

    def add(self, snapshot: SubscriptionSnapshot) -> None:
        self.subscriptions[snapshot.subscription_id] = snapshot

    def fail(self, subscription_id: str, message: str = "Connection error") -> None:
        self.failing[subscription_id] = message

    async def retrieve(self, subscription_id: str) -> SubscriptionSnapshot | None:
        self.calls.append(subscription_id)
        if subscription_id in self.failing:
            raise SubscriptionOracleError(self.failing[subscription_id])
        return self.subscriptions.get(subscription_id)


class UnconfiguredSubscriptionOracle:
    """Oracle used when no processor credentials are configured."""

    provider_name = "unconfigured"

    async def retrieve(self, subscription_id: str) -> SubscriptionSnapshot | None:
        raise SubscriptionOracleError("Stripe secret key is not configured")


class LoggingTrialReminderSender:
    """Reminder sender that only logs; records recipients for inspection."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send_trial_reminder(self, email: str) -> bool:
        logger.info("Trial reminder for %s (logging sender, not delivered)", email)
        self.sent.append(email)
        return True
