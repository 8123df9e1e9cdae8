"""Stripe-backed subscription oracle."""

from __future__ import annotations

import asyncio
import datetime
import logging

import stripe

from billing_engine.exceptions import SubscriptionOracleError
from billing_engine.providers.base import SubscriptionSnapshot

logger = logging.getLogger(__name__)


def _from_unix(value: int | None) -> datetime.datetime | None:
    if not value:
        return None
    return datetime.datetime.fromtimestamp(int(value), tz=datetime.timezone.utc)


class StripeSubscriptionOracle:
    """Reads subscriptions from Stripe.

    The Stripe client is synchronous; lookups run in a worker thread so the
    caller can bound them with a timeout.
    """

    provider_name = "stripe"

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("Stripe API key is required")
        self.api_key = api_key

    async def retrieve(self, subscription_id: str) -> SubscriptionSnapshot | None:
        """Retrieve a subscription by id."""
        try:
            subscription = await asyncio.to_thread(self._retrieve_sync, subscription_id)
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", None) == "resource_missing":
                logger.info("Stripe subscription %s not found", subscription_id)
                return None
            raise SubscriptionOracleError(exc.user_message or str(exc)) from exc
        except stripe.StripeError as exc:
            raise SubscriptionOracleError(exc.user_message or str(exc)) from exc

        return SubscriptionSnapshot(
            subscription_id=subscription_id,
            status=str(getattr(subscription, "status", "") or ""),
            cancel_at=_from_unix(getattr(subscription, "cancel_at", None)),
        )

    def _retrieve_sync(self, subscription_id: str):
        return stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
