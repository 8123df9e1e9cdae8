"""Subscription oracle adapter.

Turns an oracle lookup into a SubscriptionCheck. Lookups are bounded by a
timeout and never raise: anything that prevents an answer becomes
CHECK_FAILED, which entitlement callers treat as "keep the current tier".
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from billing_engine.config import Settings
from billing_engine.exceptions import SubscriptionOracleError
from billing_engine.models import utcnow
from billing_engine.providers.base import (
    SubscriptionCheck,
    SubscriptionOracle,
    SubscriptionRef,
    SubscriptionSnapshot,
    classify_snapshot,
)
from billing_engine.providers.stripe_oracle import StripeSubscriptionOracle
from billing_engine.providers.stub import UnconfiguredSubscriptionOracle

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class SubscriptionOracleAdapter:
    """Classifies subscriptions via an oracle with bounded lookups."""

    def __init__(
        self,
        oracle: SubscriptionOracle,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.oracle = oracle
        self.timeout_seconds = timeout_seconds

    async def check(
        self, ref: SubscriptionRef, *, now: datetime | None = None
    ) -> SubscriptionCheck:
        """Check whether a subscription currently entitles its holder."""
        if ref.is_none:
            return SubscriptionCheck.inactive()
        if ref.is_always_active:
            return SubscriptionCheck.active_result()

        try:
            snapshot = await self._retrieve(ref.external_id)
        except SubscriptionOracleError as exc:
            logger.warning("Subscription check for %s failed: %s", ref.external_id, exc)
            return SubscriptionCheck.failed(str(exc))

        return classify_snapshot(snapshot, now or utcnow())

    async def snapshot(self, ref: SubscriptionRef) -> SubscriptionSnapshot | None:
        """Fetch the live subscription for display.

        Raises:
            SubscriptionOracleError: If the lookup fails or times out
        """
        if not ref.is_external:
            return None
        return await self._retrieve(ref.external_id)

    async def _retrieve(self, subscription_id: str) -> SubscriptionSnapshot | None:
        try:
            return await asyncio.wait_for(
                self.oracle.retrieve(subscription_id),
                timeout=self.timeout_seconds,
            )
        except SubscriptionOracleError:
            raise
        except asyncio.TimeoutError as exc:
            raise SubscriptionOracleError(
                f"Subscription lookup timed out after {self.timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error from %s oracle", self.oracle.provider_name)
            raise SubscriptionOracleError(str(exc) or exc.__class__.__name__) from exc


def build_subscription_oracle_adapter(settings: Settings) -> SubscriptionOracleAdapter:
    """Create the adapter for the configured processor."""
    oracle: SubscriptionOracle
    if settings.stripe_secret_key:
        oracle = StripeSubscriptionOracle(settings.stripe_secret_key)
    else:
        logger.warning("STRIPE_SECRET_KEY not set; subscription checks will fail soft")
        oracle = UnconfiguredSubscriptionOracle()
    return SubscriptionOracleAdapter(oracle, timeout_seconds=settings.stripe_timeout_seconds)
