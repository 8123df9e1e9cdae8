"""Tests for subscription references, classification and the oracle adapter."""

import asyncio
from datetime import timedelta
from types import SimpleNamespace

import pytest
import stripe

from billing_engine.providers.base import (
    CheckOutcome,
    SubscriptionRef,
    SubscriptionRefKind,
    SubscriptionSnapshot,
    classify_snapshot,
)
from billing_engine.providers.stripe_oracle import StripeSubscriptionOracle
from billing_engine.providers.stub import StaticSubscriptionOracle, UnconfiguredSubscriptionOracle
from billing_engine.services.subscription_oracle import (
    SubscriptionOracleAdapter,
    build_subscription_oracle_adapter,
)

from .conftest import NOW, make_settings


class TestSubscriptionRef:
    """Parsing the stored subscription id column."""

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_is_none(self, raw):
        assert SubscriptionRef.parse(raw).is_none

    @pytest.mark.parametrize("raw", ["ALWAYS", "1", " ALWAYS "])
    def test_sentinels_are_always_active(self, raw):
        ref = SubscriptionRef.parse(raw)
        assert ref.kind == SubscriptionRefKind.ALWAYS_ACTIVE
        assert ref.to_column() == "ALWAYS"

    def test_external_id(self):
        ref = SubscriptionRef.parse("sub_123")
        assert ref.is_external
        assert ref.external_id == "sub_123"
        assert ref.to_column() == "sub_123"

    def test_external_requires_id(self):
        with pytest.raises(ValueError):
            SubscriptionRef.external("")


class TestClassifySnapshot:
    """Deciding whether a retrieved subscription entitles its holder."""

    def test_missing_subscription(self):
        check = classify_snapshot(None, NOW)
        assert check.outcome == CheckOutcome.INACTIVE_CONFIRMED
        assert check.reason == "Subscription not found"

    @pytest.mark.parametrize("status", ["canceled", "incomplete", "incomplete_expired", "unpaid"])
    def test_inactive_statuses(self, status):
        check = classify_snapshot(SubscriptionSnapshot("sub_1", status), NOW)
        assert check.outcome == CheckOutcome.INACTIVE_CONFIRMED
        assert check.reason == f"Subscription status is {status}"

    @pytest.mark.parametrize("status", ["active", "trialing", "past_due"])
    def test_active_statuses(self, status):
        check = classify_snapshot(SubscriptionSnapshot("sub_1", status), NOW)
        assert check.active

    def test_cancel_at_in_past(self):
        snapshot = SubscriptionSnapshot("sub_1", "active", cancel_at=NOW - timedelta(seconds=1))
        check = classify_snapshot(snapshot, NOW)
        assert check.outcome == CheckOutcome.INACTIVE_CONFIRMED
        assert "scheduled to cancel" in check.reason

    def test_cancel_at_in_future(self):
        snapshot = SubscriptionSnapshot("sub_1", "active", cancel_at=NOW + timedelta(days=10))
        assert classify_snapshot(snapshot, NOW).active


class SlowOracle:
    provider_name = "slow"

    async def retrieve(self, subscription_id):
        await asyncio.sleep(1)


class BrokenOracle:
    provider_name = "broken"

    async def retrieve(self, subscription_id):
        raise RuntimeError("boom")


class TestSubscriptionOracleAdapter:
    """Bounded, non-raising checks."""

    async def test_none_ref_is_inactive_without_lookup(self):
        oracle = StaticSubscriptionOracle()
        check = await SubscriptionOracleAdapter(oracle).check(SubscriptionRef.none(), now=NOW)

        assert check.outcome == CheckOutcome.INACTIVE_CONFIRMED
        assert oracle.calls == []

    async def test_always_active_ref_skips_lookup(self):
        oracle = StaticSubscriptionOracle()
        check = await SubscriptionOracleAdapter(oracle).check(
            SubscriptionRef.always_active(), now=NOW
        )

        assert check.active
        assert oracle.calls == []

    async def test_external_ref_is_classified(self):
        oracle = StaticSubscriptionOracle()
        oracle.add(SubscriptionSnapshot("sub_ok", "active"))
        oracle.add(SubscriptionSnapshot("sub_gone", "canceled"))
        adapter = SubscriptionOracleAdapter(oracle)

        assert (await adapter.check(SubscriptionRef.external("sub_ok"), now=NOW)).active
        gone = await adapter.check(SubscriptionRef.external("sub_gone"), now=NOW)
        assert gone.outcome == CheckOutcome.INACTIVE_CONFIRMED
        unknown = await adapter.check(SubscriptionRef.external("sub_unknown"), now=NOW)
        assert unknown.reason == "Subscription not found"

    async def test_oracle_error_is_check_failed(self):
        oracle = StaticSubscriptionOracle(failing={"sub_1": "Connection reset"})

        check = await SubscriptionOracleAdapter(oracle).check(
            SubscriptionRef.external("sub_1"), now=NOW
        )

        assert check.failed_check
        assert check.reason == "Connection reset"

    async def test_timeout_is_check_failed(self):
        adapter = SubscriptionOracleAdapter(SlowOracle(), timeout_seconds=0.01)

        check = await adapter.check(SubscriptionRef.external("sub_1"), now=NOW)

        assert check.failed_check
        assert "timed out" in check.reason

    async def test_unexpected_error_is_check_failed(self):
        adapter = SubscriptionOracleAdapter(BrokenOracle())

        check = await adapter.check(SubscriptionRef.external("sub_1"), now=NOW)

        assert check.failed_check
        assert check.reason == "boom"

    async def test_unconfigured_oracle_fails_soft(self):
        adapter = build_subscription_oracle_adapter(make_settings())

        assert isinstance(adapter.oracle, UnconfiguredSubscriptionOracle)
        check = await adapter.check(SubscriptionRef.external("sub_1"), now=NOW)
        assert check.failed_check
        assert check.reason == "Stripe secret key is not configured"

    def test_configured_adapter_uses_stripe(self):
        adapter = build_subscription_oracle_adapter(
            make_settings(stripe_secret_key="sk_test_123", stripe_timeout_seconds=3.0)
        )

        assert isinstance(adapter.oracle, StripeSubscriptionOracle)
        assert adapter.timeout_seconds == 3.0


class TestStripeSubscriptionOracle:
    """Stripe-backed retrieval with the Stripe client patched out."""

    async def test_retrieve_active(self, monkeypatch):
        cancel_at = int((NOW + timedelta(days=5)).timestamp())
        calls = []

        def fake_retrieve(subscription_id, api_key=None):
            calls.append((subscription_id, api_key))
            return SimpleNamespace(status="active", cancel_at=cancel_at)

        monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)

        snapshot = await StripeSubscriptionOracle("sk_test_123").retrieve("sub_1")

        assert calls == [("sub_1", "sk_test_123")]
        assert snapshot.status == "active"
        assert snapshot.cancel_at == NOW + timedelta(days=5)

    async def test_missing_subscription_is_none(self, monkeypatch):
        def fake_retrieve(subscription_id, api_key=None):
            raise stripe.InvalidRequestError(
                f"No such subscription: '{subscription_id}'", "id", code="resource_missing"
            )

        monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)

        assert await StripeSubscriptionOracle("sk_test_123").retrieve("sub_1") is None

    async def test_confirmed_missing_downgrades_through_adapter(self, monkeypatch):
        def fake_retrieve(subscription_id, api_key=None):
            raise stripe.InvalidRequestError("No such subscription", "id", code="resource_missing")

        monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)
        adapter = SubscriptionOracleAdapter(StripeSubscriptionOracle("sk_test_123"))

        check = await adapter.check(SubscriptionRef.external("sub_1"), now=NOW)

        assert check.outcome == CheckOutcome.INACTIVE_CONFIRMED

    async def test_network_error_is_check_failed(self, monkeypatch):
        def fake_retrieve(subscription_id, api_key=None):
            raise stripe.APIConnectionError("Network is unreachable")

        monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)
        adapter = SubscriptionOracleAdapter(StripeSubscriptionOracle("sk_test_123"))

        check = await adapter.check(SubscriptionRef.external("sub_1"), now=NOW)

        assert check.failed_check
        assert check.reason == "Network is unreachable"

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            StripeSubscriptionOracle("")
