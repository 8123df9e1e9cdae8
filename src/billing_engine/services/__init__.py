"""Billing engine services."""

from billing_engine.services.client_quota import (
    FREE_CLIENT_LIMIT,
    ClientCapacity,
    ClientQuotaEnforcer,
)
from billing_engine.services.invoice_status import (
    InvoiceStatus,
    InvoiceStatusMachine,
    InvoiceStatusResolver,
    ReconcileSummary,
)
from billing_engine.services.payment_ledger import (
    COUNTABLE_STATUSES,
    InvoicePaidAmounts,
    LedgerRecorder,
    PaymentLedger,
    PaymentStatus,
)
from billing_engine.services.plan import (
    GRACE_LENGTH,
    TRIAL_LENGTH,
    CurrentPlan,
    PlanTier,
    UserRole,
    describe_plan,
)
from billing_engine.services.plan_service import EntitlementResult, PlanEntitlementService
from billing_engine.services.subscription_oracle import (
    SubscriptionOracleAdapter,
    build_subscription_oracle_adapter,
)

__all__ = [
    "FREE_CLIENT_LIMIT",
    "ClientCapacity",
    "ClientQuotaEnforcer",
    "InvoiceStatus",
    "InvoiceStatusMachine",
    "InvoiceStatusResolver",
    "ReconcileSummary",
    "COUNTABLE_STATUSES",
    "InvoicePaidAmounts",
    "LedgerRecorder",
    "PaymentLedger",
    "PaymentStatus",
    "GRACE_LENGTH",
    "TRIAL_LENGTH",
    "CurrentPlan",
    "PlanTier",
    "UserRole",
    "describe_plan",
    "EntitlementResult",
    "PlanEntitlementService",
    "SubscriptionOracleAdapter",
    "build_subscription_oracle_adapter",
]
