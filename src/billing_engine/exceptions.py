"""Exception hierarchy for the billing engine.

Business conditions (a missing invoice, an inactive subscription, an
unreachable subscription oracle) are reported through return values.
The exceptions below cover caller errors and write conflicts only.
"""

from __future__ import annotations

from decimal import Decimal


class BillingEngineError(Exception):
    """Base class for billing engine errors."""


class EntityNotFoundError(BillingEngineError):
    """Raised by lookups that require the entity to exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConcurrentModificationError(BillingEngineError):
    """Raised when a row changed between read and write."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} was modified concurrently")


class InvalidAmountError(BillingEngineError):
    """Raised when a monetary amount is not positive."""

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount}")


class RefundExceedsPaymentError(BillingEngineError):
    """Raised when a refund would push refunded_amount above amount."""

    def __init__(self, requested: Decimal, refundable: Decimal):
        self.requested = requested
        self.refundable = refundable
        super().__init__(
            f"Refund of {requested} exceeds remaining refundable amount {refundable}"
        )


class SubscriptionOracleError(BillingEngineError):
    """Raised by oracle implementations when a lookup cannot be completed.

    The oracle adapter turns this into a failed check; it never reaches
    entitlement callers.
    """


class TrialUnavailableError(BillingEngineError):
    """Raised when a PRO trial is requested for a user who cannot get one."""

    def __init__(self, user_id: object, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Trial unavailable for user {user_id}: {reason}")
