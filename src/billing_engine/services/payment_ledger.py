"""Payment ledger aggregation and recording.

The ledger is the list of payment attempts recorded against an invoice.
Only settled attempts (succeeded, partially refunded, refunded) count
toward the amount paid; failed or pending attempts are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from billing_engine.exceptions import (
    EntityNotFoundError,
    InvalidAmountError,
    RefundExceedsPaymentError,
)
from billing_engine.models import Payment
from billing_engine.repository import BillingRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PaymentStatus(str, Enum):
    """Payment attempt status values."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    FAILED = "failed"
    CANCELED = "canceled"


# Statuses whose amounts contribute to the net paid sum
COUNTABLE_STATUSES = frozenset(
    {
        PaymentStatus.SUCCEEDED.value,
        PaymentStatus.PARTIALLY_REFUNDED.value,
        PaymentStatus.REFUNDED.value,
    }
)


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize a value to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoicePaidAmounts:
    """Aggregated ledger amounts for one invoice."""

    net_paid: Decimal
    total_refunded: Decimal
    gross_paid: Decimal


def aggregate_payments(invoice_id: UUID, payments: list[Payment]) -> InvoicePaidAmounts:
    """Sum countable payments into net paid and total refunded.

    A negative net (refunds recorded above gross) is clamped to zero.
    """
    countable = [p for p in payments if p.status in COUNTABLE_STATUSES]
    gross = sum((Decimal(p.amount) for p in countable), ZERO)
    refunded = sum((Decimal(p.refunded_amount or 0) for p in countable), ZERO)
    net = gross - refunded

    if net < 0:
        logger.warning(
            "Negative net paid for invoice %s (gross=%s refunded=%s); clamping to zero",
            invoice_id,
            gross,
            refunded,
        )
        net = ZERO

    return InvoicePaidAmounts(
        net_paid=to_money(net),
        total_refunded=to_money(refunded),
        gross_paid=to_money(gross),
    )


class PaymentLedger:
    """Read-only aggregator over an invoice's payments."""

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    async def compute_paid_amounts(self, invoice_id: UUID) -> InvoicePaidAmounts:
        payments = await self.repository.list_payments(
            invoice_id, statuses=COUNTABLE_STATUSES
        )
        return aggregate_payments(invoice_id, list(payments))


class LedgerRecorder:
    """Records payments and refunds against invoices.

    This is the write side used by checkout and refund flows. It never
    touches the invoice row; callers reconcile the invoice afterwards.
    """

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    async def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        *,
        status: PaymentStatus = PaymentStatus.SUCCEEDED,
        provider_reference: str | None = None,
    ) -> Payment:
        """Append a payment attempt to an invoice's ledger.

        Raises:
            InvalidAmountError: If amount is not positive
            EntityNotFoundError: If the invoice does not exist
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)

        invoice = await self.repository.get_invoice(invoice_id)
        if invoice is None:
            raise EntityNotFoundError("Invoice", invoice_id)

        payment = Payment(
            invoice_id=invoice_id,
            amount=amount,
            refunded_amount=ZERO,
            status=PaymentStatus(status).value,
            provider_reference=provider_reference,
        )
        await self.repository.save_payment(payment)
        logger.info(
            "Recorded %s payment %s of %s on invoice %s",
            payment.status,
            payment.payment_id,
            amount,
            invoice_id,
        )
        return payment

    async def record_refund(self, payment_id: UUID, amount: Decimal) -> Payment:
        """Add a refund to a settled payment.

        Raises:
            InvalidAmountError: If amount is not positive
            EntityNotFoundError: If the payment does not exist
            RefundExceedsPaymentError: If the refund exceeds what remains refundable
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)

        payment = await self.repository.get_payment(payment_id)
        if payment is None:
            raise EntityNotFoundError("Payment", payment_id)

        already_refunded = Decimal(payment.refunded_amount or 0)
        if payment.status in COUNTABLE_STATUSES:
            refundable = to_money(Decimal(payment.amount) - already_refunded)
        else:
            refundable = ZERO
        if amount > refundable:
            raise RefundExceedsPaymentError(amount, refundable)

        payment.refunded_amount = to_money(already_refunded + amount)
        if payment.refunded_amount >= Decimal(payment.amount):
            payment.status = PaymentStatus.REFUNDED.value
        else:
            payment.status = PaymentStatus.PARTIALLY_REFUNDED.value
        await self.repository.save_payment(payment)
        logger.info(
            "Refunded %s on payment %s (now %s, refunded %s)",
            amount,
            payment_id,
            payment.status,
            payment.refunded_amount,
        )
        return payment
