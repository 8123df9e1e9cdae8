"""Invoice status state machine and resolver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_engine.models import Invoice, utcnow
from billing_engine.repository import BillingRepository
from billing_engine.services.payment_ledger import PaymentLedger, to_money

logger = logging.getLogger(__name__)


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    SENT = "SENT"
    VIEWED = "VIEWED"
    SIGNED = "SIGNED"
    COMPLETED = "COMPLETED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class InvoiceStatusMachine:
    """Derives an invoice's payment status from its net paid amount.

    The resolver only ever writes OPEN, PARTIALLY_PAID, PAID or OVERDUE.
    Draft and void invoices keep their status; a payment landing on them
    refreshes the amount_paid cache only.
    """

    RESOLVED_STATUSES = frozenset(
        {
            InvoiceStatus.OPEN.value,
            InvoiceStatus.PARTIALLY_PAID.value,
            InvoiceStatus.PAID.value,
            InvoiceStatus.OVERDUE.value,
        }
    )

    RESOLVER_IMMUNE = frozenset(
        {
            InvoiceStatus.DRAFT.value,
            InvoiceStatus.VOID.value,
        }
    )

    @classmethod
    def next_status(
        cls,
        *,
        net_paid: Decimal,
        total: Decimal,
        due_date: datetime | None,
        now: datetime,
    ) -> InvoiceStatus:
        """Compute the payment status for the given ledger state."""
        if net_paid >= total:
            return InvoiceStatus.PAID
        if net_paid > 0:
            return InvoiceStatus.PARTIALLY_PAID
        if due_date is not None and due_date < now:
            return InvoiceStatus.OVERDUE
        return InvoiceStatus.OPEN

    @classmethod
    def is_immune(cls, status: str) -> bool:
        """Check if the resolver must leave this status alone."""
        return status in cls.RESOLVER_IMMUNE


@dataclass
class ReconcileSummary:
    """Result of reconciling a batch of invoices."""

    processed: int = 0
    updated: int = 0
    missing: int = 0


class InvoiceStatusResolver:
    """Reconciles invoice status and amount_paid against the payment ledger.

    Reconciliation is idempotent: a second run over an unchanged ledger
    issues no write. paid_at is set on the first transition into PAID and
    never cleared afterwards, even if refunds later reopen the invoice.
    """

    def __init__(self, repository: BillingRepository, ledger: PaymentLedger | None = None):
        self.repository = repository
        self.ledger = ledger or PaymentLedger(repository)

    async def reconcile(
        self, invoice_id: UUID, *, now: datetime | None = None
    ) -> Invoice | None:
        """Bring one invoice in line with its ledger.

        Returns:
            The invoice (updated or unchanged), or None if it does not exist.
        """
        invoice, _ = await self._reconcile(invoice_id, now or utcnow())
        return invoice

    async def reconcile_many(
        self, invoice_ids: list[UUID], *, now: datetime | None = None
    ) -> ReconcileSummary:
        """Reconcile several invoices with a shared clock."""
        now = now or utcnow()
        summary = ReconcileSummary()
        for invoice_id in invoice_ids:
            invoice, changed = await self._reconcile(invoice_id, now)
            summary.processed += 1
            if invoice is None:
                summary.missing += 1
            elif changed:
                summary.updated += 1
        return summary

    async def reconcile_company(
        self, company_id: UUID, *, now: datetime | None = None
    ) -> ReconcileSummary:
        """Reconcile every invoice of a company (overdue sweep)."""
        invoice_ids = await self.repository.list_invoice_ids(company_id)
        return await self.reconcile_many(invoice_ids, now=now)

    async def _reconcile(
        self, invoice_id: UUID, now: datetime
    ) -> tuple[Invoice | None, bool]:
        invoice = await self.repository.get_invoice(invoice_id)
        if invoice is None:
            logger.debug("Reconcile skipped: invoice %s not found", invoice_id)
            return None, False

        amounts = await self.ledger.compute_paid_amounts(invoice_id)
        net_paid = amounts.net_paid

        if InvoiceStatusMachine.is_immune(invoice.status):
            next_status = invoice.status
        else:
            next_status = InvoiceStatusMachine.next_status(
                net_paid=net_paid,
                total=to_money(invoice.total or 0),
                due_date=invoice.due_date,
                now=now,
            ).value

        current_paid = to_money(invoice.amount_paid or 0)
        changed = False

        if current_paid != net_paid:
            invoice.amount_paid = net_paid
            changed = True

        if invoice.status != next_status:
            logger.info(
                "Invoice %s status %s -> %s (net paid %s of %s)",
                invoice_id,
                invoice.status,
                next_status,
                net_paid,
                invoice.total,
            )
            invoice.status = next_status
            changed = True

        if next_status == InvoiceStatus.PAID.value and invoice.paid_at is None:
            invoice.paid_at = now
            changed = True

        if changed:
            await self.repository.save_invoice(invoice)

        return invoice, changed
