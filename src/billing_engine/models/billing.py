"""Invoice and payment ledger models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin, utcnow

MONEY = Numeric(12, 2)


class Invoice(Base, TimestampMixin):
    """Invoice whose payment status is derived from its payments.

    ``amount_paid`` is a cache of the ledger's net paid amount. ``version``
    is bumped on every UPDATE and guards against concurrent writers.
    """

    __tablename__ = "invoice"

    invoice_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("company.company_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    number: Mapped[str | None] = mapped_column(String, nullable=True)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="OPEN")
    amount_paid: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=utcnow, onupdate=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("total >= 0", name="invoice_total_non_negative"),
        CheckConstraint(
            "status IN ('DRAFT', 'OPEN', 'SENT', 'VIEWED', 'SIGNED', 'COMPLETED', "
            "'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'VOID', 'REFUNDED', "
            "'PARTIALLY_REFUNDED')",
            name="invoice_status_check",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    payments: Mapped[list[Payment]] = relationship(back_populates="invoice")


class Payment(Base, TimestampMixin):
    """A payment attempt against an invoice, with cumulative refunds."""

    __tablename__ = "payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    refunded_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    provider_reference: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="payment_amount_non_negative"),
        CheckConstraint(
            "refunded_amount >= 0 AND refunded_amount <= amount",
            name="payment_refund_within_amount",
        ),
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'partially_refunded', 'refunded', "
            "'failed', 'canceled')",
            name="payment_status_check",
        ),
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="payments")
