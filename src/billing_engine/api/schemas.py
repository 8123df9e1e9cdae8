"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
    code: str


# ============================================================================
# Invoice and ledger schemas
# ============================================================================


class InvoiceResponse(BaseModel):
    """Invoice after reconciliation."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    company_id: UUID | None = None
    number: str | None = None
    total: Decimal
    status: str
    amount_paid: Decimal
    paid_at: datetime | None = None
    due_date: datetime | None = None


class PaymentCreate(BaseModel):
    """Schema for recording a payment against an invoice."""

    amount: Decimal = Field(gt=0, decimal_places=2)
    status: str = "succeeded"
    provider_reference: str | None = None


class RefundCreate(BaseModel):
    """Schema for refunding part or all of a payment."""

    amount: Decimal = Field(gt=0, decimal_places=2)


class PaymentResponse(BaseModel):
    """Payment ledger row."""

    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID
    invoice_id: UUID
    amount: Decimal
    refunded_amount: Decimal
    status: str
    provider_reference: str | None = None


class LedgerChangeResponse(BaseModel):
    """A ledger write together with the reconciled invoice."""

    payment: PaymentResponse
    invoice: InvoiceResponse


# ============================================================================
# Plan schemas
# ============================================================================


class PlanResponse(BaseModel):
    """Current plan view."""

    model_config = ConfigDict(from_attributes=True)

    plan_tier: str
    effective_tier: str
    is_trial_active: bool
    is_in_grace_period: bool
    trial_ends_at: datetime | None = None
    grace_ends_at: datetime | None = None
    subscription_cancel_at: datetime | None = None
    subscription_status: str | None = None


class EntitlementResponse(BaseModel):
    """Result of reconciling a user's plan."""

    user_id: UUID | None
    plan_owner_id: UUID | None = None
    company_id: UUID | None = None
    plan_tier: str
    pro_trial_ends_at: datetime | None = None
    pro_trial_reminder_sent: bool
    subscription_check_error: str | None = None
    changed: bool
    plan: PlanResponse


class ClientCapacityResponse(BaseModel):
    """Whether another client may be created."""

    model_config = ConfigDict(from_attributes=True)

    can_create: bool
    count: int
    limit: int | None = None
    remaining: int | None = None
