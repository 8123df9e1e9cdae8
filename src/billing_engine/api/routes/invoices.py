"""Invoice reconciliation and ledger endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, status

from billing_engine.api.dependencies import DbSession, InvoiceResolver, Recorder
from billing_engine.api.schemas import (
    ErrorResponse,
    InvoiceResponse,
    LedgerChangeResponse,
    PaymentCreate,
    PaymentResponse,
    RefundCreate,
)
from billing_engine.services.payment_ledger import PaymentStatus

router = APIRouter(tags=["invoices"])


@router.post(
    "/invoices/{invoice_id}/reconcile",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def reconcile_invoice(
    db: DbSession,
    resolver: InvoiceResolver,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Recompute an invoice's status and amount paid from its payments."""
    invoice = await resolver.reconcile(invoice_id)
    if invoice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invoice {invoice_id} not found",
        )
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=LedgerChangeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def record_payment(
    db: DbSession,
    recorder: Recorder,
    resolver: InvoiceResolver,
    invoice_id: Annotated[UUID, Path()],
    payload: PaymentCreate,
) -> LedgerChangeResponse:
    """Record a payment attempt and reconcile the invoice."""
    try:
        payment_status = PaymentStatus(payload.status)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown payment status '{payload.status}'",
        )

    payment = await recorder.record_payment(
        invoice_id,
        payload.amount,
        status=payment_status,
        provider_reference=payload.provider_reference,
    )
    invoice = await resolver.reconcile(invoice_id)
    await db.commit()
    return LedgerChangeResponse(
        payment=PaymentResponse.model_validate(payment),
        invoice=InvoiceResponse.model_validate(invoice),
    )


@router.post(
    "/payments/{payment_id}/refund",
    response_model=LedgerChangeResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def refund_payment(
    db: DbSession,
    recorder: Recorder,
    resolver: InvoiceResolver,
    payment_id: Annotated[UUID, Path()],
    payload: RefundCreate,
) -> LedgerChangeResponse:
    """Refund part of a payment and reconcile its invoice."""
    payment = await recorder.record_refund(payment_id, payload.amount)
    invoice = await resolver.reconcile(payment.invoice_id)
    await db.commit()
    return LedgerChangeResponse(
        payment=PaymentResponse.model_validate(payment),
        invoice=InvoiceResponse.model_validate(invoice),
    )
