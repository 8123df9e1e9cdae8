"""Persistence boundary for the reconciliation services.

Every read and write the resolvers perform goes through BillingRepository,
which is constructed per unit of work around an AsyncSession and injected
into the services. Writes are flushed, not committed; the caller owns the
transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from billing_engine.exceptions import ConcurrentModificationError
from billing_engine.models import Client, Company, Invoice, Payment, User


class BillingRepository:
    """Data access for invoices, payments, users, companies and clients."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Invoices and payments
    # ------------------------------------------------------------------

    async def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        return await self.session.get(Invoice, invoice_id)

    async def list_invoice_ids(self, company_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(Invoice.invoice_id)
            .where(Invoice.company_id == company_id)
            .order_by(Invoice.created_at)
        )
        return list(result.scalars().all())

    async def list_payments(
        self, invoice_id: UUID, statuses: Iterable[str] | None = None
    ) -> Sequence[Payment]:
        """Payments for an invoice, optionally filtered by status."""
        query = select(Payment).where(Payment.invoice_id == invoice_id)
        if statuses is not None:
            query = query.where(Payment.status.in_(list(statuses)))
        result = await self.session.execute(query.order_by(Payment.created_at))
        return result.scalars().all()

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        return await self.session.get(Payment, payment_id)

    async def save_payment(self, payment: Payment) -> None:
        self.session.add(payment)
        await self.session.flush()

    async def save_invoice(self, invoice: Invoice) -> None:
        await self._flush_versioned("Invoice", invoice.invoice_id)

    # ------------------------------------------------------------------
    # Users and companies
    # ------------------------------------------------------------------

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def get_company(self, company_id: UUID | None) -> Company | None:
        if company_id is None:
            return None
        return await self.session.get(Company, company_id)

    async def save_user(self, user: User) -> None:
        await self._flush_versioned("User", user.user_id)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    async def list_active_clients(self, company_id: UUID) -> Sequence[Client]:
        """Non-archived clients of a company, oldest first."""
        result = await self.session.execute(
            select(Client)
            .where(Client.company_id == company_id, Client.archived.is_(False))
            .order_by(Client.created_at.asc(), Client.client_id.asc())
        )
        return result.scalars().all()

    async def count_active_clients(self, company_id: UUID) -> int:
        count = await self.session.scalar(
            select(func.count())
            .select_from(Client)
            .where(Client.company_id == company_id, Client.archived.is_(False))
        )
        return count or 0

    async def archive_clients(self, clients: Iterable[Client]) -> None:
        clients = list(clients)
        for client in clients:
            client.archived = True
        if clients:
            await self.session.flush()

    async def _flush_versioned(self, entity: str, entity_id: object) -> None:
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity, entity_id) from exc
