"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.database import init_db
from billing_engine.providers.base import TrialReminderSender
from billing_engine.repository import BillingRepository
from billing_engine.services.invoice_status import InvoiceStatusResolver
from billing_engine.services.payment_ledger import LedgerRecorder
from billing_engine.services.plan_service import PlanEntitlementService
from billing_engine.services.subscription_oracle import SubscriptionOracleAdapter


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_repository(db: DbSession) -> BillingRepository:
    return BillingRepository(db)


Repository = Annotated[BillingRepository, Depends(get_repository)]


def get_invoice_resolver(repository: Repository) -> InvoiceStatusResolver:
    return InvoiceStatusResolver(repository)


def get_ledger_recorder(repository: Repository) -> LedgerRecorder:
    return LedgerRecorder(repository)


def get_plan_service(request: Request, repository: Repository) -> PlanEntitlementService:
    oracle: SubscriptionOracleAdapter = request.app.state.oracle_adapter
    sender: TrialReminderSender = request.app.state.reminder_sender
    return PlanEntitlementService(repository, oracle, sender)


# Type aliases for cleaner dependency injection
InvoiceResolver = Annotated[InvoiceStatusResolver, Depends(get_invoice_resolver)]
Recorder = Annotated[LedgerRecorder, Depends(get_ledger_recorder)]
PlanService = Annotated[PlanEntitlementService, Depends(get_plan_service)]
