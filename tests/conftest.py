"""Pytest fixtures for billing engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from billing_engine.config import Settings
from billing_engine.models import Base, Client, Company, Invoice, Payment, User
from billing_engine.providers.stub import LoggingTrialReminderSender, StaticSubscriptionOracle
from billing_engine.repository import BillingRepository
from billing_engine.services.plan_service import PlanEntitlementService
from billing_engine.services.subscription_oracle import SubscriptionOracleAdapter

# In-memory SQLite shared across sessions through a single static connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    """Settings with no external services configured."""
    values = dict(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        stripe_secret_key=None,
        stripe_timeout_seconds=5.0,
        email_api_url=None,
        email_api_key=None,
        email_from="billing@example.com",
        app_base_url="https://app.example.com",
    )
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def engine():
    """Create test database engine with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(session: AsyncSession) -> BillingRepository:
    return BillingRepository(session)


@pytest_asyncio.fixture
async def company(session: AsyncSession) -> Company:
    """Create a test company without an owner."""
    company = Company(company_id=uuid4(), name="Test Company")
    session.add(company)
    await session.flush()
    return company


@pytest.fixture
def make_invoice(
    session: AsyncSession, company: Company
) -> Callable[..., Awaitable[Invoice]]:
    """Factory for invoices in the test company."""

    async def _make(
        total: str = "100.00",
        status: str = "OPEN",
        due_date: datetime | None = None,
    ) -> Invoice:
        invoice = Invoice(
            invoice_id=uuid4(),
            company_id=company.company_id,
            total=Decimal(total),
            status=status,
            amount_paid=Decimal("0.00"),
            due_date=due_date,
        )
        session.add(invoice)
        await session.flush()
        return invoice

    return _make


@pytest.fixture
def add_payment(session: AsyncSession) -> Callable[..., Awaitable[Payment]]:
    """Factory for raw payment rows."""

    async def _add(
        invoice: Invoice,
        amount: str,
        status: str = "succeeded",
        refunded: str = "0.00",
    ) -> Payment:
        payment = Payment(
            payment_id=uuid4(),
            invoice_id=invoice.invoice_id,
            amount=Decimal(amount),
            refunded_amount=Decimal(refunded),
            status=status,
        )
        session.add(payment)
        await session.flush()
        return payment

    return _add


@pytest.fixture
def make_user(session: AsyncSession, company: Company) -> Callable[..., Awaitable[User]]:
    """Factory for users in the test company."""

    async def _make(**fields) -> User:
        fields.setdefault("user_id", uuid4())
        fields.setdefault("email", f"user-{fields['user_id'].hex[:6]}@example.com")
        fields.setdefault("role", "OWNER")
        fields.setdefault("plan_tier", "FREE")
        fields.setdefault("pro_trial_reminder_sent", False)
        fields.setdefault("company_id", company.company_id)
        user = User(**fields)
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_clients(session: AsyncSession, company: Company) -> Callable[[int], Awaitable[list[Client]]]:
    """Create N active clients with strictly increasing created_at."""

    async def _make(count: int, start: datetime = NOW - timedelta(days=30)) -> list[Client]:
        clients = [
            Client(
                client_id=uuid4(),
                company_id=company.company_id,
                name=f"Client {i + 1}",
                created_at=start + timedelta(hours=i),
            )
            for i in range(count)
        ]
        session.add_all(clients)
        await session.flush()
        return clients

    return _make


@pytest.fixture
def oracle() -> StaticSubscriptionOracle:
    return StaticSubscriptionOracle()


@pytest.fixture
def oracle_adapter(oracle: StaticSubscriptionOracle) -> SubscriptionOracleAdapter:
    return SubscriptionOracleAdapter(oracle, timeout_seconds=1.0)


@pytest.fixture
def reminder_sender() -> LoggingTrialReminderSender:
    return LoggingTrialReminderSender()


@pytest.fixture
def plan_service(
    repository: BillingRepository,
    oracle_adapter: SubscriptionOracleAdapter,
    reminder_sender: LoggingTrialReminderSender,
) -> PlanEntitlementService:
    return PlanEntitlementService(repository, oracle_adapter, reminder_sender)
