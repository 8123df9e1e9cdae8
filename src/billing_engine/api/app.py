"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_engine.api.routes import health_router, invoices_router, plans_router
from billing_engine.config import Settings, get_settings
from billing_engine.database import dispose_db, init_db
from billing_engine.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidAmountError,
    RefundExceedsPaymentError,
    TrialUnavailableError,
)
from billing_engine.logging_config import configure_logging
from billing_engine.providers.base import TrialReminderSender
from billing_engine.providers.mailer import build_reminder_sender
from billing_engine.services.subscription_oracle import (
    SubscriptionOracleAdapter,
    build_subscription_oracle_adapter,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    oracle_adapter: SubscriptionOracleAdapter | None = None,
    reminder_sender: TrialReminderSender | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the ones described by ``settings``; tests pass
    their own session factory, oracle and reminder sender.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        owns_engine = app.state.session_factory is None
        if owns_engine:
            _, app.state.session_factory = init_db(settings.database_url)
        yield
        if owns_engine:
            await dispose_db()

    app = FastAPI(
        title="Billing Engine API",
        description="Invoice payment status and plan entitlement reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.oracle_adapter = oracle_adapter or build_subscription_oracle_adapter(settings)
    app.state.reminder_sender = reminder_sender or build_reminder_sender(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(EntityNotFoundError)
    async def not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")

    @app.exception_handler(ConcurrentModificationError)
    async def conflict_handler(
        request: Request, exc: ConcurrentModificationError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "CONCURRENT_MODIFICATION")

    @app.exception_handler(TrialUnavailableError)
    async def trial_unavailable_handler(
        request: Request, exc: TrialUnavailableError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "TRIAL_UNAVAILABLE")

    @app.exception_handler(InvalidAmountError)
    async def invalid_amount_handler(request: Request, exc: InvalidAmountError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "INVALID_AMOUNT")

    @app.exception_handler(RefundExceedsPaymentError)
    async def refund_handler(request: Request, exc: RefundExceedsPaymentError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "REFUND_EXCEEDS_PAYMENT")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(plans_router, prefix="/api/v1")

    return app
