"""API routes."""

from billing_engine.api.routes.health import router as health_router
from billing_engine.api.routes.invoices import router as invoices_router
from billing_engine.api.routes.plans import router as plans_router

__all__ = ["health_router", "invoices_router", "plans_router"]
