"""ORM models."""

from billing_engine.models.base import Base, TimestampMixin, utcnow
from billing_engine.models.account import Client, Company, User
from billing_engine.models.billing import Invoice, Payment

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Client",
    "Company",
    "User",
    "Invoice",
    "Payment",
]
