"""Billing-state reconciliation for invoices and plan entitlements."""

__version__ = "0.1.0"
