"""Billing engine command line interface.

Provides operational tools for:
- Reconciling a single invoice or every invoice of a company
- Reconciling a user's plan (trial expiry, subscription re-check)
- Showing a user's current plan
- Creating the schema in a development database

Usage:
    python -m billing_engine.cli reconcile-invoice --invoice-id X
    python -m billing_engine.cli reconcile-company --company-id X
    python -m billing_engine.cli ensure-plan --user-id X
    python -m billing_engine.cli describe-plan --user-id X [--live]
    python -m billing_engine.cli init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from billing_engine.config import get_settings
from billing_engine.database import create_schema, dispose_db, get_session
from billing_engine.logging_config import configure_logging
from billing_engine.providers.mailer import build_reminder_sender
from billing_engine.repository import BillingRepository
from billing_engine.services.invoice_status import InvoiceStatusResolver
from billing_engine.services.plan import describe_plan
from billing_engine.services.plan_service import PlanEntitlementService
from billing_engine.services.subscription_oracle import build_subscription_oracle_adapter


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _print(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=_json_default))


class BillingCli:
    """Billing engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m billing_engine.cli",
            description="Billing reconciliation tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        invoice = subparsers.add_parser(
            "reconcile-invoice",
            help="Recompute one invoice's status from its payments",
        )
        invoice.add_argument("--invoice-id", type=parse_uuid, required=True)

        company = subparsers.add_parser(
            "reconcile-company",
            help="Recompute every invoice of a company (overdue sweep)",
        )
        company.add_argument("--company-id", type=parse_uuid, required=True)

        ensure = subparsers.add_parser(
            "ensure-plan",
            help="Apply trial and subscription transitions for a user",
        )
        ensure.add_argument("--user-id", type=parse_uuid, required=True)

        describe = subparsers.add_parser(
            "describe-plan",
            help="Show a user's current plan",
        )
        describe.add_argument("--user-id", type=parse_uuid, required=True)
        describe.add_argument(
            "--live",
            action="store_true",
            help="Also read live subscription status from the processor",
        )

        subparsers.add_parser("init-db", help="Create tables in the configured database")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(get_settings().log_level)

        handlers = {
            "reconcile-invoice": self._cmd_reconcile_invoice,
            "reconcile-company": self._cmd_reconcile_company,
            "ensure-plan": self._cmd_ensure_plan,
            "describe-plan": self._cmd_describe_plan,
            "init-db": self._cmd_init_db,
        }
        return asyncio.run(self._run_async(handlers[parsed.command], parsed))

    async def _run_async(self, handler: Any, args: argparse.Namespace) -> int:
        try:
            return await handler(args)
        finally:
            await dispose_db()

    def _plan_service(self, repository: BillingRepository) -> PlanEntitlementService:
        settings = get_settings()
        return PlanEntitlementService(
            repository,
            build_subscription_oracle_adapter(settings),
            build_reminder_sender(settings),
        )

    async def _cmd_reconcile_invoice(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            invoice = await InvoiceStatusResolver(BillingRepository(session)).reconcile(
                args.invoice_id
            )
            if invoice is None:
                print(f"Invoice {args.invoice_id} not found", file=sys.stderr)
                return 1
            _print(
                {
                    "invoice_id": invoice.invoice_id,
                    "status": invoice.status,
                    "amount_paid": invoice.amount_paid,
                    "total": invoice.total,
                    "paid_at": invoice.paid_at,
                }
            )
        return 0

    async def _cmd_reconcile_company(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            summary = await InvoiceStatusResolver(BillingRepository(session)).reconcile_company(
                args.company_id
            )
        _print({"company_id": args.company_id, **asdict(summary)})
        return 0

    async def _cmd_ensure_plan(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            repository = BillingRepository(session)
            user = await repository.get_user(args.user_id)
            if user is None:
                print(f"User {args.user_id} not found", file=sys.stderr)
                return 1
            result = await self._plan_service(repository).ensure_trial_state(user)
            subject = result.plan_subject
            _print(
                {
                    "user_id": user.user_id,
                    "plan_subject_id": subject.user_id,
                    "plan_tier": subject.plan_tier,
                    "changed": result.changed,
                    "subscription_check_error": result.subscription_check_error,
                }
            )
        return 0

    async def _cmd_describe_plan(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            repository = BillingRepository(session)
            user = await repository.get_user(args.user_id)
            if user is None:
                print(f"User {args.user_id} not found", file=sys.stderr)
                return 1
            service = self._plan_service(repository)
            if args.live:
                plan = await service.get_current_plan(user)
            else:
                _, owner = await service.load_plan_owner(user)
                plan = describe_plan(user, owner)
        _print(asdict(plan))
        return 0

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        await create_schema()
        print("Schema created")
        return 0


def main() -> int:
    """CLI entry point."""
    return BillingCli().run()


if __name__ == "__main__":
    sys.exit(main())
