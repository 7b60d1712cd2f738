"""Relay payroll command line interface.

Provides operational tools for:
- Database setup and demo data
- Employee allocation management
- Executing payroll runs
- Run history, pay history and stats
- Quote, status and token lookups against Relay

Usage:
    relay-payroll init-db
    relay-payroll seed
    relay-payroll set-allocations --employee-id X --allocation ETH:1:50 --allocation USDC:8453:50
    relay-payroll run --company-id X --total 10000
    relay-payroll --offline run --company-id X --total 10000
    relay-payroll status --request-id 0xabc

All commands print JSON to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from typing import IO, Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from relay_payroll.chains import CHAINS, get_chain_by_slug, get_explorer_url, get_token_address
from relay_payroll.config import Settings, get_settings
from relay_payroll.database import create_all, dispose_db, init_db
from relay_payroll.errors import RelayPayrollError
from relay_payroll.models import Company, Employee, PayEvent, PayrollRun, TokenAllocation
from relay_payroll.providers import RelayQuoteProvider, StubQuoteProvider
from relay_payroll.seed import seed_demo_data
from relay_payroll.services import (
    AllocationInput,
    LegRoute,
    PayrollRunService,
    PayrollStore,
    QuoteResolver,
)

CliProvider = RelayQuoteProvider | StubQuoteProvider


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal amount."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}") from None


def parse_positive_decimal(s: str) -> Decimal:
    """Parse a finite amount greater than zero."""
    value = parse_decimal(s)
    if not value.is_finite() or value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive amount: {s!r}")
    return value


def parse_allocation(s: str) -> AllocationInput:
    """Parse SYMBOL:CHAIN_ID:PERCENT, e.g. USDC:8453:50."""
    parts = s.split(":")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"expected SYMBOL:CHAIN_ID:PERCENT, got {s!r}")
    symbol, chain_id, percentage = parts
    try:
        return AllocationInput(
            token_symbol=symbol.upper(), chain_id=int(chain_id), percentage=Decimal(percentage)
        )
    except (ValueError, InvalidOperation):
        raise argparse.ArgumentTypeError(f"invalid allocation {s!r}") from None


def parse_employee_amount(s: str) -> tuple[UUID, Decimal]:
    """Parse EMPLOYEE_ID=AMOUNT."""
    employee_id, sep, amount = s.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected EMPLOYEE_ID=AMOUNT, got {s!r}")
    try:
        return UUID(employee_id), Decimal(amount)
    except (ValueError, InvalidOperation):
        raise argparse.ArgumentTypeError(f"invalid employee amount {s!r}") from None


def configure_logging(level: str) -> None:
    """Log to stderr so stdout stays valid JSON."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def allocation_to_dict(allocation: TokenAllocation) -> dict[str, Any]:
    return {
        "id": str(allocation.token_allocation_id),
        "token_symbol": allocation.token_symbol,
        "token_address": allocation.token_address,
        "chain_id": allocation.chain_id,
        "chain_name": allocation.chain_name,
        "percentage": str(allocation.percentage),
    }


def employee_to_dict(employee: Employee) -> dict[str, Any]:
    return {
        "id": str(employee.employee_id),
        "company_id": str(employee.company_id),
        "name": employee.name,
        "email": employee.email,
        "wallet_address": employee.wallet_address,
        "allocations": [allocation_to_dict(a) for a in employee.allocations],
    }


def company_to_dict(company: Company) -> dict[str, Any]:
    return {
        "id": str(company.company_id),
        "name": company.name,
        "wallet_address": company.wallet_address,
        "chain": company.chain,
        "balance": str(company.balance),
        "employee_count": len(company.employees),
    }


def pay_event_to_dict(event: PayEvent) -> dict[str, Any]:
    data = event.to_dict()
    if event.relay_tx_hash:
        data["explorer_url"] = get_explorer_url(event.to_chain_id, event.relay_tx_hash)
    return data


def payroll_run_to_dict(run: PayrollRun, with_events: bool = False) -> dict[str, Any]:
    data = run.to_dict()
    data["company_name"] = run.company.name
    data["pay_event_count"] = len(run.pay_events)
    if with_events:
        data["pay_events"] = [pay_event_to_dict(e) for e in run.pay_events]
    return data


class RelayPayrollCli:
    """Relay payroll command line interface."""

    def __init__(
        self,
        settings: Settings | None = None,
        provider_factory: Callable[[bool], CliProvider] | None = None,
        out: IO[str] | None = None,
    ) -> None:
        self.settings = settings
        self.provider_factory = provider_factory or self._default_provider
        self.out = out
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="relay-payroll",
            description="Cross-chain crypto payroll on Relay",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (defaults to DATABASE_URL)",
        )
        parser.add_argument(
            "--offline",
            action="store_true",
            help="Price legs with the local stub provider instead of the Relay API",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create database tables")

        seed = subparsers.add_parser("seed", help="Load demo companies and employees")
        seed.add_argument(
            "--keep-existing",
            action="store_true",
            help="Do not delete existing data first",
        )

        subparsers.add_parser("companies", help="List companies")

        employees = subparsers.add_parser("employees", help="List employees")
        employees.add_argument("--company-id", type=parse_uuid, help="Only this company")

        allocations = subparsers.add_parser(
            "set-allocations",
            help="Replace an employee's token allocations",
        )
        allocations.add_argument("--employee-id", type=parse_uuid, required=True)
        allocations.add_argument(
            "--allocation",
            type=parse_allocation,
            action="append",
            default=[],
            metavar="SYMBOL:CHAIN_ID:PERCENT",
            help="Repeat for each leg. Omit to revert to the default allocation",
        )

        run = subparsers.add_parser("run", help="Execute a payroll run")
        run.add_argument("--company-id", type=parse_uuid, required=True)
        run.add_argument("--total", type=parse_decimal, required=True, help="Total amount")
        run.add_argument("--currency", type=str, help="Run currency (default settlement asset)")
        run.add_argument(
            "--amount",
            type=parse_employee_amount,
            action="append",
            metavar="EMPLOYEE_ID=AMOUNT",
            help="Explicit amount for one employee. Repeat for each employee",
        )

        runs = subparsers.add_parser("runs", help="List payroll runs, newest first")
        runs.add_argument("--company-id", type=parse_uuid, help="Only this company")

        show_run = subparsers.add_parser("show-run", help="Show a run with its pay events")
        show_run.add_argument("--run-id", type=parse_uuid, required=True)

        history = subparsers.add_parser("pay-history", help="Pay events of an employee")
        history.add_argument("--employee-id", type=parse_uuid, required=True)

        subparsers.add_parser("stats", help="Totals over completed payroll")

        quote = subparsers.add_parser("quote", help="Price one leg")
        quote.add_argument(
            "--from-chain",
            type=str,
            default="ethereum",
            help="Origin chain slug",
        )
        quote.add_argument("--to-token", type=str, required=True)
        quote.add_argument("--to-chain-id", type=int, required=True)
        quote.add_argument("--amount", type=parse_positive_decimal, required=True)
        quote.add_argument("--user", type=str, required=True, help="Payer wallet")
        quote.add_argument("--recipient", type=str, required=True)

        status = subparsers.add_parser("status", help="Status of a Relay request")
        status.add_argument("--request-id", type=str, required=True, help="Relay request id")

        tokens = subparsers.add_parser("tokens", help="Tokens Relay supports on a chain")
        tokens.add_argument(
            "--chain-id",
            type=int,
            required=True,
            choices=[c.id for c in CHAINS],
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        settings = self.settings or get_settings()
        configure_logging(settings.log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[..., Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "seed": self._cmd_seed,
            "companies": self._cmd_companies,
            "employees": self._cmd_employees,
            "set-allocations": self._cmd_set_allocations,
            "run": self._cmd_run,
            "runs": self._cmd_runs,
            "show-run": self._cmd_show_run,
            "pay-history": self._cmd_pay_history,
            "stats": self._cmd_stats,
            "quote": self._cmd_quote,
            "status": self._cmd_status,
            "tokens": self._cmd_tokens,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(self._dispatch(handler, parsed, settings))
        except RelayPayrollError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2

    async def _dispatch(
        self,
        handler: Callable[..., Awaitable[int]],
        args: argparse.Namespace,
        settings: Settings,
    ) -> int:
        init_db(args.database_url or settings.database_url)
        try:
            return await handler(args, settings)
        finally:
            await dispose_db()

    def _emit(self, payload: Any) -> None:
        print(json.dumps(payload, indent=2, default=str), file=self.out or sys.stdout)

    @staticmethod
    def _default_provider(offline: bool) -> CliProvider:
        if offline:
            return StubQuoteProvider()
        return RelayQuoteProvider()

    @staticmethod
    async def _close_provider(provider: CliProvider) -> None:
        if isinstance(provider, RelayQuoteProvider):
            await provider.aclose()

    @staticmethod
    def _store() -> tuple[PayrollStore, AsyncSession]:
        _, factory = init_db()
        session = factory()
        return PayrollStore(session), session

    async def _cmd_init_db(self, args: argparse.Namespace, settings: Settings) -> int:
        """Create tables."""
        await create_all()
        self._emit({"status": "ok"})
        return 0

    async def _cmd_seed(self, args: argparse.Namespace, settings: Settings) -> int:
        """Load demo data."""
        await create_all()
        _, factory = init_db()
        async with factory() as session:
            summary = await seed_demo_data(session, reset=not args.keep_existing)
        self._emit(asdict(summary))
        return 0

    async def _cmd_companies(self, args: argparse.Namespace, settings: Settings) -> int:
        """List companies."""
        store, session = self._store()
        async with session:
            companies = await store.list_companies()
            self._emit([company_to_dict(c) for c in companies])
        return 0

    async def _cmd_employees(self, args: argparse.Namespace, settings: Settings) -> int:
        """List employees."""
        store, session = self._store()
        async with session:
            employees = await store.list_employees(args.company_id)
            self._emit([employee_to_dict(e) for e in employees])
        return 0

    async def _cmd_set_allocations(self, args: argparse.Namespace, settings: Settings) -> int:
        """Replace allocations of an employee."""
        store, session = self._store()
        async with session:
            allocations = await store.replace_allocations(args.employee_id, args.allocation)
            self._emit([allocation_to_dict(a) for a in allocations])
        return 0

    async def _cmd_run(self, args: argparse.Namespace, settings: Settings) -> int:
        """Execute a payroll run."""
        provider = self.provider_factory(args.offline)
        store, session = self._store()
        try:
            async with session:
                service = PayrollRunService.from_settings(store, provider, settings)
                result = await service.execute_payroll_run(
                    args.company_id,
                    args.total,
                    currency=args.currency,
                    employee_amounts=dict(args.amount) if args.amount else None,
                )
        finally:
            await self._close_provider(provider)

        self._emit(result.to_dict())
        return 0 if result.completed_count else 3

    async def _cmd_runs(self, args: argparse.Namespace, settings: Settings) -> int:
        """List payroll runs."""
        store, session = self._store()
        async with session:
            runs = await store.list_payroll_runs(args.company_id)
            self._emit([payroll_run_to_dict(r) for r in runs])
        return 0

    async def _cmd_show_run(self, args: argparse.Namespace, settings: Settings) -> int:
        """Show one payroll run."""
        store, session = self._store()
        async with session:
            run = await store.get_payroll_run(args.run_id)
            if run is None:
                print(f"Payroll run not found: {args.run_id}", file=sys.stderr)
                return 1
            self._emit(payroll_run_to_dict(run, with_events=True))
        return 0

    async def _cmd_pay_history(self, args: argparse.Namespace, settings: Settings) -> int:
        """Show pay history of an employee."""
        store, session = self._store()
        async with session:
            events = await store.get_pay_history(args.employee_id)
            self._emit([pay_event_to_dict(e) for e in events])
        return 0

    async def _cmd_stats(self, args: argparse.Namespace, settings: Settings) -> int:
        """Show payroll stats."""
        store, session = self._store()
        async with session:
            stats = await store.get_payroll_stats()
        self._emit(
            {
                "run_count": stats.run_count,
                "total_routed": str(stats.total_routed),
                "total_fees": str(stats.total_fees),
                "avg_bps": str(stats.avg_bps),
            }
        )
        return 0

    async def _cmd_quote(self, args: argparse.Namespace, settings: Settings) -> int:
        """Price a single leg the way a payroll run would."""
        origin = get_chain_by_slug(args.from_chain)
        if origin is None:
            print(f"Unknown chain: {args.from_chain}", file=sys.stderr)
            return 1
        origin_currency = get_token_address(settings.settlement_asset, origin.id)
        destination_currency = get_token_address(args.to_token, args.to_chain_id)
        if origin_currency is None or destination_currency is None:
            print("Token not supported on the requested chain", file=sys.stderr)
            return 1

        provider = self.provider_factory(args.offline)
        try:
            resolver = QuoteResolver(
                provider,
                settlement_symbol=settings.settlement_asset,
                default_fee_bps=settings.default_fee_bps,
            )
            quote = await resolver.resolve(
                LegRoute(
                    origin_chain_id=origin.id,
                    origin_currency=origin_currency,
                    payer_wallet=args.user,
                    destination_symbol=args.to_token.upper(),
                    destination_currency=destination_currency,
                    destination_chain_id=args.to_chain_id,
                    recipient_wallet=args.recipient,
                ),
                args.amount,
            )
        finally:
            await self._close_provider(provider)

        self._emit(
            {
                "quote_id": quote.quote_id,
                "source": quote.source.value,
                "fee_bps": str(quote.fee_bps),
                "fee_usd": str(quote.fee_usd),
                "steps": [s.model_dump(by_alias=True) for s in quote.steps],
                "error": quote.error,
            }
        )
        return 0

    async def _cmd_status(self, args: argparse.Namespace, settings: Settings) -> int:
        """Look up the status of a Relay request, e.g. a quote id."""
        provider = self.provider_factory(args.offline)
        try:
            status = await provider.get_status(args.request_id)
        finally:
            await self._close_provider(provider)
        self._emit(status.model_dump(by_alias=True))
        return 0

    async def _cmd_tokens(self, args: argparse.Namespace, settings: Settings) -> int:
        """List tokens supported on a chain."""
        provider = self.provider_factory(args.offline)
        try:
            tokens = await provider.get_supported_tokens(args.chain_id)
        finally:
            await self._close_provider(provider)
        self._emit([t.model_dump(by_alias=True) for t in tokens])
        return 0


def main() -> int:
    """CLI entry point."""
    cli = RelayPayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
