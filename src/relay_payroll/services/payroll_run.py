"""Payroll run orchestration.

A run splits a company total across its employees, fans each employee's
share out over their token allocations, and settles every allocation leg
independently:

1. Validate inputs (nothing is persisted when this fails)
2. Create the run in processing status
3. Per leg: resolve quote, execute transfer, record one PayEvent
4. Roll the leg statuses up into the terminal run status

A failing leg never aborts the run. Once the run row exists the caller
always receives a PayrollRunResult.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Mapping
from uuid import UUID

from relay_payroll.chains import (
    DEFAULT_ALLOCATION,
    ZERO_ADDRESS,
    get_chain_by_slug,
    get_token_address,
)
from relay_payroll.config import Settings, get_settings
from relay_payroll.errors import ErrorKind, PayrollValidationError
from relay_payroll.models import Company, Employee
from relay_payroll.models.base import utcnow
from relay_payroll.providers.base import QuoteProvider
from relay_payroll.services.allocations import validate_allocations
from relay_payroll.services.leg_executor import (
    AllocationLeg,
    LegExecutor,
    SimulatedLegExecutor,
    TransferResult,
)
from relay_payroll.services.payroll_store import PayrollPersistence
from relay_payroll.services.quote_resolver import (
    LegRoute,
    QuoteResolver,
    QuoteSource,
    ResolvedQuote,
)
from relay_payroll.services.splitter import split_amount
from relay_payroll.services.state_machine import (
    InvalidTransitionError,
    PayEventStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_ALLOCATION_ID = "default"
DEFAULT_ORIGIN_CHAIN_ID = 1


@dataclass(frozen=True)
class LegResult:
    """Outcome of one allocation leg as reported to the caller."""

    employee_id: UUID
    employee_name: str
    allocation_id: str
    token_symbol: str
    chain_name: str
    amount: Decimal
    transfer_id: str | None
    fee_bps: Decimal
    fee_usd: Decimal
    status: PayEventStatus
    error: str | None = None
    error_kind: ErrorKind | None = None
    quote_id: str | None = None
    quote_source: QuoteSource | None = None
    pay_event_id: UUID | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PayEventStatus.COMPLETE

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "employee_id": str(self.employee_id),
            "employee_name": self.employee_name,
            "allocation_id": self.allocation_id,
            "token_symbol": self.token_symbol,
            "chain_name": self.chain_name,
            "amount": str(self.amount),
            "transfer_id": self.transfer_id,
            "fee_bps": str(self.fee_bps),
            "fee_usd": str(self.fee_usd),
            "status": self.status.value,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "quote_id": self.quote_id,
            "quote_source": self.quote_source.value if self.quote_source else None,
            "pay_event_id": str(self.pay_event_id) if self.pay_event_id else None,
        }


@dataclass(frozen=True)
class PayrollRunResult:
    """Terminal status of a run and its legs in plan order."""

    payroll_run_id: UUID
    status: PayrollRunStatus
    results: list[LegResult]

    @property
    def completed_count(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.results) - self.completed_count

    @property
    def total_fees(self) -> Decimal:
        return sum((r.fee_usd for r in self.results if r.succeeded), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "payroll_run_id": str(self.payroll_run_id),
            "status": self.status.value,
            "completed": self.completed_count,
            "failed": self.failed_count,
            "total_fees": str(self.total_fees),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class _RunOrigin:
    """Where the funds of every leg in a run leave from."""

    chain_id: int
    currency: str
    payer_wallet: str


class PayrollRunService:
    """Executes payroll runs.

    Dependencies are injected: storage through PayrollPersistence, pricing
    through QuoteResolver, settlement through a LegExecutor.
    """

    def __init__(
        self,
        store: PayrollPersistence,
        quote_resolver: QuoteResolver,
        executor: LegExecutor,
        *,
        settlement_asset: str = "USDC",
        max_concurrency: int = 1,
        status_write_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize run service.

        Args:
            store: Persistence port for runs and pay events.
            quote_resolver: Resolves the fee of each leg.
            executor: Performs the transfer of each leg.
            settlement_asset: Asset the company pays out from.
            max_concurrency: Legs processed at once. 1 means sequential.
            status_write_attempts: Tries for the terminal status write.
            clock: Source of the executed_at timestamp.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if status_write_attempts < 1:
            raise ValueError("status_write_attempts must be at least 1")
        self.store = store
        self.quote_resolver = quote_resolver
        self.executor = executor
        self.settlement_asset = settlement_asset.upper()
        self.max_concurrency = max_concurrency
        self.status_write_attempts = status_write_attempts
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        store: PayrollPersistence,
        provider: QuoteProvider,
        settings: Settings | None = None,
        executor: LegExecutor | None = None,
    ) -> PayrollRunService:
        """Build a service wired from application settings."""
        settings = settings or get_settings()
        resolver = QuoteResolver(
            provider,
            settlement_symbol=settings.settlement_asset,
            default_fee_bps=settings.default_fee_bps,
        )
        if executor is None:
            executor = SimulatedLegExecutor(
                latency_seconds=settings.simulated_latency_ms / 1000,
                failure_rate=settings.simulated_failure_rate,
            )
        return cls(
            store,
            resolver,
            executor,
            settlement_asset=settings.settlement_asset,
            max_concurrency=settings.max_concurrency,
            status_write_attempts=settings.status_write_attempts,
        )

    async def execute_payroll_run(
        self,
        company_id: UUID | str,
        total_amount: Any,
        currency: str | None = None,
        employee_amounts: Mapping[Any, Any] | None = None,
    ) -> PayrollRunResult:
        """Execute a payroll run for a company.

        Args:
            company_id: Company paying out.
            total_amount: Amount split equally when employee_amounts is absent.
            currency: Recorded currency of the run, settlement asset by default.
            employee_amounts: Explicit per-employee amounts keyed by employee id.
                Employees absent from the mapping, or with a zero or negative
                amount, are not paid.

        Returns:
            PayrollRunResult with the terminal status and one result per leg.

        Raises:
            PayrollValidationError: Inputs invalid. No run was created.
        """
        company_uuid = _parse_uuid(company_id, "company_id")
        total = _parse_amount(total_amount, "totalAmount")
        if total <= 0:
            raise PayrollValidationError("totalAmount must be positive")
        explicit = _parse_employee_amounts(employee_amounts)

        company = await self.store.load_company_with_employees_and_allocations(company_uuid)
        if company is None:
            raise PayrollValidationError(f"Company {company_uuid} not found")

        for employee in company.employees:
            validate_allocations(employee.allocations).raise_for_error(employee.employee_id)

        legs = self.plan_legs(company, total, explicit)
        origin = self._origin_for(company)

        run = await self.store.create_payroll_run(
            company_uuid, total, (currency or self.settlement_asset).upper()
        )
        # A failed write rolls the session back and expires the run row
        payroll_run_id = run.payroll_run_id
        logger.info(
            "Payroll run %s started for %s: %s %s over %d legs",
            payroll_run_id,
            company.name,
            total,
            run.currency,
            len(legs),
        )

        results = await self._process_legs(payroll_run_id, legs, origin)

        status = PayrollRunStateMachine.rollup(r.status for r in results)
        await self._write_status(payroll_run_id, status)

        result = PayrollRunResult(payroll_run_id=payroll_run_id, status=status, results=results)
        logger.info(
            "Payroll run %s finished %s: %d complete, %d failed",
            payroll_run_id,
            status.value,
            result.completed_count,
            result.failed_count,
        )
        return result

    def plan_legs(
        self,
        company: Company,
        total: Decimal,
        employee_amounts: Mapping[str, Decimal] | None = None,
    ) -> list[AllocationLeg]:
        """Expand a company payout into allocation legs, in employee order."""
        if employee_amounts is None:
            shares = split_amount([e.employee_id for e in company.employees], total)
        else:
            shares = {
                e.employee_id: employee_amounts.get(str(e.employee_id), Decimal("0"))
                for e in company.employees
            }

        legs: list[AllocationLeg] = []
        for employee in company.employees:
            amount = shares.get(employee.employee_id, Decimal("0"))
            if amount <= 0:
                continue
            legs.extend(self._legs_for_employee(employee, amount))
        return legs

    def _legs_for_employee(self, employee: Employee, amount: Decimal) -> list[AllocationLeg]:
        recipient = employee.wallet_address or ZERO_ADDRESS
        if employee.allocations:
            targets = [
                (
                    str(a.token_allocation_id),
                    a.token_symbol,
                    a.token_address,
                    a.chain_id,
                    a.chain_name,
                    Decimal(a.percentage),
                )
                for a in employee.allocations
            ]
        else:
            targets = [
                (
                    DEFAULT_ALLOCATION_ID,
                    DEFAULT_ALLOCATION.token_symbol,
                    DEFAULT_ALLOCATION.token_address,
                    DEFAULT_ALLOCATION.chain_id,
                    DEFAULT_ALLOCATION.chain_name,
                    DEFAULT_ALLOCATION.percentage,
                )
            ]

        legs = []
        for allocation_id, symbol, address, chain_id, chain_name, percentage in targets:
            leg_amount = (amount * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
            legs.append(
                AllocationLeg(
                    employee_id=employee.employee_id,
                    employee_name=employee.name,
                    allocation_id=allocation_id,
                    token_symbol=symbol,
                    token_address=address,
                    chain_id=chain_id,
                    chain_name=chain_name,
                    percentage=percentage,
                    amount=leg_amount,
                    recipient_wallet=recipient,
                )
            )
        return legs

    def _origin_for(self, company: Company) -> _RunOrigin:
        chain = get_chain_by_slug(company.chain)
        chain_id = chain.id if chain else DEFAULT_ORIGIN_CHAIN_ID
        currency = get_token_address(self.settlement_asset, chain_id) or get_token_address(
            self.settlement_asset, DEFAULT_ORIGIN_CHAIN_ID
        )
        if currency is None:
            raise PayrollValidationError(
                f"Settlement asset {self.settlement_asset} is not a known token"
            )
        return _RunOrigin(
            chain_id=chain_id, currency=currency, payer_wallet=company.wallet_address
        )

    async def _process_legs(
        self, payroll_run_id: UUID, legs: list[AllocationLeg], origin: _RunOrigin
    ) -> list[LegResult]:
        """Process every leg and return results in plan order."""
        if self.max_concurrency == 1:
            return [await self._process_leg(payroll_run_id, leg, origin) for leg in legs]

        semaphore = asyncio.Semaphore(self.max_concurrency)
        write_lock = asyncio.Lock()

        async def bounded(leg: AllocationLeg) -> LegResult:
            async with semaphore:
                return await self._process_leg(payroll_run_id, leg, origin, write_lock)

        return list(await asyncio.gather(*(bounded(leg) for leg in legs)))

    async def _process_leg(
        self,
        payroll_run_id: UUID,
        leg: AllocationLeg,
        origin: _RunOrigin,
        write_lock: asyncio.Lock | None = None,
    ) -> LegResult:
        route = LegRoute(
            origin_chain_id=origin.chain_id,
            origin_currency=origin.currency,
            payer_wallet=origin.payer_wallet,
            destination_symbol=leg.token_symbol,
            destination_currency=leg.token_address,
            destination_chain_id=leg.chain_id,
            recipient_wallet=leg.recipient_wallet,
        )

        quote: ResolvedQuote | None = None
        try:
            quote = await self.quote_resolver.resolve(route, leg.amount)
            transfer = await self.executor.execute(quote, leg)
        except Exception as exc:
            logger.exception(
                "Leg %s for employee %s raised", leg.allocation_id, leg.employee_id
            )
            transfer = TransferResult.failed(f"{type(exc).__name__}: {exc}")

        if write_lock is None:
            pay_event_id, record_error = await self._record(payroll_run_id, leg, quote, transfer)
        else:
            async with write_lock:
                pay_event_id, record_error = await self._record(
                    payroll_run_id, leg, quote, transfer
                )

        error = transfer.error
        if record_error is not None:
            error = f"{error}; {record_error}" if error else record_error

        return LegResult(
            employee_id=leg.employee_id,
            employee_name=leg.employee_name,
            allocation_id=leg.allocation_id,
            token_symbol=leg.token_symbol,
            chain_name=leg.chain_name,
            amount=leg.amount,
            transfer_id=transfer.transfer_id,
            fee_bps=quote.fee_bps if quote else Decimal("0"),
            fee_usd=quote.fee_usd if quote else Decimal("0"),
            status=transfer.status,
            error=error,
            error_kind=transfer.error_kind,
            quote_id=quote.quote_id if quote else None,
            quote_source=quote.source if quote else None,
            pay_event_id=pay_event_id,
        )

    async def _record(
        self,
        payroll_run_id: UUID,
        leg: AllocationLeg,
        quote: ResolvedQuote | None,
        transfer: TransferResult,
    ) -> tuple[UUID | None, str | None]:
        """Persist the PayEvent of a leg. Returns (pay_event_id, error)."""
        try:
            event = await self.store.create_pay_event(
                employee_id=leg.employee_id,
                payroll_run_id=payroll_run_id,
                amount_usdc=leg.amount,
                to_token=leg.token_symbol,
                to_chain=leg.chain_name,
                to_chain_id=leg.chain_id,
                to_address=leg.recipient_wallet,
                relay_quote_id=quote.quote_id if quote else None,
                relay_tx_hash=transfer.transfer_id,
                status=transfer.status.value,
                relay_fee_bps=quote.fee_bps if quote else Decimal("0"),
                relay_fee_usd=quote.fee_usd if quote else Decimal("0"),
                quote_source=quote.source.value if quote else None,
                simulated=transfer.simulated,
                error_message=transfer.error,
            )
        except Exception as exc:
            logger.exception("Failed to record pay event for leg %s", leg.allocation_id)
            return None, f"pay event not recorded: {type(exc).__name__}: {exc}"
        return event.pay_event_id, None

    async def _write_status(self, payroll_run_id: UUID, status: PayrollRunStatus) -> None:
        """Write the terminal run status, retrying transient failures."""
        executed_at = self.clock()
        for attempt in range(1, self.status_write_attempts + 1):
            try:
                await self.store.update_payroll_run_status(
                    payroll_run_id, status.value, executed_at
                )
                return
            except InvalidTransitionError:
                logger.exception("Payroll run %s cannot move to %s", payroll_run_id, status.value)
                return
            except Exception:
                logger.warning(
                    "Status write for payroll run %s failed (attempt %d/%d)",
                    payroll_run_id,
                    attempt,
                    self.status_write_attempts,
                    exc_info=True,
                )
        logger.error(
            "Payroll run %s left in processing: status %s was not written",
            payroll_run_id,
            status.value,
        )


def _parse_uuid(value: UUID | str, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise PayrollValidationError(f"{field} is not a valid id: {value!r}") from None


def _parse_amount(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise PayrollValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise PayrollValidationError(f"{field} must be a number, got {value!r}") from None
    if not amount.is_finite():
        raise PayrollValidationError(f"{field} must be finite, got {value!r}")
    return amount


def _parse_employee_amounts(
    employee_amounts: Mapping[Any, Any] | None,
) -> dict[str, Decimal] | None:
    if employee_amounts is None:
        return None
    return {
        str(_parse_uuid(key, "employee id")): _parse_amount(value, f"Amount for employee {key}")
        for key, value in employee_amounts.items()
    }
