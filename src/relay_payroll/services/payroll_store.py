"""Persistence for companies, employees, allocations, runs and pay events.

PayrollPersistence is the port the run orchestrator depends on. PayrollStore
implements it, plus the read side, on a SQLAlchemy AsyncSession. Every write
is committed on its own: a PayEvent is final once written and is never
rolled back because a later leg failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from relay_payroll.chains import get_chain, get_token_address
from relay_payroll.errors import AllocationValidationError, PayrollValidationError
from relay_payroll.models import Company, Employee, PayEvent, PayrollRun, TokenAllocation
from relay_payroll.services.allocations import parse_percentage, validate_allocations
from relay_payroll.services.state_machine import (
    PayEventStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)


class PayrollPersistence(Protocol):
    """Storage operations the run orchestrator needs."""

    async def load_company_with_employees_and_allocations(
        self, company_id: UUID
    ) -> Company | None:
        """Load a company with its employees and their allocations."""
        ...

    async def create_payroll_run(
        self, company_id: UUID, total_amount: Decimal, currency: str
    ) -> PayrollRun:
        """Create a run in processing status."""
        ...

    async def create_pay_event(
        self,
        *,
        employee_id: UUID,
        payroll_run_id: UUID,
        amount_usdc: Decimal,
        to_token: str,
        to_chain: str,
        to_chain_id: int,
        to_address: str,
        relay_quote_id: str | None,
        relay_tx_hash: str | None,
        status: str,
        relay_fee_bps: Decimal,
        relay_fee_usd: Decimal,
        quote_source: str | None = None,
        simulated: bool = True,
        error_message: str | None = None,
    ) -> PayEvent:
        """Persist the outcome of one leg."""
        ...

    async def update_payroll_run_status(
        self, payroll_run_id: UUID, status: str, executed_at: datetime
    ) -> PayrollRun:
        """Write the terminal status of a run. Safe to repeat."""
        ...


@dataclass(frozen=True)
class AllocationInput:
    """Requested allocation. Address and chain name default from reference data."""

    token_symbol: str
    chain_id: int
    percentage: Any
    token_address: str | None = None
    chain_name: str | None = None


@dataclass(frozen=True)
class PayrollStats:
    """Aggregate figures over completed runs and legs."""

    run_count: int
    total_routed: Decimal
    total_fees: Decimal
    avg_bps: Decimal


class PayrollStore:
    """SQLAlchemy implementation of PayrollPersistence and the read side."""

    def __init__(self, session: AsyncSession, autocommit: bool = True):
        """Initialize store.

        Args:
            session: Session all reads and writes go through.
            autocommit: If True, each write commits immediately. If False,
                writes are only flushed and the caller owns the transaction.
        """
        self.session = session
        self.autocommit = autocommit

    async def _commit(self) -> None:
        try:
            if self.autocommit:
                await self.session.commit()
            else:
                await self.session.flush()
        except Exception:
            await self.session.rollback()
            raise

    # ========================================================================
    # Companies and employees
    # ========================================================================

    async def load_company_with_employees_and_allocations(
        self, company_id: UUID
    ) -> Company | None:
        """Load a company with employees (creation order) and allocations."""
        result = await self.session.execute(
            select(Company)
            .where(Company.company_id == company_id)
            .options(selectinload(Company.employees).selectinload(Employee.allocations))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_company(self, company_id: UUID) -> Company | None:
        """Get a company with employees and allocations."""
        return await self.load_company_with_employees_and_allocations(company_id)

    async def list_companies(self) -> list[Company]:
        """All companies, oldest first."""
        result = await self.session.execute(
            select(Company)
            .options(selectinload(Company.employees))
            .order_by(Company.created_at)
        )
        return list(result.scalars().all())

    async def create_company(
        self,
        *,
        name: str,
        wallet_address: str,
        chain: str = "ethereum",
        balance: Decimal = Decimal("0"),
    ) -> Company:
        """Create a company."""
        company = Company(name=name, wallet_address=wallet_address, chain=chain, balance=balance)
        self.session.add(company)
        await self._commit()
        return company

    async def list_employees(self, company_id: UUID | None = None) -> list[Employee]:
        """Employees with their allocations, optionally for one company."""
        query = select(Employee).options(selectinload(Employee.allocations))
        if company_id is not None:
            query = query.where(Employee.company_id == company_id)
        result = await self.session.execute(query.order_by(Employee.created_at))
        return list(result.scalars().all())

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        """Get an employee with allocations and company."""
        result = await self.session.execute(
            select(Employee)
            .where(Employee.employee_id == employee_id)
            .options(selectinload(Employee.allocations), selectinload(Employee.company))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_employee(
        self,
        *,
        company_id: UUID,
        name: str,
        email: str,
        wallet_address: str | None = None,
    ) -> Employee:
        """Create an employee of an existing company."""
        if not name or not email:
            raise PayrollValidationError("Employee name and email are required")
        if await self.session.get(Company, company_id) is None:
            raise PayrollValidationError(f"Company {company_id} not found")

        employee = Employee(
            company_id=company_id, name=name, email=email, wallet_address=wallet_address
        )
        self.session.add(employee)
        await self._commit()
        return employee

    async def update_employee(self, employee_id: UUID, **changes: Any) -> Employee:
        """Update name, email or wallet_address of an employee."""
        allowed = {"name", "email", "wallet_address"}
        unknown = set(changes) - allowed
        if unknown:
            raise PayrollValidationError(f"Cannot update employee fields: {sorted(unknown)}")

        employee = await self.get_employee(employee_id)
        if employee is None:
            raise PayrollValidationError(f"Employee {employee_id} not found")

        for key, value in changes.items():
            setattr(employee, key, value)
        await self._commit()
        return employee

    # ========================================================================
    # Allocations
    # ========================================================================

    async def list_allocations(self, employee_id: UUID) -> list[TokenAllocation]:
        """Allocations of an employee, most recently updated first."""
        result = await self.session.execute(
            select(TokenAllocation)
            .where(TokenAllocation.employee_id == employee_id)
            .order_by(TokenAllocation.updated_at.desc())
        )
        return list(result.scalars().all())

    async def replace_allocations(
        self, employee_id: UUID, allocations: Sequence[AllocationInput]
    ) -> list[TokenAllocation]:
        """Replace an employee's allocation set as a whole.

        The set is validated first, then the old rows are deleted and the new
        ones inserted in a single transaction. An empty set reverts the
        employee to the default allocation.

        Raises:
            AllocationValidationError: percentages, chain or token invalid.
            PayrollValidationError: employee not found.
        """
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise PayrollValidationError(f"Employee {employee_id} not found")

        validate_allocations(allocations).raise_for_error(employee_id)
        rows = [self._allocation_row(employee_id, a) for a in allocations]

        try:
            await self.session.execute(
                delete(TokenAllocation).where(TokenAllocation.employee_id == employee_id)
            )
            self.session.add_all(rows)
        except Exception:
            await self.session.rollback()
            raise
        await self._commit()
        await self.session.refresh(employee, attribute_names=["allocations"])

        logger.info("Replaced allocations of employee %s (%d legs)", employee_id, len(rows))
        return await self.list_allocations(employee_id)

    @staticmethod
    def _allocation_row(employee_id: UUID, allocation: AllocationInput) -> TokenAllocation:
        chain = get_chain(allocation.chain_id)
        if chain is None:
            raise AllocationValidationError(
                f"Unsupported chain id {allocation.chain_id}", employee_id
            )

        symbol = allocation.token_symbol.upper()
        token_address = allocation.token_address or get_token_address(symbol, chain.id)
        if not token_address:
            raise AllocationValidationError(
                f"Token {symbol} is not supported on {chain.name}", employee_id
            )

        return TokenAllocation(
            employee_id=employee_id,
            token_symbol=symbol,
            token_address=token_address,
            chain_id=chain.id,
            chain_name=allocation.chain_name or chain.name,
            percentage=parse_percentage(allocation.percentage),
        )

    # ========================================================================
    # Payroll runs and pay events
    # ========================================================================

    async def create_payroll_run(
        self, company_id: UUID, total_amount: Decimal, currency: str
    ) -> PayrollRun:
        """Create a run in processing status."""
        run = PayrollRun(
            company_id=company_id,
            total_amount=total_amount,
            currency=currency,
            status=PayrollRunStatus.PROCESSING.value,
        )
        self.session.add(run)
        await self._commit()
        return run

    async def create_pay_event(
        self,
        *,
        employee_id: UUID,
        payroll_run_id: UUID,
        amount_usdc: Decimal,
        to_token: str,
        to_chain: str,
        to_chain_id: int,
        to_address: str,
        relay_quote_id: str | None,
        relay_tx_hash: str | None,
        status: str,
        relay_fee_bps: Decimal,
        relay_fee_usd: Decimal,
        quote_source: str | None = None,
        simulated: bool = True,
        error_message: str | None = None,
    ) -> PayEvent:
        """Persist the outcome of one leg."""
        event = PayEvent(
            employee_id=employee_id,
            payroll_run_id=payroll_run_id,
            amount_usdc=amount_usdc,
            to_token=to_token,
            to_chain=to_chain,
            to_chain_id=to_chain_id,
            to_address=to_address,
            relay_quote_id=relay_quote_id,
            relay_tx_hash=relay_tx_hash,
            status=status,
            relay_fee_bps=relay_fee_bps,
            relay_fee_usd=relay_fee_usd,
            quote_source=quote_source,
            simulated=simulated,
            error_message=error_message,
        )
        self.session.add(event)
        await self._commit()
        return event

    async def update_payroll_run_status(
        self, payroll_run_id: UUID, status: str, executed_at: datetime
    ) -> PayrollRun:
        """Write the terminal status of a run.

        Repeating the same write is a no-op, so a failed status write can be
        retried safely.

        Raises:
            ValueError: run not found.
            InvalidTransitionError: status not reachable from the current one.
        """
        run = await self.session.get(PayrollRun, payroll_run_id, populate_existing=True)
        if run is None:
            raise ValueError(f"Payroll run {payroll_run_id} not found")

        if run.status == status:
            if run.executed_at is None:
                run.executed_at = executed_at
                await self._commit()
            return run

        PayrollRunStateMachine.validate_transition(run.status, status)
        run.status = status
        run.executed_at = executed_at
        await self._commit()
        return run

    async def list_payroll_runs(self, company_id: UUID | None = None) -> list[PayrollRun]:
        """Runs newest first, with company and events loaded."""
        query = select(PayrollRun).options(
            selectinload(PayrollRun.company), selectinload(PayrollRun.pay_events)
        )
        if company_id is not None:
            query = query.where(PayrollRun.company_id == company_id)
        result = await self.session.execute(query.order_by(PayrollRun.created_at.desc()))
        return list(result.scalars().all())

    async def get_payroll_run(self, payroll_run_id: UUID) -> PayrollRun | None:
        """A run with its company and pay events (oldest event first)."""
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == payroll_run_id)
            .options(
                selectinload(PayrollRun.company),
                selectinload(PayrollRun.pay_events).selectinload(PayEvent.employee),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_pay_history(self, employee_id: UUID) -> list[PayEvent]:
        """Pay events of an employee, newest first."""
        result = await self.session.execute(
            select(PayEvent)
            .where(PayEvent.employee_id == employee_id)
            .options(selectinload(PayEvent.payroll_run))
            .order_by(PayEvent.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_payroll_stats(self) -> PayrollStats:
        """Totals over complete runs and complete pay events."""
        complete_run = PayrollRun.status == PayrollRunStatus.COMPLETE.value
        run_count = await self.session.scalar(
            select(func.count()).select_from(PayrollRun).where(complete_run)
        )
        total_routed = await self.session.scalar(
            select(func.sum(PayrollRun.total_amount)).where(complete_run)
        )

        complete_event = PayEvent.status == PayEventStatus.COMPLETE.value
        fee_row = (
            await self.session.execute(
                select(func.sum(PayEvent.relay_fee_usd), func.avg(PayEvent.relay_fee_bps)).where(
                    complete_event
                )
            )
        ).one()

        cent = Decimal("0.01")
        return PayrollStats(
            run_count=int(run_count or 0),
            total_routed=_as_decimal(total_routed).quantize(cent, rounding=ROUND_HALF_UP),
            total_fees=_as_decimal(fee_row[0]).quantize(cent, rounding=ROUND_HALF_UP),
            avg_bps=_as_decimal(fee_row[1]).quantize(cent, rounding=ROUND_HALF_UP),
        )


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))
