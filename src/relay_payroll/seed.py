"""Demo data: two companies with employees, allocations and run history.

Usage:
    relay-payroll seed
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from relay_payroll.chains import SOLANA_CHAIN_ID, ZERO_ADDRESS, get_chain, get_token_address
from relay_payroll.models import Company, Employee, PayEvent, PayrollRun, TokenAllocation
from relay_payroll.models.base import utcnow
from relay_payroll.services.state_machine import PayEventStatus, PayrollRunStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# (symbol, chain id, percentage)
Allocation = tuple[str, int, int]


@dataclass(frozen=True)
class DemoEmployee:
    name: str
    email: str
    wallet_address: str | None
    allocations: tuple[Allocation, ...] = ()


@dataclass(frozen=True)
class DemoRun:
    """A historical run paid equally to the first ``paid`` employees."""

    total: Decimal
    days_ago: int
    to_token: str
    to_chain_id: int
    fee_bps: Decimal
    paid: int | None = None
    status: PayrollRunStatus = PayrollRunStatus.COMPLETE


@dataclass(frozen=True)
class DemoCompany:
    name: str
    wallet_address: str
    chain: str
    balance: Decimal
    employees: tuple[DemoEmployee, ...]
    runs: tuple[DemoRun, ...]


@dataclass(frozen=True)
class SeedSummary:
    companies: int
    employees: int
    payroll_runs: int
    pay_events: int


DEMO_COMPANIES: tuple[DemoCompany, ...] = (
    DemoCompany(
        name="Acme Corp",
        wallet_address="0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
        chain="ethereum",
        balance=Decimal("50000"),
        employees=(
            DemoEmployee(
                "Alice Chen",
                "alice@acme.corp",
                "0x1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b",
                (("USDC", SOLANA_CHAIN_ID, 100),),
            ),
            DemoEmployee(
                "Bob Martinez",
                "bob@acme.corp",
                "0x2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c",
                (("ETH", 1, 50), ("USDC", 8453, 50)),
            ),
            DemoEmployee(
                "Carol Kim",
                "carol@acme.corp",
                "0x3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d",
                (("WBTC", 1, 100),),
            ),
            DemoEmployee(
                "David Park",
                "david@acme.corp",
                "0x4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e",
                (("ETH", 1, 33), ("SOL", SOLANA_CHAIN_ID, 33), ("ARB", 42161, 34)),
            ),
            DemoEmployee(
                "Emma Wilson",
                "emma@acme.corp",
                "0x5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f",
                (("SOL", SOLANA_CHAIN_ID, 75), ("USDC", SOLANA_CHAIN_ID, 25)),
            ),
            # No wallet and no preference: paid through the default allocation
            DemoEmployee("Frank Liu", "frank@acme.corp", None),
        ),
        runs=(
            DemoRun(Decimal("10000"), 60, "USDC", SOLANA_CHAIN_ID, Decimal("15"), paid=5),
            DemoRun(Decimal("12000"), 30, "USDC", SOLANA_CHAIN_ID, Decimal("15")),
            DemoRun(Decimal("11500"), 7, "ETH", 1, Decimal("15")),
            DemoRun(
                Decimal("12500"),
                0,
                "USDC",
                SOLANA_CHAIN_ID,
                Decimal("15"),
                paid=0,
                status=PayrollRunStatus.PROCESSING,
            ),
        ),
    ),
    DemoCompany(
        name="Builder DAO",
        wallet_address="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
        chain="base",
        balance=Decimal("28000"),
        employees=(
            DemoEmployee(
                "Grace Thompson",
                "grace@builderdao.xyz",
                "0x6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a",
                (("ETH", 8453, 60), ("USDC", 8453, 40)),
            ),
            DemoEmployee(
                "Henry Zhang",
                "henry@builderdao.xyz",
                "0x7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b",
                (("OP", 10, 50), ("ARB", 42161, 50)),
            ),
            DemoEmployee(
                "Isla Rodriguez",
                "isla@builderdao.xyz",
                "0x8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c",
                (("SOL", SOLANA_CHAIN_ID, 40), ("AVAX", 43114, 30), ("ETH", 8453, 30)),
            ),
            DemoEmployee(
                "James O'Brien",
                "james@builderdao.xyz",
                "0x9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d",
                (("WBTC", 1, 70), ("ETH", 1, 30)),
            ),
        ),
        runs=(
            DemoRun(Decimal("8000"), 45, "ETH", 8453, Decimal("15")),
            DemoRun(Decimal("9500"), 15, "USDC", 8453, Decimal("12")),
        ),
    ),
)


async def clear_data(session: AsyncSession) -> None:
    """Delete all rows, children first."""
    for model in (PayEvent, PayrollRun, TokenAllocation, Employee, Company):
        await session.execute(delete(model))


def _allocation(symbol: str, chain_id: int, percentage: int) -> TokenAllocation:
    chain = get_chain(chain_id)
    address = get_token_address(symbol, chain_id)
    if chain is None or address is None:
        raise ValueError(f"Demo allocation {symbol} on chain {chain_id} is not in the token table")
    return TokenAllocation(
        token_symbol=symbol,
        token_address=address,
        chain_id=chain_id,
        chain_name=chain.name,
        percentage=Decimal(percentage),
    )


def _history(
    company: Company, employees: list[Employee], run: DemoRun, now: datetime
) -> tuple[PayrollRun, list[PayEvent]]:
    when = now - timedelta(days=run.days_ago)
    terminal = run.status != PayrollRunStatus.PROCESSING
    payroll_run = PayrollRun(
        company=company,
        total_amount=run.total,
        currency="USDC",
        status=run.status.value,
        executed_at=when if terminal else None,
        created_at=when,
    )

    paid = employees if run.paid is None else employees[: run.paid]
    per_employee = (run.total / len(employees)).quantize(CENT, rounding=ROUND_HALF_UP)
    fee_usd = (per_employee * run.fee_bps / Decimal("10000")).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    chain = get_chain(run.to_chain_id)
    events = [
        PayEvent(
            employee=employee,
            payroll_run=payroll_run,
            amount_usdc=per_employee,
            to_token=run.to_token,
            to_chain=chain.name if chain else str(run.to_chain_id),
            to_chain_id=run.to_chain_id,
            to_address=employee.wallet_address or ZERO_ADDRESS,
            relay_tx_hash="0x" + secrets.token_hex(32),
            status=PayEventStatus.COMPLETE.value,
            relay_fee_bps=run.fee_bps,
            relay_fee_usd=fee_usd,
            quote_source="fallback",
            simulated=True,
            created_at=when,
        )
        for employee in paid
    ]
    return payroll_run, events


async def seed_demo_data(
    session: AsyncSession, reset: bool = True, now: datetime | None = None
) -> SeedSummary:
    """Insert the demo companies and commit.

    Args:
        session: Target session.
        reset: Delete existing data first.
        now: Reference time for the run history.
    """
    now = now or utcnow()
    if reset:
        await clear_data(session)

    employee_count = run_count = event_count = 0
    for index, company_data in enumerate(DEMO_COMPANIES):
        company = Company(
            name=company_data.name,
            wallet_address=company_data.wallet_address,
            chain=company_data.chain,
            balance=company_data.balance,
            created_at=now - timedelta(days=120, seconds=-index),
        )
        session.add(company)

        employees = []
        for offset, demo in enumerate(company_data.employees):
            employee = Employee(
                company=company,
                name=demo.name,
                email=demo.email,
                wallet_address=demo.wallet_address,
                # Distinct timestamps keep the payout order stable
                created_at=now - timedelta(days=90, seconds=-offset),
                allocations=[_allocation(*a) for a in demo.allocations],
            )
            session.add(employee)
            employees.append(employee)

        for run in company_data.runs:
            payroll_run, events = _history(company, employees, run, now)
            session.add(payroll_run)
            session.add_all(events)
            run_count += 1
            event_count += len(events)
        employee_count += len(employees)

    await session.commit()
    summary = SeedSummary(
        companies=len(DEMO_COMPANIES),
        employees=employee_count,
        payroll_runs=run_count,
        pay_events=event_count,
    )
    logger.info("Seeded demo data: %s", summary)
    return summary
