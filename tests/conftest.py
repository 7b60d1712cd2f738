"""Pytest fixtures for relay payroll tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Sequence

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from relay_payroll.config import Settings
from relay_payroll.models import Base, Company, Employee
from relay_payroll.services import AllocationInput, PayrollStore

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PAYER_WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(session: AsyncSession) -> PayrollStore:
    """Store bound to the test session."""
    return PayrollStore(session)


@pytest.fixture
async def company(store: PayrollStore) -> Company:
    """A company paying out of USDC on Ethereum."""
    return await store.create_company(
        name="Test Corp",
        wallet_address=PAYER_WALLET,
        chain="ethereum",
        balance=Decimal("100000"),
    )


EmployeeFactory = Callable[..., Awaitable[Employee]]


@pytest.fixture
def make_employee(store: PayrollStore, company: Company) -> EmployeeFactory:
    """Create an employee of ``company`` with optional allocations.

    Allocations are (symbol, chain_id, percentage) tuples.
    """
    counter = {"n": 0}

    async def factory(
        name: str | None = None,
        allocations: Sequence[tuple[str, int, object]] = (),
        wallet_address: str | None = "0x1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b",
        company_id=None,
    ) -> Employee:
        counter["n"] += 1
        n = counter["n"]
        employee = await store.create_employee(
            company_id=company_id or company.company_id,
            name=name or f"Employee {n}",
            email=f"employee{n}@test.corp",
            wallet_address=wallet_address,
        )
        if allocations:
            await store.replace_allocations(
                employee.employee_id,
                [AllocationInput(symbol, chain_id, pct) for symbol, chain_id, pct in allocations],
            )
        return employee

    return factory


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        relay_base_url="https://relay.test",
        relay_api_key="",
        relay_timeout_seconds=5.0,
        settlement_asset="USDC",
        default_fee_bps=Decimal("15"),
        max_concurrency=1,
        simulated_latency_ms=0,
        simulated_failure_rate=0.0,
        status_write_attempts=3,
        log_level="WARNING",
    )
