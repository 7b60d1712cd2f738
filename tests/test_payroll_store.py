"""Tests for the SQLAlchemy payroll store."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from relay_payroll.chains import SOLANA_CHAIN_ID
from relay_payroll.errors import AllocationValidationError, PayrollValidationError
from relay_payroll.seed import DEMO_COMPANIES, seed_demo_data
from relay_payroll.services import AllocationInput, InvalidTransitionError

EXECUTED_AT = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)


async def record_event(store, run, employee, status="complete", fee_usd="1.50", fee_bps="15"):
    return await store.create_pay_event(
        employee_id=employee.employee_id,
        payroll_run_id=run.payroll_run_id,
        amount_usdc=Decimal("1000.00"),
        to_token="USDC",
        to_chain="Solana",
        to_chain_id=SOLANA_CHAIN_ID,
        to_address=employee.wallet_address,
        relay_quote_id="fallback-1",
        relay_tx_hash="0x" + "a" * 64 if status == "complete" else None,
        status=status,
        relay_fee_bps=Decimal(fee_bps),
        relay_fee_usd=Decimal(fee_usd),
        quote_source="fallback",
    )


class TestReplaceAllocations:
    """Test whole-set allocation replacement."""

    async def test_fills_address_and_chain_name(self, store, make_employee):
        employee = await make_employee()

        rows = await store.replace_allocations(
            employee.employee_id,
            [AllocationInput("eth", 1, 50), AllocationInput("USDC", 8453, "50")],
        )

        by_symbol = {r.token_symbol: r for r in rows}
        assert set(by_symbol) == {"ETH", "USDC"}
        assert by_symbol["ETH"].token_address == "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
        assert by_symbol["ETH"].chain_name == "Ethereum"
        assert by_symbol["USDC"].token_address == "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
        assert by_symbol["USDC"].chain_name == "Base"

    async def test_replaces_previous_set(self, store, make_employee):
        employee = await make_employee(allocations=[("USDC", SOLANA_CHAIN_ID, 100)])

        await store.replace_allocations(
            employee.employee_id,
            [AllocationInput("ETH", 1, 60), AllocationInput("ARB", 42161, 40)],
        )

        rows = await store.list_allocations(employee.employee_id)
        assert sorted(r.token_symbol for r in rows) == ["ARB", "ETH"]

    async def test_empty_set_reverts_to_default(self, store, make_employee):
        employee = await make_employee(allocations=[("SOL", SOLANA_CHAIN_ID, 100)])

        rows = await store.replace_allocations(employee.employee_id, [])

        assert rows == []

    async def test_invalid_sum_keeps_existing_set(self, store, make_employee):
        employee = await make_employee(allocations=[("USDC", SOLANA_CHAIN_ID, 100)])

        with pytest.raises(AllocationValidationError, match=r"got 99%"):
            await store.replace_allocations(
                employee.employee_id,
                [AllocationInput("ETH", 1, 50), AllocationInput("SOL", SOLANA_CHAIN_ID, 49)],
            )

        rows = await store.list_allocations(employee.employee_id)
        assert [r.token_symbol for r in rows] == ["USDC"]

    async def test_unknown_chain_rejected(self, store, make_employee):
        employee = await make_employee()

        with pytest.raises(AllocationValidationError, match="Unsupported chain id 999"):
            await store.replace_allocations(employee.employee_id, [AllocationInput("ETH", 999, 100)])

    async def test_token_not_on_chain_rejected(self, store, make_employee):
        employee = await make_employee()

        with pytest.raises(AllocationValidationError, match="OP is not supported on Base"):
            await store.replace_allocations(employee.employee_id, [AllocationInput("OP", 8453, 100)])

    async def test_explicit_address_accepted(self, store, make_employee):
        employee = await make_employee()

        rows = await store.replace_allocations(
            employee.employee_id,
            [AllocationInput("DEGEN", 8453, 100, token_address="0x4ed4e862860bed51a9570b96d89af5e1b0efefed")],
        )

        assert rows[0].token_address == "0x4ed4e862860bed51a9570b96d89af5e1b0efefed"

    async def test_unknown_employee(self, store):
        with pytest.raises(PayrollValidationError, match="not found"):
            await store.replace_allocations(uuid4(), [])


class TestEmployees:
    """Test employee queries and updates."""

    async def test_create_requires_existing_company(self, store):
        with pytest.raises(PayrollValidationError, match="Company .* not found"):
            await store.create_employee(company_id=uuid4(), name="Ghost", email="g@x.io")

    async def test_update_wallet(self, store, make_employee):
        employee = await make_employee(wallet_address=None)

        updated = await store.update_employee(
            employee.employee_id, wallet_address="0x9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d"
        )

        assert updated.wallet_address == "0x9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d"

    async def test_update_rejects_unknown_fields(self, store, make_employee):
        employee = await make_employee()

        with pytest.raises(PayrollValidationError, match="company_id"):
            await store.update_employee(employee.employee_id, company_id=uuid4())

    async def test_list_employees_by_company(self, store, company, make_employee):
        await make_employee(name="Alice", allocations=[("USDC", SOLANA_CHAIN_ID, 100)])
        await make_employee(name="Bob")

        employees = await store.list_employees(company.company_id)

        assert [e.name for e in employees] == ["Alice", "Bob"]
        assert [len(e.allocations) for e in employees] == [1, 0]

    async def test_load_company_with_allocations(self, store, company, make_employee):
        await make_employee(allocations=[("ETH", 1, 50), ("USDC", 8453, 50)])

        loaded = await store.load_company_with_employees_and_allocations(company.company_id)

        assert len(loaded.employees) == 1
        assert len(loaded.employees[0].allocations) == 2

    async def test_load_unknown_company(self, store):
        assert await store.load_company_with_employees_and_allocations(uuid4()) is None


class TestPayrollRuns:
    """Test run and pay event persistence."""

    async def test_run_created_processing(self, store, company):
        run = await store.create_payroll_run(company.company_id, Decimal("1000"), "USDC")

        assert run.status == "processing"
        assert run.executed_at is None

    async def test_status_write_is_idempotent(self, store, company):
        run = await store.create_payroll_run(company.company_id, Decimal("1000"), "USDC")

        await store.update_payroll_run_status(run.payroll_run_id, "complete", EXECUTED_AT)
        again = await store.update_payroll_run_status(run.payroll_run_id, "complete", EXECUTED_AT)

        assert again.status == "complete"
        assert again.executed_at is not None

    async def test_terminal_status_cannot_change(self, store, company):
        run = await store.create_payroll_run(company.company_id, Decimal("1000"), "USDC")
        await store.update_payroll_run_status(run.payroll_run_id, "failed", EXECUTED_AT)

        with pytest.raises(InvalidTransitionError):
            await store.update_payroll_run_status(run.payroll_run_id, "complete", EXECUTED_AT)

    async def test_unknown_run(self, store):
        with pytest.raises(ValueError):
            await store.update_payroll_run_status(uuid4(), "complete", EXECUTED_AT)

    async def test_runs_newest_first(self, store, company):
        first = await store.create_payroll_run(company.company_id, Decimal("100"), "USDC")
        second = await store.create_payroll_run(company.company_id, Decimal("200"), "USDC")

        runs = await store.list_payroll_runs(company.company_id)

        assert [r.payroll_run_id for r in runs] == [second.payroll_run_id, first.payroll_run_id]

    async def test_run_with_events_and_history(self, store, company, make_employee):
        employee = await make_employee()
        run = await store.create_payroll_run(company.company_id, Decimal("1000"), "USDC")
        event = await record_event(store, run, employee)

        loaded = await store.get_payroll_run(run.payroll_run_id)
        history = await store.get_pay_history(employee.employee_id)

        assert [e.pay_event_id for e in loaded.pay_events] == [event.pay_event_id]
        assert loaded.company.name == "Test Corp"
        assert [e.pay_event_id for e in history] == [event.pay_event_id]
        assert history[0].simulated is True


class TestPayrollStats:
    """Test aggregate figures."""

    async def test_empty_database(self, store):
        stats = await store.get_payroll_stats()

        assert stats.run_count == 0
        assert stats.total_routed == Decimal("0")
        assert stats.total_fees == Decimal("0")
        assert stats.avg_bps == Decimal("0")

    async def test_only_complete_runs_and_events_count(self, store, company, make_employee):
        employee = await make_employee()

        done = await store.create_payroll_run(company.company_id, Decimal("1000"), "USDC")
        await record_event(store, done, employee, fee_usd="1.50", fee_bps="15")
        await record_event(store, done, employee, fee_usd="0.50", fee_bps="5")
        await record_event(store, done, employee, status="failed", fee_usd="9.00", fee_bps="90")
        await store.update_payroll_run_status(done.payroll_run_id, "complete", EXECUTED_AT)

        failed = await store.create_payroll_run(company.company_id, Decimal("500"), "USDC")
        await store.update_payroll_run_status(failed.payroll_run_id, "failed", EXECUTED_AT)

        stats = await store.get_payroll_stats()

        assert stats.run_count == 1
        assert stats.total_routed == Decimal("1000.00")
        assert stats.total_fees == Decimal("2.00")
        assert stats.avg_bps == Decimal("10.00")


class TestSeed:
    """Test demo data loading."""

    async def test_seed_counts(self, store, session):
        summary = await seed_demo_data(session)

        assert summary.companies == 2
        assert summary.employees == 10
        assert summary.payroll_runs == 6
        assert summary.pay_events == 25

        companies = await store.list_companies()
        assert [c.name for c in companies] == [c.name for c in DEMO_COMPANIES]

    async def test_seed_is_repeatable(self, store, session):
        await seed_demo_data(session)
        await seed_demo_data(session)

        assert len(await store.list_companies()) == 2

    async def test_employee_without_preference(self, store, session):
        await seed_demo_data(session)

        employees = await store.list_employees()
        frank = next(e for e in employees if e.name == "Frank Liu")

        assert frank.wallet_address is None
        assert frank.allocations == []
