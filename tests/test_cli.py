"""Tests for the command line interface."""

import argparse
import io
import json
from dataclasses import replace
from typing import Any

import pytest

from relay_payroll.cli import (
    RelayPayrollCli,
    parse_allocation,
    parse_employee_amount,
    parse_positive_decimal,
)
from relay_payroll.providers import StubQuoteProvider


@pytest.fixture
def cli_settings(settings, tmp_path):
    return replace(settings, database_url=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")


def invoke(settings, *args: str) -> tuple[int, Any]:
    out = io.StringIO()
    code = RelayPayrollCli(settings=settings, out=out).run(list(args))
    text = out.getvalue()
    return code, json.loads(text) if text else None


@pytest.fixture
def seeded(cli_settings):
    code, summary = invoke(cli_settings, "seed")
    assert code == 0
    return summary


class TestArgumentParsing:
    """Test argument types."""

    def test_parse_allocation(self):
        allocation = parse_allocation("usdc:8453:50")

        assert allocation.token_symbol == "USDC"
        assert allocation.chain_id == 8453
        assert str(allocation.percentage) == "50"

    @pytest.mark.parametrize("raw", ["USDC:8453", "USDC:base:50", "USDC:1:x"])
    def test_parse_allocation_rejects(self, raw):
        with pytest.raises(Exception):
            parse_allocation(raw)

    def test_parse_employee_amount_requires_equals(self):
        with pytest.raises(Exception):
            parse_employee_amount("abc")

    @pytest.mark.parametrize("raw", ["0", "-5", "NaN", "Infinity", "ten"])
    def test_parse_positive_decimal_rejects(self, raw):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_positive_decimal(raw)

    def test_no_command_prints_help(self, cli_settings, capsys):
        assert RelayPayrollCli(settings=cli_settings).run([]) == 1


class TestCommands:
    """End-to-end commands against a file database."""

    def test_init_db(self, cli_settings):
        assert invoke(cli_settings, "init-db") == (0, {"status": "ok"})

    def test_seed_and_list(self, cli_settings, seeded):
        assert seeded == {"companies": 2, "employees": 10, "payroll_runs": 6, "pay_events": 25}

        code, companies = invoke(cli_settings, "companies")
        assert code == 0
        assert [c["name"] for c in companies] == ["Acme Corp", "Builder DAO"]
        assert companies[0]["employee_count"] == 6

        code, employees = invoke(cli_settings, "employees", "--company-id", companies[1]["id"])
        assert [e["name"] for e in employees][0] == "Grace Thompson"

    def test_offline_run(self, cli_settings, seeded):
        _, companies = invoke(cli_settings, "companies")
        acme = companies[0]["id"]

        code, result = invoke(
            cli_settings, "--offline", "run", "--company-id", acme, "--total", "12000"
        )

        assert code == 0
        assert result["status"] == "complete"
        # Alice 1, Bob 2, Carol 1, David 3, Emma 2, Frank default 1
        assert len(result["results"]) == 10

        code, runs = invoke(cli_settings, "runs", "--company-id", acme)
        assert runs[0]["payroll_run_id"] == result["payroll_run_id"]

        code, run = invoke(cli_settings, "show-run", "--run-id", result["payroll_run_id"])
        assert code == 0
        assert len(run["pay_events"]) == 10
        assert run["pay_events"][0]["explorer_url"].startswith("https://")

        code, stats = invoke(cli_settings, "stats")
        assert stats["run_count"] == 6

    def test_set_allocations(self, cli_settings, seeded):
        _, employees = invoke(cli_settings, "employees")
        frank = next(e for e in employees if e["name"] == "Frank Liu")

        code, rows = invoke(
            cli_settings,
            "set-allocations",
            "--employee-id",
            frank["id"],
            "--allocation",
            "ETH:1:50",
            "--allocation",
            "USDC:8453:50",
        )

        assert code == 0
        assert sorted(r["token_symbol"] for r in rows) == ["ETH", "USDC"]

        code, history = invoke(cli_settings, "pay-history", "--employee-id", frank["id"])
        assert code == 0
        assert len(history) == 2

    def test_invalid_allocations_exit_code(self, cli_settings, seeded, capsys):
        _, employees = invoke(cli_settings, "employees")

        code, _ = invoke(
            cli_settings,
            "set-allocations",
            "--employee-id",
            employees[0]["id"],
            "--allocation",
            "ETH:1:50",
            "--allocation",
            "USDC:8453:49",
        )

        assert code == 2
        assert "got 99%" in capsys.readouterr().err

    def test_offline_quote_same_asset(self, cli_settings):
        code, quote = invoke(
            cli_settings,
            "--offline",
            "quote",
            "--to-token",
            "USDC",
            "--to-chain-id",
            "1",
            "--amount",
            "250",
            "--user",
            "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
            "--recipient",
            "0x1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b",
        )

        assert code == 0
        assert quote["source"] == "same_asset"
        assert quote["fee_usd"] == "0.00"

    def test_offline_tokens(self, cli_settings):
        code, tokens = invoke(cli_settings, "--offline", "tokens", "--chain-id", "8453")

        assert code == 0
        assert {"USDC", "ETH"} <= {t["symbol"] for t in tokens}

    @pytest.mark.parametrize("amount", ["0", "-1", "NaN"])
    def test_quote_rejects_non_positive_amount(self, cli_settings, amount, capsys):
        with pytest.raises(SystemExit) as exc_info:
            invoke(
                cli_settings,
                "--offline",
                "quote",
                "--to-token",
                "ETH",
                "--to-chain-id",
                "8453",
                "--amount",
                amount,
                "--user",
                "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
                "--recipient",
                "0x1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b",
            )

        assert exc_info.value.code == 2
        assert "must be a positive amount" in capsys.readouterr().err

    def test_offline_status_of_quote(self, cli_settings):
        stub = StubQuoteProvider()

        def run(*args: str) -> tuple[int, Any]:
            out = io.StringIO()
            cli = RelayPayrollCli(settings=cli_settings, provider_factory=lambda _: stub, out=out)
            code = cli.run(list(args))
            return code, json.loads(out.getvalue())

        code, quote = run(
            "--offline",
            "quote",
            "--to-token",
            "ETH",
            "--to-chain-id",
            "8453",
            "--amount",
            "250",
            "--user",
            "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
            "--recipient",
            "0x1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b",
        )
        assert code == 0
        assert quote["source"] == "provider"

        code, status = run("--offline", "status", "--request-id", quote["quote_id"])
        assert code == 0
        assert status["status"] == "complete"
        assert status["requestId"] == quote["quote_id"]

    def test_offline_status_unknown_request(self, cli_settings):
        code, status = invoke(cli_settings, "--offline", "status", "--request-id", "0xmissing")

        assert code == 0
        assert status["status"] == "failed"
        assert "not found" in status["errorMessage"]
