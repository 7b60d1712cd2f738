"""Tests for settings loading."""

from dataclasses import replace
from decimal import Decimal

import pytest

from relay_payroll.config import Settings, get_settings

ENV_VARS = [
    "DATABASE_URL",
    "RELAY_BASE_URL",
    "RELAY_API_KEY",
    "RELAY_TIMEOUT_SECONDS",
    "SETTLEMENT_ASSET",
    "DEFAULT_FEE_BPS",
    "MAX_CONCURRENCY",
    "SIMULATED_LATENCY_MS",
    "SIMULATED_FAILURE_RATE",
    "STATUS_WRITE_ATTEMPTS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture
    monkeypatch.setattr("relay_payroll.config.load_dotenv", lambda: False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env()

        assert settings.database_url == "sqlite+aiosqlite:///./relay_payroll.db"
        assert settings.relay_base_url == "https://api.relay.link"
        assert settings.relay_api_key == ""
        assert settings.relay_timeout_seconds == 15.0
        assert settings.settlement_asset == "USDC"
        assert settings.default_fee_bps == Decimal("15")
        assert settings.max_concurrency == 1
        assert settings.status_write_attempts == 3
        assert settings.log_level == "INFO"

    def test_overrides(self, clean_env):
        clean_env.setenv("DEFAULT_FEE_BPS", "20")
        clean_env.setenv("MAX_CONCURRENCY", "4")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.default_fee_bps == Decimal("20")
        assert settings.max_concurrency == 4
        assert settings.log_level == "DEBUG"

    def test_get_settings_is_cached(self, clean_env):
        assert get_settings() is get_settings()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("relay_timeout_seconds", 0),
            ("max_concurrency", 0),
            ("simulated_failure_rate", 1.5),
            ("status_write_attempts", 0),
            ("default_fee_bps", Decimal("-1")),
        ],
    )
    def test_invalid_values_rejected(self, settings, field, value):
        with pytest.raises(ValueError):
            replace(settings, **{field: value})
