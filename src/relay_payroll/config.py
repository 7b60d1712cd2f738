"""Configuration management for relay payroll."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    relay_base_url: str
    relay_api_key: str
    relay_timeout_seconds: float
    settlement_asset: str
    default_fee_bps: Decimal
    max_concurrency: int
    simulated_latency_ms: int
    simulated_failure_rate: float
    status_write_attempts: int
    log_level: str

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.relay_timeout_seconds <= 0:
            raise ValueError("relay_timeout_seconds must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if not 0 <= self.simulated_failure_rate <= 1:
            raise ValueError("simulated_failure_rate must be between 0 and 1")
        if self.status_write_attempts < 1:
            raise ValueError("status_write_attempts must be at least 1")
        if self.default_fee_bps < 0:
            raise ValueError("default_fee_bps cannot be negative")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./relay_payroll.db",
            ),
            relay_base_url=os.getenv("RELAY_BASE_URL", "https://api.relay.link"),
            relay_api_key=os.getenv("RELAY_API_KEY", ""),
            relay_timeout_seconds=float(os.getenv("RELAY_TIMEOUT_SECONDS", "15")),
            settlement_asset=os.getenv("SETTLEMENT_ASSET", "USDC"),
            default_fee_bps=Decimal(os.getenv("DEFAULT_FEE_BPS", "15")),
            max_concurrency=int(os.getenv("MAX_CONCURRENCY", "1")),
            simulated_latency_ms=int(os.getenv("SIMULATED_LATENCY_MS", "0")),
            simulated_failure_rate=float(os.getenv("SIMULATED_FAILURE_RATE", "0")),
            status_write_attempts=int(os.getenv("STATUS_WRITE_ATTEMPTS", "3")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
