"""Quote provider adapters."""

from relay_payroll.providers.base import (
    QuoteProvider,
    QuoteRequest,
    RelayFee,
    RelayFees,
    RelayQuote,
    RelayStatus,
    RelayStep,
    RelayToken,
    build_same_chain_quote,
)
from relay_payroll.providers.relay_client import RelayQuoteProvider
from relay_payroll.providers.stub import StubQuoteProvider

__all__ = [
    "QuoteProvider",
    "QuoteRequest",
    "RelayFee",
    "RelayFees",
    "RelayQuote",
    "RelayStatus",
    "RelayStep",
    "RelayToken",
    "build_same_chain_quote",
    "RelayQuoteProvider",
    "StubQuoteProvider",
]
