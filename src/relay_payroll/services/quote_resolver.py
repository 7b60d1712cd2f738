"""Quote resolution for a single allocation leg.

Decides per leg whether the provider is needed at all, calls it when it is,
and degrades to a default fee rate when it fails. A provider outage lowers
fee accuracy; it never stops a leg from being paid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable

from relay_payroll.errors import QuoteProviderError
from relay_payroll.providers.base import (
    QuoteProvider,
    QuoteRequest,
    RelayQuote,
    RelayStep,
    build_same_chain_quote,
    to_smallest_units,
)
from relay_payroll.services.identifiers import random_quote_ref

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
BPS_SCALE = Decimal("10000")
DEFAULT_FEE_BPS = Decimal("15")


class QuoteSource(str, Enum):
    """Where a resolved quote came from."""

    PROVIDER = "provider"
    SAME_ASSET = "same_asset"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class LegRoute:
    """Origin and destination of one allocation leg."""

    origin_chain_id: int
    origin_currency: str
    payer_wallet: str
    destination_symbol: str
    destination_currency: str
    destination_chain_id: int
    recipient_wallet: str


@dataclass(frozen=True)
class ResolvedQuote:
    """Fee and quote reference for one leg."""

    quote_id: str
    source: QuoteSource
    fee_bps: Decimal
    fee_usd: Decimal
    steps: tuple[RelayStep, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        """Whether the default fee policy replaced a provider quote."""
        return self.source == QuoteSource.FALLBACK


class QuoteResolver:
    """Resolves a quote for each allocation leg.

    Rules, in order:
    1. Settlement asset to the same chain: local zero-fee quote, no call.
    2. Anything else: ask the provider.
    3. Provider failure of any kind: default fee rate on the leg amount.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        *,
        settlement_symbol: str = "USDC",
        default_fee_bps: Decimal = DEFAULT_FEE_BPS,
        quote_id_generator: Callable[[str], str] = random_quote_ref,
    ):
        self.provider = provider
        self.settlement_symbol = settlement_symbol.upper()
        self.default_fee_bps = default_fee_bps
        self.quote_id_generator = quote_id_generator

    def is_same_asset(self, route: LegRoute) -> bool:
        """Whether the leg needs neither a swap nor a bridge."""
        return (
            route.destination_symbol.upper() == self.settlement_symbol
            and route.destination_chain_id == route.origin_chain_id
        )

    async def resolve(self, route: LegRoute, amount: Decimal) -> ResolvedQuote:
        """Resolve the fee and quote reference for moving ``amount`` along ``route``."""
        request = QuoteRequest(
            origin_chain_id=route.origin_chain_id,
            destination_chain_id=route.destination_chain_id,
            origin_currency=route.origin_currency,
            destination_currency=route.destination_currency,
            amount=to_smallest_units(amount),
            user=route.payer_wallet,
            recipient=route.recipient_wallet,
        )

        if self.is_same_asset(route):
            quote = build_same_chain_quote(request, self.quote_id_generator("local"))
            return self._from_quote(quote, QuoteSource.SAME_ASSET)

        try:
            quote = await self.provider.get_quote(request)
        except QuoteProviderError as exc:
            return self.fallback(amount, str(exc))
        except Exception as exc:
            # Any provider failure degrades to the default fee
            logger.warning(
                "Quote provider %s raised unexpectedly",
                self.provider.provider_name,
                exc_info=True,
            )
            return self.fallback(amount, f"{type(exc).__name__}: {exc}")

        return self._from_quote(quote, QuoteSource.PROVIDER)

    def fallback(self, amount: Decimal, reason: str) -> ResolvedQuote:
        """Quote built from the default fee rate."""
        logger.warning(
            "Quote fetch failed, using %s bps default fee: %s", self.default_fee_bps, reason
        )
        fee_usd = (amount * self.default_fee_bps / BPS_SCALE).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        return ResolvedQuote(
            quote_id=self.quote_id_generator("fallback"),
            source=QuoteSource.FALLBACK,
            fee_bps=self.default_fee_bps,
            fee_usd=fee_usd,
            error=reason,
        )

    def _from_quote(self, quote: RelayQuote, source: QuoteSource) -> ResolvedQuote:
        """Fee from the relayer and gas components of a quote."""
        fee_usd_raw = quote.fees.relayer.amount_usd + quote.fees.gas.amount_usd
        amount_in_usd = quote.details.currency_in.amount_usd

        if fee_usd_raw == 0:
            fee_bps = Decimal("0")
        elif amount_in_usd > 0:
            fee_bps = (fee_usd_raw / amount_in_usd * BPS_SCALE).quantize(
                CENT, rounding=ROUND_HALF_UP
            )
        else:
            fee_bps = self.default_fee_bps

        return ResolvedQuote(
            quote_id=quote.request_id,
            source=source,
            fee_bps=fee_bps,
            fee_usd=fee_usd_raw.quantize(CENT, rounding=ROUND_HALF_UP),
            steps=tuple(quote.steps),
        )
