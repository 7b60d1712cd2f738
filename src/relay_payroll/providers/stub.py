"""Stub quote provider for local development and testing.

Replace with RelayQuoteProvider to price against the live Relay API.
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from relay_payroll.chains import get_chain, get_tokens_for_chain
from relay_payroll.errors import QuoteProviderError
from relay_payroll.providers.base import (
    USDC_DECIMALS,
    QuoteRequest,
    RelayAmount,
    RelayCurrency,
    RelayDetails,
    RelayFee,
    RelayFees,
    RelayImpact,
    RelayQuote,
    RelayStatus,
    RelayStep,
    RelayStepItem,
    RelayToken,
    from_smallest_units,
)


class StubQuoteProvider:
    """In-memory quote provider.

    Prices every route with a flat relayer rate plus a fixed gas fee and
    records each request it receives. An outage can be simulated so callers
    can exercise their fallback path.
    """

    provider_name = "relay_stub"

    def __init__(
        self,
        relayer_fee_bps: Decimal = Decimal("8"),
        gas_fee_usd: Decimal = Decimal("0.35"),
    ):
        """Initialize stub provider.

        Args:
            relayer_fee_bps: Relayer fee charged on the input amount.
            gas_fee_usd: Flat destination gas fee in USD.
        """
        self.relayer_fee_bps = relayer_fee_bps
        self.gas_fee_usd = gas_fee_usd
        self.requests: list[QuoteRequest] = []
        self._outage: str | None = None
        self._quotes: dict[str, RelayQuote] = {}

    @property
    def call_count(self) -> int:
        """Number of quote requests received."""
        return len(self.requests)

    async def get_quote(self, request: QuoteRequest) -> RelayQuote:
        """Return a priced quote or raise while an outage is simulated."""
        self.requests.append(request)
        if self._outage is not None:
            raise QuoteProviderError(f"Relay quote failed: {self._outage}", status_code=503)

        amount_usd = from_smallest_units(request.amount).quantize(Decimal("0.01"))
        relayer_usd = (amount_usd * self.relayer_fee_bps / Decimal("10000")).quantize(
            Decimal("0.000001")
        )
        usdc = RelayCurrency(symbol="USDC", decimals=USDC_DECIMALS)
        native = self._native_currency(request.destination_chain_id)
        out_usd = amount_usd - relayer_usd - self.gas_fee_usd

        quote = RelayQuote(
            request_id=f"stub-{secrets.token_hex(8)}",
            steps=[
                RelayStep(
                    id="deposit",
                    action="Confirm transaction in your wallet",
                    description="Depositing funds to the relayer",
                    items=[
                        RelayStepItem(
                            status="incomplete",
                            data={
                                "from": request.user,
                                "chainId": request.origin_chain_id,
                                "value": request.amount,
                            },
                        )
                    ],
                )
            ],
            fees=RelayFees(
                relayer=RelayFee(
                    amount=str(int(relayer_usd * 10**USDC_DECIMALS)),
                    amount_usd=relayer_usd,
                    currency=usdc,
                ),
                gas=RelayFee(amount="0", amount_usd=self.gas_fee_usd, currency=native),
            ),
            details=RelayDetails(
                currency_in=RelayAmount(currency=usdc, amount=request.amount, amount_usd=amount_usd),
                currency_out=RelayAmount(
                    currency=usdc,
                    amount=request.amount,
                    amount_usd=out_usd,
                ),
                total_impact=RelayImpact(usd=str(out_usd - amount_usd), percent="0"),
                rate="1",
            ),
        )
        self._quotes[quote.request_id] = quote
        return quote

    async def get_status(self, request_id: str) -> RelayStatus:
        """Status of a quote handed out by this stub."""
        if request_id not in self._quotes:
            return RelayStatus(
                status="failed",
                request_id=request_id,
                error_message=f"Request {request_id} not found",
            )
        return RelayStatus(status="complete", request_id=request_id)

    async def get_supported_tokens(self, chain_id: int) -> list[RelayToken]:
        """Tokens from the static reference table."""
        return [
            RelayToken(
                chain_id=chain_id,
                address=token.addresses[chain_id],
                name=token.name,
                symbol=token.symbol,
                decimals=token.decimals,
                verified=True,
            )
            for token in get_tokens_for_chain(chain_id)
        ]

    def simulate_outage(self, message: str = "Service Unavailable") -> None:
        """Make every following quote request fail (for testing)."""
        self._outage = message

    def restore(self) -> None:
        """End a simulated outage."""
        self._outage = None

    @staticmethod
    def _native_currency(chain_id: int) -> RelayCurrency:
        chain = get_chain(chain_id)
        symbol = chain.native_currency if chain else "ETH"
        decimals = 9 if symbol == "SOL" else 18
        return RelayCurrency(symbol=symbol, decimals=decimals)
