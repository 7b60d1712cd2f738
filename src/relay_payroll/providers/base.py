"""Base protocol and types for quote providers.

All provider adapters must implement the QuoteProvider protocol. Provider
payloads are validated into the pydantic models below at the boundary; a
payload that does not fit them is a provider failure, not a crash.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

USDC_DECIMALS = 6


class RelayModel(BaseModel):
    """Base for Relay API payloads (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class RelayCurrency(RelayModel):
    """Currency descriptor attached to fees and amounts."""

    symbol: str
    decimals: int


class RelayFee(RelayModel):
    """A fee component in native units and its USD equivalent."""

    amount: str
    amount_usd: Decimal = Field(alias="amountUsd")
    currency: RelayCurrency | None = None


class RelayFees(RelayModel):
    """Fee breakdown of a quote. Relayer and gas fees are mandatory."""

    relayer: RelayFee
    gas: RelayFee
    relayer_gas: RelayFee | None = Field(default=None, alias="relayerGas")
    app: RelayFee | None = None


class RelayStepItem(RelayModel):
    """A single signable item of an execution step."""

    status: str
    data: dict[str, Any] = Field(default_factory=dict)


class RelayStep(RelayModel):
    """One execution step the payer has to perform."""

    id: str
    action: str
    description: str = ""
    items: list[RelayStepItem] = Field(default_factory=list)


class RelayAmount(RelayModel):
    """Input or output amount of a quote."""

    currency: RelayCurrency
    amount: str
    amount_usd: Decimal = Field(alias="amountUsd")


class RelayImpact(RelayModel):
    """Price impact of a quote."""

    usd: str
    percent: str


class RelayDetails(RelayModel):
    """Amounts and rate of a quote."""

    currency_in: RelayAmount = Field(alias="currencyIn")
    currency_out: RelayAmount = Field(alias="currencyOut")
    total_impact: RelayImpact | None = Field(default=None, alias="totalImpact")
    rate: str | None = None


class RelayQuote(RelayModel):
    """Priced execution plan for moving value between assets and chains."""

    request_id: str = Field(alias="requestId", min_length=1)
    steps: list[RelayStep]
    fees: RelayFees
    details: RelayDetails


class RelayStatus(RelayModel):
    """Status of a submitted Relay request."""

    status: str
    request_id: str = Field(default="", alias="requestId")
    tx_hashes: list[str] = Field(default_factory=list, alias="txHashes")
    error_message: str | None = Field(default=None, alias="errorMessage")


class RelayToken(RelayModel):
    """A token the Relay API can route on a chain."""

    chain_id: int = Field(alias="chainId")
    address: str
    name: str
    symbol: str
    decimals: int
    logo_uri: str | None = Field(default=None, alias="logoURI")
    verified: bool = False


@dataclass(frozen=True)
class QuoteRequest:
    """Parameters for one quote.

    Amount is expressed in the origin asset's smallest integral units and
    kept as a string so no precision is lost on the way to the provider.
    """

    origin_chain_id: int
    destination_chain_id: int
    origin_currency: str
    destination_currency: str
    amount: str
    user: str
    recipient: str
    trade_type: str = "EXACT_INPUT"

    def __post_init__(self) -> None:
        """Validate request."""
        if not self.amount.isdigit():
            raise ValueError(f"amount must be an integer string, got {self.amount!r}")

    def to_payload(self) -> dict[str, Any]:
        """Request body in the provider's wire format."""
        return {
            "originChainId": self.origin_chain_id,
            "destinationChainId": self.destination_chain_id,
            "originCurrency": self.origin_currency,
            "destinationCurrency": self.destination_currency,
            "amount": self.amount,
            "user": self.user,
            "recipient": self.recipient,
            "tradeType": self.trade_type,
        }


def to_smallest_units(amount: Decimal, decimals: int = USDC_DECIMALS) -> str:
    """Convert a currency amount to an integer string of smallest units."""
    scaled = (amount * (Decimal(10) ** decimals)).quantize(Decimal("1"))
    return str(int(scaled))


def from_smallest_units(amount: str, decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert an integer string of smallest units to a currency amount."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def build_same_chain_quote(request: QuoteRequest, quote_id: str | None = None) -> RelayQuote:
    """Build a local zero-fee quote for a plain USDC transfer.

    Used when no swap or bridge is needed, so the provider is not called.
    """
    amount_usd = from_smallest_units(request.amount).quantize(Decimal("0.01"))
    usdc = RelayCurrency(symbol="USDC", decimals=USDC_DECIMALS)
    eth = RelayCurrency(symbol="ETH", decimals=18)
    zero_usdc = RelayFee(amount="0", amount_usd=Decimal("0"), currency=usdc)
    zero_eth = RelayFee(amount="0", amount_usd=Decimal("0"), currency=eth)
    leg_amount = RelayAmount(currency=usdc, amount=request.amount, amount_usd=amount_usd)

    return RelayQuote(
        request_id=quote_id or f"local-{secrets.token_hex(6)}",
        steps=[
            RelayStep(
                id="transfer",
                action="transfer",
                description="Transfer USDC",
                items=[RelayStepItem(status="incomplete")],
            )
        ],
        fees=RelayFees(relayer=zero_usdc, gas=zero_eth, relayer_gas=zero_eth, app=zero_usdc),
        details=RelayDetails(
            currency_in=leg_amount,
            currency_out=leg_amount,
            total_impact=RelayImpact(usd="0", percent="0"),
            rate="1",
        ),
    )


class QuoteProvider(Protocol):
    """Protocol for cross-chain quote provider adapters.

    The quote resolver uses these adapters without knowing provider-specific
    details. Implementations raise QuoteProviderError on any failure.
    """

    provider_name: str

    async def get_quote(self, request: QuoteRequest) -> RelayQuote:
        """Fetch a quote for moving request.amount to the destination.

        Args:
            request: Route, amount and wallets for the quote.

        Returns:
            Validated RelayQuote.

        Raises:
            QuoteProviderError: on timeout, non-2xx status or malformed payload.
        """
        ...
