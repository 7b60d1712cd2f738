"""Supported chains and token reference data.

Static, read-only lookup tables for the EVM chains and Solana that payroll
can settle to, and the curated token list per chain. Chain ids follow the
Relay API numbering (Solana is 792703809).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

# Pseudo-address Relay uses for a chain's native asset
NATIVE_ETH_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

# Recipient used when an employee has not set a wallet
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

SOLANA_CHAIN_ID = 792703809


@dataclass(frozen=True)
class ChainConfig:
    """A supported network."""

    id: int
    name: str
    slug: str
    native_currency: str
    explorer_url: str
    color: str


@dataclass(frozen=True)
class TokenConfig:
    """A supported asset and its contract address on each chain."""

    symbol: str
    name: str
    decimals: int
    addresses: Mapping[int, str] = field(default_factory=dict)
    coingecko_id: str = ""
    color: str = ""


@dataclass(frozen=True)
class DefaultAllocation:
    """Allocation applied to employees that have none configured."""

    token_symbol: str
    token_address: str
    chain_id: int
    chain_name: str
    percentage: Decimal


CHAINS: tuple[ChainConfig, ...] = (
    ChainConfig(1, "Ethereum", "ethereum", "ETH", "https://etherscan.io", "#627EEA"),
    ChainConfig(8453, "Base", "base", "ETH", "https://basescan.org", "#0052FF"),
    ChainConfig(10, "Optimism", "optimism", "ETH", "https://optimistic.etherscan.io", "#FF0420"),
    ChainConfig(42161, "Arbitrum", "arbitrum", "ETH", "https://arbiscan.io", "#28A0F0"),
    ChainConfig(137, "Polygon", "polygon", "MATIC", "https://polygonscan.com", "#8247E5"),
    ChainConfig(SOLANA_CHAIN_ID, "Solana", "solana", "SOL", "https://solscan.io", "#9945FF"),
    ChainConfig(56, "BNB Chain", "bnb", "BNB", "https://bscscan.com", "#F3BA2F"),
    ChainConfig(43114, "Avalanche", "avalanche", "AVAX", "https://snowtrace.io", "#E84142"),
)

CHAIN_MAP: Mapping[int, ChainConfig] = MappingProxyType({c.id: c for c in CHAINS})
CHAIN_SLUG_MAP: Mapping[str, ChainConfig] = MappingProxyType({c.slug: c for c in CHAINS})

TOKENS: tuple[TokenConfig, ...] = (
    TokenConfig(
        symbol="USDC",
        name="USD Coin",
        decimals=6,
        addresses=MappingProxyType({
            1: "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            8453: "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
            10: "0x0b2c639c533813f4aa9d7837caf62653d097ff85",
            42161: "0xaf88d065e77c8cc2239327c5edb3a432268e5831",
            137: "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359",
            SOLANA_CHAIN_ID: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
            56: "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d",
            43114: "0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e",
        }),
        coingecko_id="usd-coin",
        color="#2775CA",
    ),
    TokenConfig(
        symbol="ETH",
        name="Ethereum",
        decimals=18,
        addresses=MappingProxyType({
            1: NATIVE_ETH_ADDRESS,
            8453: NATIVE_ETH_ADDRESS,
            10: NATIVE_ETH_ADDRESS,
            42161: NATIVE_ETH_ADDRESS,
        }),
        coingecko_id="ethereum",
        color="#627EEA",
    ),
    TokenConfig(
        symbol="WBTC",
        name="Wrapped Bitcoin",
        decimals=8,
        addresses=MappingProxyType({
            1: "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599",
            8453: "0x0555e30da8f98308edb960aa94c0db47230d2b9c",
            10: "0x68f180fcce6836688e9084f035309e29bf0a2095",
            42161: "0x2f2a2543b76a4166549f7aab2e75bef0aefc5b0f",
            137: "0x1bfd67037b42cf73acf2047067bd4f2c47d9bfd6",
        }),
        coingecko_id="wrapped-bitcoin",
        color="#F7931A",
    ),
    TokenConfig(
        symbol="SOL",
        name="Solana",
        decimals=9,
        addresses=MappingProxyType({
            SOLANA_CHAIN_ID: "So11111111111111111111111111111111111111112",
        }),
        coingecko_id="solana",
        color="#9945FF",
    ),
    TokenConfig(
        symbol="MATIC",
        name="Polygon",
        decimals=18,
        addresses=MappingProxyType({
            137: NATIVE_ETH_ADDRESS,
            1: "0x7d1afa7b718fb893db30a3abc0cfc608aacfebb0",
        }),
        coingecko_id="matic-network",
        color="#8247E5",
    ),
    TokenConfig(
        symbol="ARB",
        name="Arbitrum",
        decimals=18,
        addresses=MappingProxyType({42161: "0x912ce59144191c1204e64559fe8253a0e49e6548"}),
        coingecko_id="arbitrum",
        color="#28A0F0",
    ),
    TokenConfig(
        symbol="OP",
        name="Optimism",
        decimals=18,
        addresses=MappingProxyType({10: "0x4200000000000000000000000000000000000042"}),
        coingecko_id="optimism",
        color="#FF0420",
    ),
    TokenConfig(
        symbol="AVAX",
        name="Avalanche",
        decimals=18,
        addresses=MappingProxyType({43114: NATIVE_ETH_ADDRESS}),
        coingecko_id="avalanche-2",
        color="#E84142",
    ),
    TokenConfig(
        symbol="BNB",
        name="BNB",
        decimals=18,
        addresses=MappingProxyType({56: NATIVE_ETH_ADDRESS}),
        coingecko_id="binancecoin",
        color="#F3BA2F",
    ),
)

TOKEN_MAP: Mapping[str, TokenConfig] = MappingProxyType({t.symbol: t for t in TOKENS})

DEFAULT_ALLOCATION = DefaultAllocation(
    token_symbol="USDC",
    token_address=TOKEN_MAP["USDC"].addresses[SOLANA_CHAIN_ID],
    chain_id=SOLANA_CHAIN_ID,
    chain_name="Solana",
    percentage=Decimal("100"),
)


def get_chain(chain_id: int) -> ChainConfig | None:
    """Get the chain config for a chain id."""
    return CHAIN_MAP.get(chain_id)


def get_chain_by_slug(slug: str) -> ChainConfig | None:
    """Get the chain config for a slug such as 'base'."""
    return CHAIN_SLUG_MAP.get(slug.lower())


def get_token(symbol: str) -> TokenConfig | None:
    """Get the token config for a symbol."""
    return TOKEN_MAP.get(symbol.upper())


def get_token_address(symbol: str, chain_id: int) -> str | None:
    """Get a token's contract address on a chain.

    Returns None if the token is not supported on that chain.
    """
    token = get_token(symbol)
    if token is None:
        return None
    return token.addresses.get(chain_id)


def get_tokens_for_chain(chain_id: int) -> list[TokenConfig]:
    """Get all tokens supported on a chain."""
    return [t for t in TOKENS if chain_id in t.addresses]


def get_explorer_url(chain_id: int, tx_hash: str) -> str:
    """Block explorer URL for a transaction, Etherscan for unknown chains."""
    chain = get_chain(chain_id)
    base = chain.explorer_url if chain else "https://etherscan.io"
    return f"{base}/tx/{tx_hash}"
