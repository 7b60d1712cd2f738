"""Random identifiers standing in for provider and chain references.

Transfers are simulated, so transaction hashes and fallback quote ids are
random. Both are injectable wherever they are used so tests can pin them.
"""

from __future__ import annotations

import secrets
from typing import Callable

IdGenerator = Callable[[], str]


def random_tx_hash() -> str:
    """A 0x-prefixed 32-byte hex string shaped like an EVM transaction hash."""
    return "0x" + secrets.token_hex(32)


def random_quote_ref(prefix: str) -> str:
    """An opaque quote reference such as 'fallback-3f9a1c2b7d4e'."""
    return f"{prefix}-{secrets.token_hex(6)}"
