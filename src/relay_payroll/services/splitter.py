"""Equal split of a payroll total across recipients."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Hashable, Sequence, TypeVar

K = TypeVar("K", bound=Hashable)

CENT = Decimal("0.01")


def split_amount(recipient_ids: Sequence[K], total: Decimal) -> dict[K, Decimal]:
    """Split ``total`` equally, giving the remainder to the last recipient.

    Every recipient but the last receives total / N truncated to cents; the
    last receives whatever is left, so the shares always sum to ``total``.
    The result depends on input order.

    Raises:
        ValueError: if total is not positive.
    """
    if len(recipient_ids) == 0:
        return {}
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")

    share = (total / len(recipient_ids)).quantize(CENT, rounding=ROUND_DOWN)
    result: dict[K, Decimal] = {}
    allocated = Decimal("0")

    for recipient_id in recipient_ids[:-1]:
        result[recipient_id] = share
        allocated += share

    result[recipient_ids[-1]] = total - allocated
    return result
