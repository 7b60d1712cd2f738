"""Allocation validation.

An employee's allocations are either empty (the system default applies) or
sum to exactly 100% once rounded to two decimal places.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from relay_payroll.errors import AllocationValidationError

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class AllocationValidation:
    """Outcome of validating one employee's allocation set."""

    valid: bool
    error: str | None = None
    total: Decimal | None = None

    def raise_for_error(self, employee_id: object | None = None) -> None:
        """Raise AllocationValidationError if the set is invalid."""
        if not self.valid:
            raise AllocationValidationError(self.error or "Invalid allocations", employee_id)


def format_percent(value: Decimal) -> str:
    """Render a percentage without trailing zeros (99.50 -> 99.5)."""
    return f"{value.normalize():f}"


def parse_percentage(raw: Any) -> Decimal | None:
    """Parse a percentage into a finite Decimal, None if it is not numeric."""
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def _percentage_of(entry: Any) -> Any:
    if isinstance(entry, Mapping):
        return entry.get("percentage")
    if hasattr(entry, "percentage"):
        return entry.percentage
    return entry


def validate_allocations(allocations: Sequence[Any]) -> AllocationValidation:
    """Validate the percentage split of one employee.

    Entries may be objects with a ``percentage`` attribute, mappings with a
    ``percentage`` key, or bare numbers. Malformed, negative or >100 values
    are reported as failures; nothing is clamped and nothing is raised.
    """
    if len(allocations) == 0:
        return AllocationValidation(valid=True, total=None)

    total = Decimal("0")
    for position, entry in enumerate(allocations, start=1):
        raw = _percentage_of(entry)
        value = parse_percentage(raw)
        if value is None:
            return AllocationValidation(
                valid=False,
                error=f"Allocation {position} has an invalid percentage: {raw!r}",
            )
        if value < 0 or value > HUNDRED:
            return AllocationValidation(
                valid=False,
                error=(
                    f"Allocation {position} percentage must be between 0 and 100 "
                    f"(got {format_percent(value)})"
                ),
            )
        total += value

    rounded = total.quantize(CENT, rounding=ROUND_HALF_UP)
    if rounded != HUNDRED:
        return AllocationValidation(
            valid=False,
            error=f"Allocations must sum to 100% (got {format_percent(rounded)}%)",
            total=rounded,
        )
    return AllocationValidation(valid=True, total=rounded)
