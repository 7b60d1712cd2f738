"""Tests for allocation validation."""

from decimal import Decimal

import pytest

from relay_payroll.errors import AllocationValidationError, ErrorKind
from relay_payroll.services.allocations import (
    format_percent,
    parse_percentage,
    validate_allocations,
)


class TestValidateAllocations:
    """Test the 100% sum rule."""

    def test_empty_set_is_valid(self):
        """No allocations means the default allocation applies."""
        result = validate_allocations([])

        assert result.valid is True
        assert result.error is None

    def test_thirds_summing_to_100(self):
        """[33, 33, 34] is valid."""
        result = validate_allocations([33, 33, 34])

        assert result.valid is True
        assert result.total == Decimal("100.00")

    def test_sum_below_100_rejected(self):
        """[50, 49] is rejected with the rounded sum."""
        result = validate_allocations([50, 49])

        assert result.valid is False
        assert result.error == "Allocations must sum to 100% (got 99%)"

    def test_fractional_sum_reported_without_trailing_zeros(self):
        """The reported sum is rounded to two places."""
        result = validate_allocations(["33.33", "33.33", "33.33"])

        assert result.valid is False
        assert result.error == "Allocations must sum to 100% (got 99.99%)"

    def test_sum_rounding_to_100_accepted(self):
        """A sum within rounding of 100 is accepted."""
        assert validate_allocations(["33.333", "33.333", "33.333"]).valid is True

    def test_negative_percentage_rejected(self):
        """Negative values are not clamped."""
        result = validate_allocations([120, -20])

        assert result.valid is False
        assert "between 0 and 100" in result.error

    def test_non_numeric_percentage_rejected(self):
        """Malformed entries are reported, not raised."""
        result = validate_allocations([{"percentage": "half"}, {"percentage": 50}])

        assert result.valid is False
        assert result.error.startswith("Allocation 1 has an invalid percentage")

    def test_accepts_objects_with_percentage(self):
        """Entries may be ORM rows or any object with a percentage."""

        class Row:
            def __init__(self, percentage):
                self.percentage = percentage

        assert validate_allocations([Row(Decimal("60")), Row(Decimal("40"))]).valid is True

    def test_raise_for_error_prefixes_employee(self):
        """raise_for_error names the employee and is a validation error."""
        result = validate_allocations([50, 49])

        with pytest.raises(AllocationValidationError) as exc_info:
            result.raise_for_error("emp-1")

        assert str(exc_info.value).startswith("Employee emp-1: ")
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_raise_for_error_noop_when_valid(self):
        """Valid sets do not raise."""
        validate_allocations([100]).raise_for_error("emp-1")


class TestParsePercentage:
    """Test percentage parsing."""

    @pytest.mark.parametrize("raw", [None, True, "abc", "NaN", "Infinity", ""])
    def test_rejects_non_numeric(self, raw):
        assert parse_percentage(raw) is None

    def test_parses_strings_and_numbers(self):
        assert parse_percentage(" 12.5 ") == Decimal("12.5")
        assert parse_percentage(40) == Decimal("40")

    def test_format_percent(self):
        assert format_percent(Decimal("99.50")) == "99.5"
        assert format_percent(Decimal("100.00")) == "100"
