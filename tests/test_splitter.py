"""Tests for the equal amount splitter."""

from decimal import Decimal

import pytest

from relay_payroll.services.splitter import split_amount


class TestSplitAmount:
    """Test equal splitting with remainder to the last recipient."""

    def test_remainder_goes_to_last(self):
        """10000 over 6 recipients: five get 1666.66, the last 1666.70."""
        ids = ["a", "b", "c", "d", "e", "f"]

        result = split_amount(ids, Decimal("10000"))

        assert [result[i] for i in ids[:-1]] == [Decimal("1666.66")] * 5
        assert result["f"] == Decimal("1666.70")

    def test_shares_sum_to_total(self):
        """No cent is lost or created."""
        ids = list(range(7))
        total = Decimal("12345.67")

        result = split_amount(ids, total)

        assert sum(result.values()) == total

    def test_even_split(self):
        """Exact splits give every recipient the same share."""
        result = split_amount(["a", "b"], Decimal("100"))

        assert result == {"a": Decimal("50.00"), "b": Decimal("50.00")}

    def test_single_recipient_gets_total(self):
        assert split_amount(["only"], Decimal("99.99")) == {"only": Decimal("99.99")}

    def test_no_recipients(self):
        """Empty input yields an empty mapping."""
        assert split_amount([], Decimal("100")) == {}

    def test_order_decides_who_gets_remainder(self):
        """The result depends on input order."""
        forward = split_amount(["x", "y", "z"], Decimal("100"))
        backward = split_amount(["z", "y", "x"], Decimal("100"))

        assert forward["z"] == Decimal("33.34")
        assert backward["x"] == Decimal("33.34")

    @pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5")])
    def test_non_positive_total_rejected(self, total):
        with pytest.raises(ValueError):
            split_amount(["a"], total)
