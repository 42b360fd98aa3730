"""Tests for input parsing helpers."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from payoff_calc.utils import (
    add_months,
    decimal_from_str,
    parse_month_amount,
    parse_month_amounts,
    parse_year_month,
    payoff_month,
    rate_from_str,
)


class TestDecimalFromStr:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1200", Decimal("1200")),
            ("1,200.50", Decimal("1200.50")),
            ("1.5k", Decimal("1500")),
            ("2M", Decimal("2000000")),
            (" 42 ", Decimal("42")),
        ],
    )
    def test_valid(self, raw, expected):
        assert decimal_from_str(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "12x", "NaN", "Infinity"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            decimal_from_str(raw)


class TestRateFromStr:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("24", Decimal("0.24")),
            ("24%", Decimal("0.24")),
            ("0.24", Decimal("0.24")),
            ("1", Decimal("0.01")),
            ("0.5%", Decimal("0.005")),
            ("0", Decimal("0")),
        ],
    )
    def test_rates(self, raw, expected):
        assert rate_from_str(raw) == expected


class TestMonthAmounts:
    def test_single_pair(self):
        assert parse_month_amount("3:500") == (3, Decimal("500"))

    @pytest.mark.parametrize("raw", ["3", "x:1", "0:5", "1:2:3", "2:abc"])
    def test_invalid_pairs(self, raw):
        with pytest.raises(ValueError):
            parse_month_amount(raw)

    def test_repeated_months_are_summed(self):
        assert parse_month_amounts(["2:100", "5:1k", "2:50"]) == {
            2: Decimal("150"),
            5: Decimal("1000"),
        }


class TestDates:
    def test_parse_year_month(self):
        assert parse_year_month("2025-03") == date(2025, 3, 1)

    @pytest.mark.parametrize("raw", ["2025", "2025-13", "march"])
    def test_parse_year_month_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_year_month(raw)

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_payoff_month(self):
        assert payoff_month(date(2025, 1, 1), 12) == "2025-12"
        assert payoff_month(date(2025, 1, 1), 1) == "2025-01"
