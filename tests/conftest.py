"""Pytest configuration and shared fixtures for the payoff calculator tests.

The web app builds its scenario store at import time, so the database URL is
pointed at an in-memory SQLite database before any test module imports it.
"""

from __future__ import annotations

import os
from decimal import Decimal

import pytest

os.environ.setdefault("SCENARIO_DATABASE_URL", "sqlite://")

from payoff_calc.data_models import Debt, MinimumPaymentPolicy, MonthRow, TimelineResult  # noqa: E402


def assert_rows_conserve_balance(result: TimelineResult, starting_balance) -> None:
    """Every row must satisfy before + purchase + interest - payment == after."""
    previous = Decimal(str(starting_balance))
    for row in result.breakdown:
        assert previous + row.purchase + row.interest - row.payment == row.balance, row
        assert row.balance >= 0
        previous = row.balance


def cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"))


@pytest.fixture
def card_factory():
    """Build credit card debts with sensible defaults."""

    def _make(**overrides) -> Debt:
        data = {
            "name": "Card",
            "balance": Decimal("1200"),
            "annual_rate": Decimal("0.24"),
            "declared_monthly_payment": Decimal("120"),
            "currency": "USD",
            "minimum_payment_policy": MinimumPaymentPolicy.flat(35),
            "kind": "card",
        }
        data.update(overrides)
        return Debt(**data)

    return _make


@pytest.fixture
def loan_factory():
    """Build installment loans with sensible defaults."""

    def _make(**overrides) -> Debt:
        data = {
            "name": "Loan",
            "balance": Decimal("10000"),
            "annual_rate": Decimal("0.06"),
            "declared_monthly_payment": Decimal("250"),
            "currency": "USD",
            "kind": "loan",
        }
        data.update(overrides)
        return Debt(**data)

    return _make


@pytest.fixture
def converged_result():
    def _make(months: int, interest: str, balance: str = "1000") -> TimelineResult:
        return TimelineResult(
            months=months,
            total_interest=Decimal(interest),
            breakdown=[MonthRow(months, Decimal("0"), Decimal("1"), Decimal("0"), Decimal("0"))],
            starting_balance=Decimal(balance),
        )

    return _make
