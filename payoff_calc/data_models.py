"""Data models for the payoff calculator.

This module defines dataclasses for the inputs of a payoff projection (debts,
minimum payment policies and payment plans) and for its outputs (monthly rows,
timeline results and savings). Using dataclasses makes it easy to construct,
inspect and serialize these structures.

Money values are ``Decimal`` throughout. Numbers passed as ``int``, ``float``
or ``str`` are converted through their string form so that ``0.24`` becomes
``Decimal("0.24")`` rather than its binary approximation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Union

Number = Union[Decimal, int, float, str]

INFINITE_AMOUNT = Decimal("Infinity")


def to_decimal(value: Number) -> Decimal:
    """Convert ``value`` into a ``Decimal`` without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) and math.isinf(value):
        return INFINITE_AMOUNT if value > 0 else -INFINITE_AMOUNT
    return Decimal(str(value))


@dataclass(frozen=True)
class MinimumPaymentPolicy:
    """Rule resolving the minimum monthly payment of a debt.

    Attributes
    ----------
    kind: str
        ``"flat"`` for a fixed amount or ``"percentage"`` for a share of the
        current balance.
    value: Decimal
        The flat amount, or the percentage of the balance (``2`` means 2 %).
    floor: Decimal
        Lowest payment a percentage policy resolves to. Ignored for flat
        policies.
    """

    kind: str
    value: Decimal
    floor: Decimal = Decimal("25")

    @classmethod
    def flat(cls, amount: Number) -> "MinimumPaymentPolicy":
        return cls(kind="flat", value=to_decimal(amount), floor=Decimal("0"))

    @classmethod
    def percentage(cls, percent: Number, floor: Number = 25) -> "MinimumPaymentPolicy":
        return cls(kind="percentage", value=to_decimal(percent), floor=to_decimal(floor))


@dataclass(frozen=True)
class FixedPlan:
    """The same payment every month."""

    amount: Decimal

    @property
    def payment_type(self) -> str:
        return "fixed"


@dataclass(frozen=True)
class VariablePlan:
    """A payment that may change from month to month.

    ``overrides`` maps 1-based month indices to the amount paid in that month.
    A month missing from the table pays ``default_amount``; a month present
    with ``0`` really pays nothing.
    """

    overrides: Dict[int, Decimal]
    default_amount: Decimal

    @property
    def payment_type(self) -> str:
        return "variable"

    def payment_for(self, month: int) -> Decimal:
        if month in self.overrides:
            return self.overrides[month]
        return self.default_amount


PaymentPlan = Union[FixedPlan, VariablePlan]


@dataclass
class Debt:
    """A credit card or loan as seen by the projection engine.

    The engine never looks debts up; callers build them from whatever store
    they use. ``debt_id`` is an opaque key used only to label portfolio
    results.
    """

    name: str
    balance: Decimal
    annual_rate: Decimal  # APR as a fraction, e.g. 0.24 for 24 %
    declared_monthly_payment: Decimal
    currency: str = "USD"
    minimum_payment_policy: Optional[MinimumPaymentPolicy] = None
    kind: str = "card"  # 'card' or 'loan'
    credit_limit: Optional[Decimal] = None
    debt_id: Optional[str] = None

    @property
    def key(self) -> str:
        return self.debt_id or self.name


@dataclass(frozen=True)
class MonthRow:
    """One month of a payoff timeline.

    ``balance`` is the end-of-month balance after the payment. Values are kept
    unrounded; rounding to cents is a formatting concern.
    """

    month: int
    purchase: Decimal
    payment: Decimal
    interest: Decimal
    balance: Decimal

    @property
    def principal(self) -> Decimal:
        return self.payment - self.interest


@dataclass
class TimelineResult:
    """Outcome of one simulation run.

    A schedule that never reaches a zero balance within the horizon is not an
    error: ``months`` is ``math.inf``, ``total_interest`` is
    ``Decimal("Infinity")`` and ``breakdown`` is empty.
    """

    months: Union[int, float]
    total_interest: Decimal
    breakdown: List[MonthRow] = field(default_factory=list)
    starting_balance: Decimal = Decimal("0")

    @classmethod
    def non_convergent(cls, starting_balance: Number = 0) -> "TimelineResult":
        return cls(
            months=math.inf,
            total_interest=INFINITE_AMOUNT,
            breakdown=[],
            starting_balance=to_decimal(starting_balance),
        )

    @property
    def converged(self) -> bool:
        return not math.isinf(self.months)

    @property
    def total_paid(self) -> Decimal:
        if not self.converged:
            return INFINITE_AMOUNT
        return sum((row.payment for row in self.breakdown), Decimal("0"))


@dataclass(frozen=True)
class Savings:
    """Difference between a baseline run and a chosen plan.

    Both fields are ``None`` when the plan itself never pays off, since there
    is nothing saved to report. When only the baseline is unbounded the
    savings are infinite.
    """

    interest_saved: Optional[Decimal]
    months_saved: Optional[Union[int, float]]


@dataclass
class DebtProjection:
    """A plan run (and optional baseline run) for one debt of a portfolio."""

    debt_id: str
    currency: str
    plan: TimelineResult
    baseline: Optional[TimelineResult] = None
    monthly_payment: Decimal = Decimal("0")
    name: str = ""


@dataclass
class PortfolioSummary:
    """Portfolio-level totals folded from several debt projections.

    ``total_balance`` and ``total_interest`` ignore currency and are only
    meaningful for single-currency portfolios; the ``*_by_currency`` maps are
    what mixed portfolios should display.
    """

    total_balance: Decimal
    balance_by_currency: Dict[str, Decimal]
    total_interest: Decimal
    interest_by_currency: Dict[str, Decimal]
    longest_months: Union[int, float]
    per_debt_savings: Dict[str, Savings]
    total_monthly_payment: Decimal = Decimal("0")
    projections: List[DebtProjection] = field(default_factory=list)

    @property
    def currencies(self) -> List[str]:
        return sorted(self.balance_by_currency)
