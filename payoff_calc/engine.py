"""Core calculation engine for the payoff calculator.

This module implements the month-by-month projection of a revolving or
installment debt. Three simulators share one loop:

* ``simulate_fixed`` pays the same amount every month,
* ``simulate_variable`` resolves the payment of each month from an override
  table with a default fallback,
* ``simulate_minimum_payment`` recomputes the payment every month from the
  current balance, which is the baseline every "interest saved" figure is
  measured against.

Each month a scheduled purchase (if any) is added to the balance, interest
accrues on the result, and then the payment is applied, capped at what is
owed. Results are returned as ``TimelineResult`` objects. A schedule that
never reaches zero within ``max_months`` yields ``TimelineResult.non_convergent``
instead of raising.
"""

from __future__ import annotations

import logging
from decimal import ROUND_CEILING, Decimal, getcontext
from typing import Callable, Dict, Mapping, Optional

from .data_models import (
    INFINITE_AMOUNT,
    MinimumPaymentPolicy,
    MonthRow,
    Number,
    Savings,
    TimelineResult,
    VariablePlan,
    to_decimal,
)

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

DEFAULT_MAX_MONTHS = 360
QUICK_PICK_TERM = 36
CENT = Decimal("0.01")
MONTHS_PER_YEAR = Decimal(12)


class InvalidSimulationInput(ValueError):
    """Raised before any month is simulated when an input makes no sense."""


def monthly_interest(balance: Number, annual_rate: Number) -> Decimal:
    """Return one month of interest on ``balance`` at the given APR."""
    return to_decimal(balance) * to_decimal(annual_rate) / MONTHS_PER_YEAR


def effective_minimum_payment(policy: MinimumPaymentPolicy, balance: Number) -> Decimal:
    """Resolve a minimum payment policy against the current balance.

    A flat policy pays its amount; a percentage policy pays ``value`` percent
    of the balance but never less than ``floor``. Either way the result is
    capped at the balance itself.
    """
    balance = to_decimal(balance)
    if balance <= 0:
        return Decimal("0")
    if policy.kind == "flat":
        amount = to_decimal(policy.value)
    elif policy.kind == "percentage":
        amount = max(balance * to_decimal(policy.value) / Decimal(100), to_decimal(policy.floor))
    else:
        raise InvalidSimulationInput(f"Unknown minimum payment policy: {policy.kind}")
    return min(amount, balance)


def payment_for_3_year_payoff(balance: Number, annual_rate: Number) -> Decimal:
    """Return the fixed payment that amortizes ``balance`` over 36 months.

    The formula is:

        payment = B * r / (1 - (1 + r)^-36)

    with ``r`` the monthly rate; at a zero rate it is ``B / 36``. The result is
    rounded up to the next cent so that the suggestion always clears the debt.
    """
    balance = to_decimal(balance)
    if balance <= 0:
        return Decimal("0")
    rate = to_decimal(annual_rate) / MONTHS_PER_YEAR
    if rate == 0:
        payment = balance / Decimal(QUICK_PICK_TERM)
    else:
        payment = balance * rate / (1 - (1 + rate) ** -QUICK_PICK_TERM)
    return payment.quantize(CENT, rounding=ROUND_CEILING)


def payment_covers_interest(balance: Number, annual_rate: Number, payment: Number) -> bool:
    """Return True when ``payment`` is strictly above the first month's interest.

    A payment at or below the interest accrual can never pay the balance down,
    so such a plan is reported as never paying off.
    """
    return to_decimal(payment) > monthly_interest(balance, annual_rate)


def _validate(balance: Decimal, annual_rate: Decimal, max_months: int,
              purchases: Mapping[int, Decimal]) -> None:
    if balance < 0:
        raise InvalidSimulationInput(f"Balance must not be negative; got {balance}")
    if annual_rate < 0 or annual_rate >= 1:
        raise InvalidSimulationInput(
            f"Annual rate must be a fraction in [0, 1); got {annual_rate}"
        )
    if max_months < 1:
        raise InvalidSimulationInput(f"max_months must be at least 1; got {max_months}")
    for month, amount in purchases.items():
        if month < 1:
            raise InvalidSimulationInput(f"Purchase months start at 1; got {month}")
        if amount < 0:
            raise InvalidSimulationInput(
                f"Purchase for month {month} must not be negative; got {amount}"
            )


def _normalize_month_map(values: Optional[Mapping[int, Number]]) -> Dict[int, Decimal]:
    if not values:
        return {}
    return {int(month): to_decimal(amount) for month, amount in values.items()}


def _run_timeline(
    balance: Decimal,
    annual_rate: Decimal,
    resolve_payment: Callable[[int, Decimal], Decimal],
    max_months: int,
    purchases: Mapping[int, Decimal],
) -> TimelineResult:
    """Run the shared monthly loop.

    ``resolve_payment`` receives the month index and the balance owed after
    interest and returns the payment requested for that month.
    """
    starting_balance = balance
    if balance == 0 and not purchases.get(1):
        return TimelineResult(months=0, total_interest=Decimal("0"), breakdown=[],
                              starting_balance=starting_balance)

    breakdown = []
    total_interest = Decimal("0")
    for month in range(1, max_months + 1):
        purchase = purchases.get(month, Decimal("0"))
        balance += purchase
        interest = monthly_interest(balance, annual_rate)
        balance += interest
        total_interest += interest
        actual_payment = min(resolve_payment(month, balance), balance)
        balance -= actual_payment
        breakdown.append(
            MonthRow(
                month=month,
                purchase=purchase,
                payment=actual_payment,
                interest=interest,
                balance=balance,
            )
        )
        if balance == 0:
            logger.debug("Balance cleared in month %d; interest paid %s", month, total_interest)
            return TimelineResult(
                months=month,
                total_interest=total_interest,
                breakdown=breakdown,
                starting_balance=starting_balance,
            )

    logger.debug("Balance %s still owed after %d months; schedule does not converge",
                 balance, max_months)
    return TimelineResult.non_convergent(starting_balance)


def simulate_fixed(
    balance: Number,
    annual_rate: Number,
    payment: Number,
    max_months: int = DEFAULT_MAX_MONTHS,
    purchases: Optional[Mapping[int, Number]] = None,
) -> TimelineResult:
    """Project a debt paid down by the same amount every month.

    Parameters
    ----------
    balance: Number
        Balance owed at the start of month 1.
    annual_rate: Number
        APR as a fraction (``0.24`` for 24 %).
    payment: Number
        Amount paid each month. The last payment is capped at what is owed.
    max_months: int
        Simulation horizon. A balance still owed after this many months makes
        the result non-convergent.
    purchases: Mapping[int, Number], optional
        Amounts charged to the balance at the start of the given 1-based
        months, before interest accrues.

    A payment that does not cover the first month's interest can never reduce
    the balance, so it is reported as non-convergent without running the loop.

    The run ends in the first month the balance reaches zero, so purchases
    scheduled after that month are not simulated. A zero starting balance with
    no purchase in month 1 is already paid off and returns ``months == 0``.
    """
    balance = to_decimal(balance)
    annual_rate = to_decimal(annual_rate)
    payment = to_decimal(payment)
    purchase_map = _normalize_month_map(purchases)
    _validate(balance, annual_rate, max_months, purchase_map)
    if payment < 0:
        raise InvalidSimulationInput(f"Payment must not be negative; got {payment}")
    if balance > 0 and not payment_covers_interest(balance, annual_rate, payment):
        logger.info("Payment %s does not cover the first month's interest", payment)
        return TimelineResult.non_convergent(balance)

    logger.debug("Fixed simulation: balance=%s rate=%s payment=%s", balance, annual_rate, payment)
    return _run_timeline(balance, annual_rate, lambda month, owed: payment,
                         max_months, purchase_map)


def simulate_variable(
    balance: Number,
    annual_rate: Number,
    plan: VariablePlan,
    max_months: int = DEFAULT_MAX_MONTHS,
    purchases: Optional[Mapping[int, Number]] = None,
) -> TimelineResult:
    """Project a debt whose payment is looked up month by month.

    Month ``i`` pays ``plan.overrides[i]`` when the table has that month and
    ``plan.default_amount`` otherwise, including every month past the end of
    the table.
    """
    balance = to_decimal(balance)
    annual_rate = to_decimal(annual_rate)
    purchase_map = _normalize_month_map(purchases)
    _validate(balance, annual_rate, max_months, purchase_map)
    plan = VariablePlan(
        overrides=_normalize_month_map(plan.overrides),
        default_amount=to_decimal(plan.default_amount),
    )
    if plan.default_amount < 0:
        raise InvalidSimulationInput(
            f"Default payment must not be negative; got {plan.default_amount}"
        )
    for month, amount in plan.overrides.items():
        if month < 1:
            raise InvalidSimulationInput(f"Payment months start at 1; got {month}")
        if amount < 0:
            raise InvalidSimulationInput(
                f"Payment for month {month} must not be negative; got {amount}"
            )

    logger.debug("Variable simulation: balance=%s rate=%s overrides=%d default=%s",
                 balance, annual_rate, len(plan.overrides), plan.default_amount)
    return _run_timeline(balance, annual_rate, lambda month, owed: plan.payment_for(month),
                         max_months, purchase_map)


def simulate_minimum_payment(
    balance: Number,
    annual_rate: Number,
    minimum_payment_policy: MinimumPaymentPolicy,
    max_months: int = DEFAULT_MAX_MONTHS,
) -> TimelineResult:
    """Project a debt paid at its minimum payment every month.

    The payment is recomputed each month from the balance owed after interest,
    so balance-proportional minimums shrink as the debt shrinks.
    """
    balance = to_decimal(balance)
    annual_rate = to_decimal(annual_rate)
    _validate(balance, annual_rate, max_months, {})
    policy = MinimumPaymentPolicy(
        kind=minimum_payment_policy.kind,
        value=to_decimal(minimum_payment_policy.value),
        floor=to_decimal(minimum_payment_policy.floor),
    )
    if policy.kind not in ("flat", "percentage"):
        raise InvalidSimulationInput(f"Unknown minimum payment policy: {policy.kind}")
    if policy.value < 0 or policy.floor < 0:
        raise InvalidSimulationInput("Minimum payment policy amounts must not be negative")

    logger.debug("Minimum payment simulation: balance=%s rate=%s policy=%s",
                 balance, annual_rate, policy)
    return _run_timeline(
        balance,
        annual_rate,
        lambda month, owed: effective_minimum_payment(policy, owed),
        max_months,
        {},
    )


def compare_to_baseline(baseline: TimelineResult, plan: TimelineResult) -> Savings:
    """Return how much interest and time ``plan`` saves over ``baseline``."""
    if not plan.converged:
        return Savings(interest_saved=None, months_saved=None)
    if not baseline.converged:
        return Savings(interest_saved=INFINITE_AMOUNT, months_saved=baseline.months)
    return Savings(
        interest_saved=baseline.total_interest - plan.total_interest,
        months_saved=baseline.months - plan.months,
    )


def payment_for_target_months(
    balance: Number,
    annual_rate: Number,
    target_months: int,
    purchases: Optional[Mapping[int, Number]] = None,
) -> Decimal:
    """Return the smallest fixed payment, to the cent, that clears the debt in time.

    Bisects over whole cents using ``simulate_fixed`` with ``target_months`` as
    the horizon, so purchases are honoured exactly as in a real run.
    """
    if target_months < 1:
        raise InvalidSimulationInput(f"Target months must be at least 1; got {target_months}")
    balance = to_decimal(balance)
    annual_rate = to_decimal(annual_rate)
    purchase_map = _normalize_month_map(purchases)
    _validate(balance, annual_rate, target_months, purchase_map)
    if balance == 0 and not purchase_map.get(1):
        return Decimal("0")

    owed_upper_bound = (balance + sum(purchase_map.values(), Decimal("0"))) * (
        1 + annual_rate / MONTHS_PER_YEAR
    ) ** target_months
    low = 0
    high = int((owed_upper_bound / CENT).to_integral_value(rounding=ROUND_CEILING))
    while high - low > 1:
        mid = (low + high) // 2
        result = simulate_fixed(balance, annual_rate, Decimal(mid) * CENT,
                                max_months=target_months, purchases=purchase_map)
        if result.converged:
            high = mid
        else:
            low = mid
    return Decimal(high) * CENT
