"""Multi-debt projections.

Runs the engine once per debt and folds the results into portfolio totals for
the combined simulator. Balances and interest are grouped by currency because
amounts in different currencies are never added together for display; the
currency-naive totals are kept only for single-currency portfolios.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from .data_models import (
    INFINITE_AMOUNT,
    Debt,
    DebtProjection,
    Number,
    PortfolioSummary,
    TimelineResult,
    to_decimal,
)
from .engine import (
    DEFAULT_MAX_MONTHS,
    compare_to_baseline,
    simulate_fixed,
    simulate_minimum_payment,
)

logger = logging.getLogger(__name__)


def baseline_for(debt: Debt, max_months: int = DEFAULT_MAX_MONTHS) -> TimelineResult:
    """Return the comparison run for ``debt``.

    Cards with a minimum payment policy are compared against paying only the
    declining minimum. Loans (and cards without a policy) are compared against
    their declared regular payment.
    """
    if debt.kind == "card" and debt.minimum_payment_policy is not None:
        return simulate_minimum_payment(debt.balance, debt.annual_rate,
                                        debt.minimum_payment_policy, max_months=max_months)
    return simulate_fixed(debt.balance, debt.annual_rate, debt.declared_monthly_payment,
                          max_months=max_months)


def project_debt(debt: Debt, payment: Optional[Number] = None,
                 max_months: int = DEFAULT_MAX_MONTHS) -> DebtProjection:
    """Run the plan and baseline simulations for a single debt.

    ``payment`` defaults to the debt's declared monthly payment.
    """
    amount = debt.declared_monthly_payment if payment is None else to_decimal(payment)
    plan = simulate_fixed(debt.balance, debt.annual_rate, amount, max_months=max_months)
    baseline = baseline_for(debt, max_months=max_months)
    return DebtProjection(
        debt_id=debt.key,
        currency=debt.currency,
        plan=plan,
        baseline=baseline,
        monthly_payment=amount,
        name=debt.name,
    )


def aggregate(projections: Iterable[DebtProjection]) -> PortfolioSummary:
    """Fold per-debt projections into portfolio totals.

    Any non-convergent plan makes both ``longest_months`` and
    ``total_interest`` unbounded rather than being dropped from the totals.
    """
    projections = list(projections)
    balance_by_currency: Dict[str, Decimal] = {}
    interest_by_currency: Dict[str, Decimal] = {}
    total_balance = Decimal("0")
    total_interest = Decimal("0")
    total_monthly_payment = Decimal("0")
    longest_months = 0
    per_debt_savings = {}

    for projection in projections:
        plan = projection.plan
        currency = projection.currency
        balance_by_currency[currency] = (
            balance_by_currency.get(currency, Decimal("0")) + plan.starting_balance
        )
        interest_by_currency[currency] = (
            interest_by_currency.get(currency, Decimal("0")) + plan.total_interest
        )
        total_balance += plan.starting_balance
        total_interest += plan.total_interest
        total_monthly_payment += projection.monthly_payment
        if plan.converged:
            longest_months = max(longest_months, plan.months)
        else:
            longest_months = math.inf
        if projection.baseline is not None:
            per_debt_savings[projection.debt_id] = compare_to_baseline(projection.baseline, plan)

    if math.isinf(longest_months):
        logger.info("Portfolio contains a plan that never pays off")
        total_interest = INFINITE_AMOUNT

    return PortfolioSummary(
        total_balance=total_balance,
        balance_by_currency=balance_by_currency,
        total_interest=total_interest,
        interest_by_currency=interest_by_currency,
        longest_months=longest_months,
        per_debt_savings=per_debt_savings,
        total_monthly_payment=total_monthly_payment,
        projections=projections,
    )


def project_portfolio(
    debts: Iterable[Debt],
    payments: Optional[Mapping[str, Number]] = None,
    max_months: int = DEFAULT_MAX_MONTHS,
) -> PortfolioSummary:
    """Project every debt and aggregate the results.

    ``payments`` maps debt keys to chosen monthly payments; debts without an
    entry use their declared payment.
    """
    payments = payments or {}
    projections = [
        project_debt(debt, payments.get(debt.key), max_months=max_months) for debt in debts
    ]
    return aggregate(projections)
