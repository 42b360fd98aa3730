"""Output helpers for the payoff calculator.

This module turns engine results into text: currency amounts, payoff
durations and credit utilization tiers used by both front ends, plus simple
console tables for the command line. Currency formatting relies on a fixed
table of known ISO-4217 codes rather than the process locale, so the same
input always renders the same way; unknown codes fall back to a
``$``-prefixed two-decimal format.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, Mapping, NamedTuple, Optional, Union

from .data_models import MonthRow, Number, PortfolioSummary, Savings, TimelineResult, to_decimal

NEVER_LABEL = "Never"
UNBOUNDED_AMOUNT_LABEL = "Unbounded"


class CurrencyStyle(NamedTuple):
    prefix: str
    suffix: str
    decimals: int


# Display conventions follow en-US formatting of each code.
KNOWN_CURRENCIES: Dict[str, CurrencyStyle] = {
    "USD": CurrencyStyle("$", "", 2),
    "EUR": CurrencyStyle("€", "", 2),
    "GBP": CurrencyStyle("£", "", 2),
    "JPY": CurrencyStyle("¥", "", 0),
    "KRW": CurrencyStyle("₩", "", 0),
    "CAD": CurrencyStyle("CA$", "", 2),
    "AUD": CurrencyStyle("A$", "", 2),
    "NZD": CurrencyStyle("NZ$", "", 2),
    "MXN": CurrencyStyle("MX$", "", 2),
    "BRL": CurrencyStyle("R$", "", 2),
    "CNY": CurrencyStyle("CN¥", "", 2),
    "HKD": CurrencyStyle("HK$", "", 2),
    "INR": CurrencyStyle("₹", "", 2),
    "ILS": CurrencyStyle("₪", "", 2),
    "CHF": CurrencyStyle("CHF ", "", 2),
    "PLN": CurrencyStyle("PLN ", "", 2),
    "SEK": CurrencyStyle("SEK ", "", 2),
    "NOK": CurrencyStyle("NOK ", "", 2),
    "DKK": CurrencyStyle("DKK ", "", 2),
    "CZK": CurrencyStyle("CZK ", "", 2),
    "ZAR": CurrencyStyle("ZAR ", "", 2),
    "SGD": CurrencyStyle("SGD ", "", 2),
}
FALLBACK_CURRENCY = CurrencyStyle("$", "", 2)


def currency_style(currency_code: Optional[str]) -> CurrencyStyle:
    """Return the display style for ``currency_code`` or the generic fallback."""
    code = (currency_code or "").strip().upper()
    return KNOWN_CURRENCIES.get(code, FALLBACK_CURRENCY)


def format_currency(amount: Optional[Number], currency_code: Optional[str] = "USD") -> str:
    """Format ``amount`` for display in the given currency.

    ``None`` renders as zero and an infinite amount renders the unbounded
    label. Codes missing from ``KNOWN_CURRENCIES`` are not an error.
    """
    value = to_decimal(amount if amount is not None else 0)
    if value.is_infinite():
        return UNBOUNDED_AMOUNT_LABEL
    style = currency_style(currency_code)
    exponent = Decimal(1).scaleb(-style.decimals)
    value = value.quantize(exponent, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{style.prefix}{abs(value):,.{style.decimals}f}{style.suffix}"


def format_months_to_years(months: Union[int, float, None]) -> str:
    """Render a payoff duration such as ``"1 yr 2 mo"``.

    An infinite duration (a plan that never pays off) renders ``"Never"``.
    """
    if months is None or math.isinf(months):
        return NEVER_LABEL
    months = int(months)
    years, remainder = divmod(months, 12)
    if years == 0:
        return f"{remainder} mo"
    year_part = f"{years} yr" if years == 1 else f"{years} yrs"
    if remainder == 0:
        return year_part
    return f"{year_part} {remainder} mo"


def format_percent(value: Optional[Number]) -> str:
    value = to_decimal(value if value is not None else 0)
    return f"{value.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}%"


def calculate_utilization(balance: Number, limit: Optional[Number]) -> int:
    """Return the credit utilization as a whole percentage."""
    if not limit or to_decimal(limit) == 0:
        return 0
    ratio = to_decimal(balance) / to_decimal(limit) * 100
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class UtilizationTier(Enum):
    HEALTHY = "healthy"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    SEVERE = "severe"


# Upper bounds are inclusive, so a tie goes to the lower tier.
_TIER_THRESHOLDS = (
    (30, UtilizationTier.HEALTHY),
    (50, UtilizationTier.MODERATE),
    (75, UtilizationTier.ELEVATED),
)

_TEXT_CLASSES = {
    UtilizationTier.HEALTHY: "text-emerald-600",
    UtilizationTier.MODERATE: "text-yellow-600",
    UtilizationTier.ELEVATED: "text-orange-600",
    UtilizationTier.SEVERE: "text-red-600",
}

_BACKGROUND_CLASSES = {
    UtilizationTier.HEALTHY: "bg-emerald-500",
    UtilizationTier.MODERATE: "bg-yellow-500",
    UtilizationTier.ELEVATED: "bg-orange-500",
    UtilizationTier.SEVERE: "bg-red-500",
}


def utilization_tier(utilization_percent: Number) -> UtilizationTier:
    value = to_decimal(utilization_percent)
    for upper_bound, tier in _TIER_THRESHOLDS:
        if value <= upper_bound:
            return tier
    return UtilizationTier.SEVERE


def utilization_color_tier(utilization_percent: Number) -> str:
    """Text colour class for a utilization percentage."""
    return _TEXT_CLASSES[utilization_tier(utilization_percent)]


def utilization_background_tier(utilization_percent: Number) -> str:
    """Background colour class for a utilization percentage."""
    return _BACKGROUND_CLASSES[utilization_tier(utilization_percent)]


def print_summary(
    result: TimelineResult,
    currency: str = "USD",
    savings: Optional[Savings] = None,
    payoff_month: Optional[str] = None,
    title: str = "Summary",
) -> None:
    """Print the headline figures of a simulation in a human-readable format."""
    print(title)
    print("-" * 72)
    print(f"Starting balance   : {format_currency(result.starting_balance, currency)}")
    print(f"Payoff time        : {format_months_to_years(result.months)}")
    print(f"Total interest     : {format_currency(result.total_interest, currency)}")
    print(f"Total paid         : {format_currency(result.total_paid, currency)}")
    if payoff_month and result.converged:
        print(f"Payoff month       : {payoff_month}")
    if not result.converged:
        print("Payment too low: the balance is never paid off.")
    if savings is not None and savings.interest_saved is not None:
        print(f"Interest saved     : {format_currency(savings.interest_saved, currency)}")
        print(f"Time saved         : {format_months_to_years(savings.months_saved)}")
    print("-" * 72)


def print_schedule(schedule: Iterable[MonthRow], currency: str = "USD") -> None:
    """Print the monthly breakdown as a simple table."""
    headers = ["Month", "Purchase", "Payment", "Interest", "Principal", "Balance"]
    print("\t".join(headers))
    for row in schedule:
        print(
            "\t".join(
                [
                    str(row.month),
                    format_currency(row.purchase, currency),
                    format_currency(row.payment, currency),
                    format_currency(row.interest, currency),
                    format_currency(row.principal, currency),
                    format_currency(row.balance, currency),
                ]
            )
        )


def print_comparison(results: Mapping[str, TimelineResult], currency: str = "USD") -> None:
    """Print several named results side by side.

    The first entry is treated as the reference; the last column shows how
    each scenario differs from it.
    """
    print("Comparison")
    print("=" * 72)
    print(f"{'Scenario':20s} {'Payoff':>12s} {'Interest':>18s} {'Saved':>18s}")
    reference: Optional[TimelineResult] = None
    for name, result in results.items():
        if reference is None:
            reference = result
            saved = ""
        elif result.converged and reference.converged:
            saved = format_currency(reference.total_interest - result.total_interest, currency)
        else:
            saved = "n/a"
        print(
            f"{name[:20]:20s} {format_months_to_years(result.months):>12s} "
            f"{format_currency(result.total_interest, currency):>18s} {saved:>18s}"
        )
    print("=" * 72)


def print_portfolio(summary: PortfolioSummary) -> None:
    """Print per-debt lines and per-currency totals for a portfolio."""
    print("Portfolio")
    print("=" * 72)
    for projection in summary.projections:
        plan = projection.plan
        line = (
            f"{(projection.name or projection.debt_id)[:20]:20s} "
            f"{format_currency(plan.starting_balance, projection.currency):>14s} "
            f"{format_months_to_years(plan.months):>12s} "
            f"{format_currency(plan.total_interest, projection.currency):>14s}"
        )
        savings = summary.per_debt_savings.get(projection.debt_id)
        if savings is not None and savings.interest_saved is not None:
            line += f"  saves {format_currency(savings.interest_saved, projection.currency)}"
        print(line)
    print("-" * 72)
    for currency in summary.currencies:
        print(
            f"{currency:4s} balance {format_currency(summary.balance_by_currency[currency], currency)}"
            f", interest {format_currency(summary.interest_by_currency[currency], currency)}"
        )
    print(f"Debt free in       : {format_months_to_years(summary.longest_months)}")
    print("=" * 72)
