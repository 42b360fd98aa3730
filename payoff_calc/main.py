"""Command‑line interface for the payoff calculator.

This module uses the ``click`` library to implement a multi‑command interface.
Users can project a debt under a fixed or variable payment, look at the
minimum-payment baseline, get payment suggestions or project a whole
portfolio read from a JSON file. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import click

from .data_models import (
    Debt,
    MinimumPaymentPolicy,
    Savings,
    TimelineResult,
    VariablePlan,
)
from .engine import (
    DEFAULT_MAX_MONTHS,
    InvalidSimulationInput,
    compare_to_baseline,
    monthly_interest,
    payment_for_3_year_payoff,
    payment_for_target_months,
    simulate_fixed,
    simulate_minimum_payment,
    simulate_variable,
)
from .formatter import (
    format_currency,
    format_months_to_years,
    print_comparison,
    print_portfolio,
    print_schedule,
    print_summary,
)
from .logging_config import get_logger, setup_logging
from .portfolio import project_portfolio
from .utils import (
    decimal_from_str,
    parse_month_amount,
    parse_month_amounts,
    parse_year_month,
    payoff_month,
    rate_from_str,
)

logger = get_logger("cli")

MAX_PRINTED_ROWS = 120


def parse_amount(value: str) -> Decimal:
    try:
        return decimal_from_str(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_rate(value: str) -> Decimal:
    try:
        return rate_from_str(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_purchases(values: Tuple[str, ...]) -> Dict[int, Decimal]:
    try:
        return parse_month_amounts(values)
    except ValueError as exc:
        raise click.BadParameter(f"Purchase must be in MONTH:AMOUNT format; {exc}")


def parse_overrides(values: Tuple[str, ...]) -> Dict[int, Decimal]:
    overrides: Dict[int, Decimal] = {}
    for item in values:
        try:
            month, amount = parse_month_amount(item)
        except ValueError as exc:
            raise click.BadParameter(f"Override must be in MONTH:AMOUNT format; {exc}")
        overrides[month] = amount
    return overrides


def build_policy(
    min_payment: Optional[str],
    min_percent: Optional[str],
    min_floor: Optional[str],
) -> Optional[MinimumPaymentPolicy]:
    """Build a minimum payment policy from CLI options (or ``None``)."""
    if min_payment and min_percent:
        raise click.BadParameter("Use either --min-payment or --min-percent, not both")
    if min_payment:
        return MinimumPaymentPolicy.flat(parse_amount(min_payment))
    if min_percent:
        percent = parse_amount(min_percent.rstrip("%"))
        floor = parse_amount(min_floor) if min_floor else Decimal("25")
        return MinimumPaymentPolicy.percentage(percent, floor)
    return None


def policy_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[MinimumPaymentPolicy]:
    if not data:
        return None
    kind = str(data.get("type", "flat")).lower()
    if kind == "flat":
        return MinimumPaymentPolicy.flat(decimal_from_str(str(data["value"])))
    if kind == "percentage":
        return MinimumPaymentPolicy.percentage(
            decimal_from_str(str(data["value"])),
            decimal_from_str(str(data.get("floor", 25))),
        )
    raise ValueError(f"Unknown minimum payment type: {kind}")


def debt_from_dict(data: Mapping[str, Any]) -> Debt:
    """Build a ``Debt`` from a plain mapping (as found in portfolio JSON files)."""
    try:
        limit = data.get("credit_limit")
        return Debt(
            name=str(data.get("name", "")),
            balance=decimal_from_str(str(data["balance"])),
            annual_rate=rate_from_str(str(data["annual_rate"])),
            declared_monthly_payment=decimal_from_str(str(data.get("declared_monthly_payment", 0))),
            currency=str(data.get("currency", "USD")).upper(),
            minimum_payment_policy=policy_from_dict(data.get("minimum_payment")),
            kind=str(data.get("kind", "card")),
            credit_limit=decimal_from_str(str(limit)) if limit is not None else None,
            debt_id=str(data["id"]) if data.get("id") is not None else None,
        )
    except KeyError as exc:
        raise ValueError(f"Debt entry is missing {exc.args[0]!r}") from exc


def load_portfolio(path: Path) -> Tuple[List[Debt], Dict[str, Decimal]]:
    """Read debts and chosen payments from a JSON file.

    The file holds ``{"debts": [...]}``; an entry may carry a ``payment`` key
    with the monthly amount to simulate instead of its declared payment.
    """
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    debts: List[Debt] = []
    payments: Dict[str, Decimal] = {}
    for entry in data.get("debts", []):
        debt = debt_from_dict(entry)
        debts.append(debt)
        if entry.get("payment") is not None:
            payments[debt.key] = decimal_from_str(str(entry["payment"]))
    return debts, payments


def _json_number(value) -> Optional[float]:
    """Return a JSON-safe number; unbounded values become ``None``."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else None
    if value == float("inf"):
        return None
    return value


def result_to_dict(result: TimelineResult, savings: Optional[Savings] = None) -> Dict[str, Any]:
    """Convert a result into JSON-serialisable data."""
    data: Dict[str, Any] = {
        "months": _json_number(result.months),
        "total_interest": _json_number(result.total_interest),
        "starting_balance": float(result.starting_balance),
        "converged": result.converged,
        "breakdown": [
            {
                "month": row.month,
                "purchase": float(row.purchase),
                "payment": float(row.payment),
                "interest": float(row.interest),
                "principal": float(row.principal),
                "balance": float(row.balance),
            }
            for row in result.breakdown
        ],
    }
    if savings is not None:
        data["savings"] = {
            "interest_saved": _json_number(savings.interest_saved),
            "months_saved": _json_number(savings.months_saved),
        }
    return data


def export_to_json(path: Path, result: TimelineResult, savings: Optional[Savings] = None) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(result_to_dict(result, savings), f, indent=2)


def export_to_csv(path: Path, result: TimelineResult) -> None:
    header = ["Month", "Purchase", "Payment", "Interest", "Principal", "Balance"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in result.breakdown:
            writer.writerow(
                [
                    row.month,
                    float(row.purchase),
                    float(row.payment),
                    float(row.interest),
                    float(row.principal),
                    float(row.balance),
                ]
            )


def _report(
    result: TimelineResult,
    currency: str,
    output: Optional[str],
    baseline: Optional[TimelineResult] = None,
    start_date: Optional[str] = None,
    title: str = "Summary",
) -> None:
    savings = compare_to_baseline(baseline, result) if baseline is not None else None
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, result, savings)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, result)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    last_month = None
    if start_date and result.converged and result.months > 0:
        try:
            last_month = payoff_month(parse_year_month(start_date), int(result.months))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    print_summary(result, currency, savings=savings, payoff_month=last_month, title=title)
    if baseline is not None:
        print_comparison({"Minimum only": baseline, "This plan": result}, currency)
    rows = result.breakdown
    if len(rows) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        rows = rows[:MAX_PRINTED_ROWS]
    if rows:
        print_schedule(rows, currency)


def _baseline(balance: Decimal, rate: Decimal, policy: Optional[MinimumPaymentPolicy],
              max_months: int) -> Optional[TimelineResult]:
    if policy is None:
        return None
    return simulate_minimum_payment(balance, rate, policy, max_months=max_months)


def _debt_options(func):
    """Attach the options every single-debt command shares."""
    options = [
        click.option("--balance", "-b", "balance", required=True, help="Current balance"),
        click.option("--rate", "-r", "rate", required=True, help="APR, e.g. 24, 24% or 0.24"),
        click.option("--currency", "-c", "currency", default="USD", show_default=True,
                     help="ISO-4217 currency code used for display"),
        click.option("--max-months", "max_months", type=int, default=DEFAULT_MAX_MONTHS,
                     show_default=True, help="Simulation horizon in months"),
        click.option("--start-date", "-s", "start_date", help="Month of the first payment (YYYY-MM)"),
        click.option("--output", "output", type=str, help="Output file path (.json or .csv)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _policy_options(func):
    options = [
        click.option("--min-payment", "min_payment", help="Flat minimum payment for the baseline"),
        click.option("--min-percent", "min_percent", help="Minimum payment as a percent of balance"),
        click.option("--min-floor", "min_floor", help="Lowest percentage-based minimum (default 25)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log simulation details")
@click.option("--log-json", "log_json", is_flag=True, help="Emit log lines as JSON")
def cli(verbose: bool, log_json: bool) -> None:
    """A command‑line debt payoff calculator."""
    setup_logging("DEBUG" if verbose else "WARNING", json_output=log_json)


@cli.command()
@_debt_options
@_policy_options
@click.option("--payment", "-p", "payment", required=True, help="Monthly payment")
@click.option("--purchase", "purchase", multiple=True, help="Future purchase in MONTH:AMOUNT format")
def fixed(
    balance: str,
    rate: str,
    currency: str,
    max_months: int,
    start_date: Optional[str],
    output: Optional[str],
    min_payment: Optional[str],
    min_percent: Optional[str],
    min_floor: Optional[str],
    payment: str,
    purchase: Tuple[str, ...],
) -> None:
    """Project a debt paid with the same amount every month."""
    balance_value = parse_amount(balance)
    rate_value = parse_rate(rate)
    payment_value = parse_amount(payment)
    purchases = parse_purchases(purchase)
    policy = build_policy(min_payment, min_percent, min_floor)
    try:
        result = simulate_fixed(balance_value, rate_value, payment_value,
                                max_months=max_months, purchases=purchases)
        baseline = _baseline(balance_value, rate_value, policy, max_months)
    except InvalidSimulationInput as exc:
        raise click.ClickException(str(exc))
    _report(result, currency, output, baseline=baseline, start_date=start_date)


@cli.command()
@_debt_options
@_policy_options
@click.option("--default", "default_amount", required=True,
              help="Payment for every month without an override")
@click.option("--override", "override", multiple=True, help="Payment for one month in MONTH:AMOUNT format")
@click.option("--purchase", "purchase", multiple=True, help="Future purchase in MONTH:AMOUNT format")
def variable(
    balance: str,
    rate: str,
    currency: str,
    max_months: int,
    start_date: Optional[str],
    output: Optional[str],
    min_payment: Optional[str],
    min_percent: Optional[str],
    min_floor: Optional[str],
    default_amount: str,
    override: Tuple[str, ...],
    purchase: Tuple[str, ...],
) -> None:
    """Project a debt whose payment changes from month to month."""
    balance_value = parse_amount(balance)
    rate_value = parse_rate(rate)
    plan = VariablePlan(overrides=parse_overrides(override), default_amount=parse_amount(default_amount))
    purchases = parse_purchases(purchase)
    policy = build_policy(min_payment, min_percent, min_floor)
    try:
        result = simulate_variable(balance_value, rate_value, plan,
                                   max_months=max_months, purchases=purchases)
        baseline = _baseline(balance_value, rate_value, policy, max_months)
    except InvalidSimulationInput as exc:
        raise click.ClickException(str(exc))
    _report(result, currency, output, baseline=baseline, start_date=start_date)


@cli.command()
@_debt_options
@_policy_options
def minimum(
    balance: str,
    rate: str,
    currency: str,
    max_months: int,
    start_date: Optional[str],
    output: Optional[str],
    min_payment: Optional[str],
    min_percent: Optional[str],
    min_floor: Optional[str],
) -> None:
    """Project a debt paid only at its minimum payment."""
    policy = build_policy(min_payment, min_percent, min_floor)
    if policy is None:
        raise click.BadParameter("Give --min-payment or --min-percent")
    try:
        result = simulate_minimum_payment(parse_amount(balance), parse_rate(rate), policy,
                                          max_months=max_months)
    except InvalidSimulationInput as exc:
        raise click.ClickException(str(exc))
    _report(result, currency, output, start_date=start_date, title="Minimum payment only")


@cli.command()
@click.option("--balance", "-b", "balance", required=True, help="Current balance")
@click.option("--rate", "-r", "rate", required=True, help="APR, e.g. 24, 24% or 0.24")
@click.option("--currency", "-c", "currency", default="USD", show_default=True)
@click.option("--target-months", "target_months", type=int, help="Pay off within this many months")
def suggest(balance: str, rate: str, currency: str, target_months: Optional[int]) -> None:
    """Suggest monthly payments for a balance."""
    balance_value = parse_amount(balance)
    rate_value = parse_rate(rate)
    try:
        three_year = payment_for_3_year_payoff(balance_value, rate_value)
        click.echo(f"Monthly interest   : {format_currency(monthly_interest(balance_value, rate_value), currency)}")
        click.echo(f"Pay off in 3 years : {format_currency(three_year, currency)}")
        if target_months:
            needed = payment_for_target_months(balance_value, rate_value, target_months)
            click.echo(
                f"Pay off in {format_months_to_years(target_months)}: {format_currency(needed, currency)}"
            )
    except InvalidSimulationInput as exc:
        raise click.ClickException(str(exc))


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--max-months", "max_months", type=int, default=DEFAULT_MAX_MONTHS, show_default=True)
def portfolio(path: Path, max_months: int) -> None:
    """Project every debt listed in a JSON file and show combined totals."""
    try:
        debts, payments = load_portfolio(path)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if not debts:
        click.echo("No debts found.")
        return
    logger.debug("Loaded %d debts from %s", len(debts), path)
    try:
        summary = project_portfolio(debts, payments, max_months=max_months)
    except InvalidSimulationInput as exc:
        raise click.ClickException(str(exc))
    print_portfolio(summary)


if __name__ == "__main__":
    cli()
