"""Utility functions for the payoff calculator.

This module provides helpers for parsing user input into Python data types
(amounts, rates and ``MONTH:AMOUNT`` pairs) and for turning a payoff month
count into a calendar month. Parsing helpers raise ``ValueError`` so each
front end can report the problem in its own way.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Tuple


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        return date(int(parts[0]), int(parts[1]), 1)
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def payoff_month(start: date, months: int) -> str:
    """Return the ``YYYY-MM`` of the last payment when month 1 is ``start``."""
    return add_months(start, months - 1).strftime("%Y-%m")


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    Commas are stripped; ``k``/``m`` suffixes multiply by a thousand or a
    million, so ``"1.5k"`` is ``1500``.
    """
    cleaned = str(value).strip().lower().replace(",", "")
    factor = Decimal(1)
    if cleaned.endswith("k"):
        factor = Decimal(1_000)
        cleaned = cleaned[:-1]
    elif cleaned.endswith("m"):
        factor = Decimal(1_000_000)
        cleaned = cleaned[:-1]
    try:
        result = Decimal(cleaned) * factor
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def rate_from_str(value: str) -> Decimal:
    """Parse an annual rate given as ``"24"``, ``"24%"`` or ``"0.24"``.

    A trailing ``%`` always means a percentage; otherwise values of 1 or more
    are taken as percentages. The result is a fraction.
    """
    cleaned = str(value).strip()
    if cleaned.endswith("%"):
        return decimal_from_str(cleaned[:-1]) / Decimal(100)
    rate = decimal_from_str(cleaned)
    if rate >= 1:
        rate = rate / Decimal(100)
    return rate


def parse_month_amount(item: str) -> Tuple[int, Decimal]:
    """Parse a ``MONTH:AMOUNT`` pair such as ``"3:500"``."""
    parts = item.split(":")
    if len(parts) != 2:
        raise ValueError(f"Expected MONTH:AMOUNT; got {item}")
    month_str, amount_str = parts
    try:
        month = int(month_str)
    except ValueError as exc:
        raise ValueError(f"Invalid month number: {month_str}") from exc
    if month < 1:
        raise ValueError(f"Month numbers start at 1; got {month}")
    return month, decimal_from_str(amount_str)


def parse_month_amounts(items: Iterable[str]) -> Dict[int, Decimal]:
    """Parse several ``MONTH:AMOUNT`` pairs; repeated months are summed."""
    mapping: Dict[int, Decimal] = {}
    for item in items:
        month, amount = parse_month_amount(item)
        mapping[month] = mapping.get(month, Decimal("0")) + amount
    return mapping
