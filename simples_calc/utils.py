"""Utility functions for the Simples Nacional simulator.

This module provides helpers for parsing user input into Python data types:
``MM/YYYY`` competence strings, decimal amounts written either in plain or in
Brazilian notation, and opaque entry identifiers.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from typing import Union
from uuid import uuid4

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

MONTH_YEAR_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(\d{4})$")
THOUSANDS_PATTERN = re.compile(r"^\d{1,3}(\.\d{3})+$")


def is_month_year(value: str) -> bool:
    """Return True when ``value`` is a ``MM/YYYY`` string with a valid month."""
    return bool(MONTH_YEAR_PATTERN.match(value or ""))


def parse_month_year(value: str) -> date:
    """Parse a MM/YYYY string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid month/year.
    """
    match = MONTH_YEAR_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid month/year (expected MM/YYYY): {value}")
    return date(int(match.group(2)), int(match.group(1)), 1)


def decimal_from_str(value: Union[str, Decimal, int, float]) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    Strings containing a comma, or made only of dot-separated groups of three
    digits (``150.000``), are read in Brazilian notation (``1.234,56``: dots
    group thousands, the comma marks decimals). Anything else is read as a
    plain number with optional ``_`` separators. Empty strings are zero.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    cleaned = value.strip().replace(" ", "").replace("_", "")
    if cleaned.upper().startswith("R$"):
        cleaned = cleaned[2:]
    if not cleaned:
        return Decimal("0")
    if "," in cleaned or THOUSANDS_PATTERN.match(cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        result = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def parse_amount(value: Union[str, Decimal]) -> Decimal:
    """Parse an amount with optional ``k``/``m`` suffixes.

    Accepts plain numbers ("150000"), Brazilian notation ("150.000,00") and
    shorthand ("150k" meaning 150_000, "1.2m" meaning 1_200_000).
    """
    if isinstance(value, Decimal):
        return value
    text = value.strip().lower()
    factor = Decimal("1")
    if text.endswith("k"):
        factor = Decimal("1000")
        text = text[:-1]
    elif text.endswith("m"):
        factor = Decimal("1000000")
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ArithmeticError as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc


def new_entry_id() -> str:
    return uuid4().hex
