"""Simples Nacional bracket tables and bracket lookup.

Tables are ordered by ascending ``threshold_from``. The lookup does not assume
a fixed number of rows, so custom tables (e.g. in tests) work the same way.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Mapping, Sequence

from .data_models import Annex, BracketRow

MONTHLY_CAP = Decimal("300000")
ANNUAL_CAP = Decimal("3600000")

# Headroom below which the simulator warns the user
MONTHLY_ALERT_THRESHOLD = Decimal("50000")
ANNUAL_ALERT_THRESHOLD = Decimal("360000")


def _row(threshold: str, rate: str, deduction: str, icms: str) -> BracketRow:
    return BracketRow(
        threshold_from=Decimal(threshold),
        nominal_rate=Decimal(rate),
        deduction=Decimal(deduction),
        icms_share=Decimal(icms),
    )


ANNEX_TABLES: Dict[Annex, Sequence[BracketRow]] = {
    # Anexo I - commerce
    Annex.ANNEX_I: (
        _row("0", "0.04", "0", "0.34"),
        _row("180000", "0.073", "5940", "0.34"),
        _row("360000", "0.095", "13830", "0.335"),
        _row("720000", "0.107", "22500", "0.335"),
        _row("1800000", "0.143", "87300", "0.335"),
    ),
    # Anexo II - industry
    Annex.ANNEX_II: (
        _row("0", "0.045", "0", "0.34"),
        _row("180000", "0.078", "5940", "0.34"),
        _row("360000", "0.10", "13830", "0.335"),
        _row("720000", "0.112", "22500", "0.335"),
        _row("1800000", "0.147", "85500", "0.335"),
    ),
}


def find_bracket(revenue: Decimal, table: Sequence[BracketRow]) -> BracketRow:
    """Return the row of ``table`` that applies to ``revenue``.

    The table is scanned from the highest threshold down and the first row
    whose ``threshold_from`` is not above ``revenue`` wins. Revenue below the
    lowest threshold falls back to the first row.
    """
    if not table:
        raise ValueError("Bracket table is empty")
    for row in reversed(table):
        if row.threshold_from <= revenue:
            return row
    return table[0]


def resolve_bracket(
    revenue: Decimal,
    annex: Annex,
    tables: Mapping[Annex, Sequence[BracketRow]] = ANNEX_TABLES,
) -> BracketRow:
    """Return the bracket of ``annex`` for a trailing 12-month revenue."""
    return find_bracket(revenue, tables[Annex.parse(annex)])
