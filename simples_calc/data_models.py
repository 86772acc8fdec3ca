"""Data models for the Simples Nacional simulator.

This module defines the entities the engine works with: the annex a month is
taxed under, the static bracket rows of each annex, the monthly ledger entries
and the actions that mutate a ledger. Entries are frozen dataclasses so a
ledger (a tuple of entries) can be passed around as a plain value; the engine
builds enriched copies instead of mutating them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple, Union

ZERO = Decimal("0")


class Annex(str, Enum):
    """Simples Nacional annex a month of revenue is taxed under."""

    ANNEX_I = "I"  # commerce
    ANNEX_II = "II"  # industry

    @property
    def label(self) -> str:
        return f"Anexo {self.value}"

    @classmethod
    def parse(cls, value: Union[str, "Annex"]) -> "Annex":
        """Accept ``"I"``, ``"Anexo I"`` or an ``Annex`` member (case-insensitive)."""
        if isinstance(value, Annex):
            return value
        text = str(value).strip().upper()
        if text.startswith("ANEXO"):
            text = text[len("ANEXO"):].strip()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown annex: {value}")


@dataclass(frozen=True)
class BracketRow:
    """One revenue bracket of an annex table.

    Attributes
    ----------
    threshold_from: Decimal
        Trailing 12-month revenue from which the bracket applies.
    nominal_rate: Decimal
        Nominal rate as a fraction (``Decimal("0.073")`` is 7.3 %).
    deduction: Decimal
        Amount deducted before dividing by the trailing revenue.
    icms_share: Decimal
        Fraction of the tax that corresponds to ICMS. Revenue already under
        tax substitution does not pay this share again.
    """

    threshold_from: Decimal
    nominal_rate: Decimal
    deduction: Decimal
    icms_share: Decimal


@dataclass(frozen=True)
class MonthEntry:
    """A month of revenue in the ledger.

    Only ``id``, ``month_year``, the two revenue fields and ``annex`` are
    user input. Every other field is derived by
    :func:`simples_calc.engine.compute_ledger` and is zero on entries that
    have not been through it.
    """

    id: str
    month_year: str  # MM/YYYY
    revenue_without_st: Decimal
    revenue_with_st: Decimal
    annex: Annex

    total_revenue: Decimal = ZERO
    trailing_12m_revenue: Decimal = ZERO
    trailing_12m_average: Decimal = ZERO
    available_monthly: Decimal = ZERO
    available_annual: Decimal = ZERO
    effective_rate: Decimal = ZERO
    icms_share: Decimal = ZERO
    final_rate: Decimal = ZERO
    tax_without_st: Decimal = ZERO
    tax_with_st: Decimal = ZERO
    total_tax: Decimal = ZERO


Ledger = Tuple[MonthEntry, ...]


@dataclass
class SimulationSummary:
    """Aggregate metrics over a computed ledger. Never stored."""

    entry_count: int
    latest_trailing_revenue: Decimal
    latest_trailing_average: Decimal
    total_tax: Decimal
    total_revenue: Decimal
    total_revenue_without_st: Decimal
    total_revenue_with_st: Decimal
    average_monthly_revenue: Decimal
    blended_rate: Decimal
    latest_available_monthly: Decimal
    latest_available_annual: Decimal
    alerts: Tuple[str, ...] = field(default_factory=tuple)


# Ledger actions consumed by ``engine.reduce_ledger``. Revenue values are kept
# as given (Decimal or str) and validated by the reducer.


@dataclass(frozen=True)
class AddMonth:
    month_year: str
    revenue_without_st: Union[Decimal, str] = ZERO
    revenue_with_st: Union[Decimal, str] = ZERO
    annex: Union[Annex, str] = Annex.ANNEX_I
    entry_id: Optional[str] = None  # generated when omitted


@dataclass(frozen=True)
class UpdateMonth:
    entry_id: str
    month_year: str
    revenue_without_st: Union[Decimal, str] = ZERO
    revenue_with_st: Union[Decimal, str] = ZERO
    annex: Union[Annex, str] = Annex.ANNEX_I


@dataclass(frozen=True)
class RemoveMonth:
    entry_id: str


@dataclass(frozen=True)
class ClearLedger:
    pass


LedgerAction = Union[AddMonth, UpdateMonth, RemoveMonth, ClearLedger]
