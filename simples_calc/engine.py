"""Core calculation engine for the Simples Nacional simulator.

The ledger is an ordered tuple of :class:`MonthEntry` values. Mutations go
through :func:`reduce_ledger`, a pure function returning a new ledger, and
every derived field of every entry is rebuilt from scratch by
:func:`compute_ledger` whenever the ledger is read. There is no incremental
update: the rolling window is positional (the last 12 *entries*, not the last
12 calendar months), so removing or editing any entry can change every entry
after it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import List, Sequence, Tuple

from .brackets import (
    ANNUAL_ALERT_THRESHOLD,
    ANNUAL_CAP,
    MONTHLY_ALERT_THRESHOLD,
    MONTHLY_CAP,
    resolve_bracket,
)
from .data_models import (
    ZERO,
    AddMonth,
    Annex,
    ClearLedger,
    Ledger,
    LedgerAction,
    MonthEntry,
    RemoveMonth,
    SimulationSummary,
    UpdateMonth,
)
from .utils import is_month_year, new_entry_id, parse_amount

logger = logging.getLogger(__name__)

WINDOW_SIZE = 12
# Revenue must stay below 10^15 so every derived value fits the decimal context
MAX_REVENUE = Decimal("1e15")


class LedgerValidationError(ValueError):
    """Raised when a ledger action carries invalid input.

    The ledger passed to the reducer is left untouched.
    """


def trailing_window(totals: Sequence[Decimal], index: int) -> Tuple[Decimal, Decimal]:
    """Return the trailing sum and average of ``totals`` ending at ``index``.

    The window covers positions ``max(0, index - 11)`` to ``index`` inclusive.
    The average divides by the number of positions actually in the window, so
    the first months of a ledger average over fewer than 12 values.
    """
    if index < 0 or index >= len(totals):
        raise IndexError(f"Ledger position out of range: {index}")
    start = max(0, index - WINDOW_SIZE + 1)
    window = totals[start : index + 1]
    total = sum(window, ZERO)
    return total, total / Decimal(len(window))


def effective_rate(trailing_revenue: Decimal, annex: Annex) -> Decimal:
    """Return the effective rate for a trailing 12-month revenue.

    The formula is:

        rate = (RBT12 * nominal - deduction) / RBT12

    where ``RBT12`` is the trailing revenue and the nominal rate and deduction
    come from the matching bracket. Zero revenue yields a zero rate.
    """
    if trailing_revenue == 0:
        return ZERO
    bracket = resolve_bracket(trailing_revenue, annex)
    return (trailing_revenue * bracket.nominal_rate - bracket.deduction) / trailing_revenue


def _compute_entry(entry: MonthEntry, trailing_revenue: Decimal, trailing_average: Decimal) -> MonthEntry:
    bracket = resolve_bracket(trailing_revenue, entry.annex)
    rate = effective_rate(trailing_revenue, entry.annex)
    # Revenue under tax substitution already had its ICMS collected upstream
    tax_without_st = entry.revenue_without_st * rate
    tax_with_st = entry.revenue_with_st * rate * (1 - bracket.icms_share)
    return replace(
        entry,
        total_revenue=entry.revenue_without_st + entry.revenue_with_st,
        trailing_12m_revenue=trailing_revenue,
        trailing_12m_average=trailing_average,
        available_monthly=MONTHLY_CAP - trailing_average,
        available_annual=ANNUAL_CAP - trailing_revenue,
        effective_rate=rate,
        icms_share=bracket.icms_share,
        final_rate=rate * (1 - bracket.icms_share),
        tax_without_st=tax_without_st,
        tax_with_st=tax_with_st,
        total_tax=tax_without_st + tax_with_st,
    )


def compute_ledger(ledger: Sequence[MonthEntry]) -> Ledger:
    """Return a copy of ``ledger`` with every derived field recomputed.

    Derived values already present on the entries are ignored.
    """
    totals = [e.revenue_without_st + e.revenue_with_st for e in ledger]
    computed: List[MonthEntry] = []
    for index, entry in enumerate(ledger):
        trailing_revenue, trailing_average = trailing_window(totals, index)
        computed.append(_compute_entry(entry, trailing_revenue, trailing_average))
    logger.debug("Recomputed ledger with %d entries", len(computed))
    return tuple(computed)


def _to_amount(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, str):
        return parse_amount(value)
    return Decimal(value)


def _validated_inputs(month_year: str, revenue_without_st, revenue_with_st, annex) -> Tuple[str, Decimal, Decimal, Annex]:
    month_year = (month_year or "").strip()
    if not is_month_year(month_year):
        raise LedgerValidationError(f"Invalid month/year '{month_year}'; expected MM/YYYY")
    try:
        without_st = _to_amount(revenue_without_st)
        with_st = _to_amount(revenue_with_st)
    except ValueError as exc:
        raise LedgerValidationError(str(exc)) from exc
    if not (without_st.is_finite() and with_st.is_finite()):
        raise LedgerValidationError("Revenue values must be finite numbers")
    if without_st < 0 or with_st < 0:
        raise LedgerValidationError("Revenue values must not be negative")
    if without_st >= MAX_REVENUE or with_st >= MAX_REVENUE:
        raise LedgerValidationError(f"Revenue values must be below {MAX_REVENUE:,.0f}")
    try:
        parsed_annex = Annex.parse(annex)
    except ValueError as exc:
        raise LedgerValidationError(str(exc)) from exc
    return month_year, without_st, with_st, parsed_annex


def _find_index(ledger: Ledger, entry_id: str) -> int:
    for index, entry in enumerate(ledger):
        if entry.id == entry_id:
            return index
    raise LedgerValidationError(f"No month with id {entry_id}")


def reduce_ledger(ledger: Sequence[MonthEntry], action: LedgerAction) -> Ledger:
    """Apply ``action`` to ``ledger`` and return the new ledger.

    New and updated entries carry zeroed derived fields; call
    :func:`compute_ledger` on the result to read them. Invalid input raises
    :class:`LedgerValidationError`.
    """
    ledger = tuple(ledger)
    if isinstance(action, AddMonth):
        month_year, without_st, with_st, annex = _validated_inputs(
            action.month_year, action.revenue_without_st, action.revenue_with_st, action.annex
        )
        entry = MonthEntry(
            id=action.entry_id or new_entry_id(),
            month_year=month_year,
            revenue_without_st=without_st,
            revenue_with_st=with_st,
            annex=annex,
        )
        return ledger + (entry,)
    if isinstance(action, UpdateMonth):
        index = _find_index(ledger, action.entry_id)
        month_year, without_st, with_st, annex = _validated_inputs(
            action.month_year, action.revenue_without_st, action.revenue_with_st, action.annex
        )
        entry = MonthEntry(
            id=action.entry_id,
            month_year=month_year,
            revenue_without_st=without_st,
            revenue_with_st=with_st,
            annex=annex,
        )
        return ledger[:index] + (entry,) + ledger[index + 1 :]
    if isinstance(action, RemoveMonth):
        return tuple(e for e in ledger if e.id != action.entry_id)
    if isinstance(action, ClearLedger):
        return ()
    raise TypeError(f"Unsupported ledger action: {action!r}")


def limit_alerts(latest: MonthEntry) -> Tuple[str, ...]:
    """Return warnings for a computed entry whose headroom is running out."""
    alerts: List[str] = []
    if latest.available_monthly < MONTHLY_ALERT_THRESHOLD:
        alerts.append("monthly")
    if latest.available_annual < ANNUAL_ALERT_THRESHOLD:
        alerts.append("annual")
    return tuple(alerts)


def summarize(ledger: Sequence[MonthEntry]) -> SimulationSummary:
    """Compute aggregate metrics for a ledger.

    The ledger is recomputed first, so raw (unenriched) entries are accepted.
    """
    computed = compute_ledger(ledger)
    if not computed:
        return SimulationSummary(
            entry_count=0,
            latest_trailing_revenue=ZERO,
            latest_trailing_average=ZERO,
            total_tax=ZERO,
            total_revenue=ZERO,
            total_revenue_without_st=ZERO,
            total_revenue_with_st=ZERO,
            average_monthly_revenue=ZERO,
            blended_rate=ZERO,
            latest_available_monthly=MONTHLY_CAP,
            latest_available_annual=ANNUAL_CAP,
        )
    latest = computed[-1]
    total_tax = sum((e.total_tax for e in computed), ZERO)
    total_revenue = sum((e.total_revenue for e in computed), ZERO)
    return SimulationSummary(
        entry_count=len(computed),
        latest_trailing_revenue=latest.trailing_12m_revenue,
        latest_trailing_average=latest.trailing_12m_average,
        total_tax=total_tax,
        total_revenue=total_revenue,
        total_revenue_without_st=sum((e.revenue_without_st for e in computed), ZERO),
        total_revenue_with_st=sum((e.revenue_with_st for e in computed), ZERO),
        average_monthly_revenue=total_revenue / Decimal(len(computed)),
        blended_rate=total_tax / total_revenue if total_revenue else ZERO,
        latest_available_monthly=latest.available_monthly,
        latest_available_annual=latest.available_annual,
        alerts=limit_alerts(latest),
    )
