"""Output helpers for the Simples Nacional simulator.

This module formats amounts the way Brazilian users read them
(``R$ 1.234,56`` and ``5,32%``) and renders ledgers, summaries and bracket
tables in a tabular text format using plain ``print``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, List, Optional, Sequence

from .brackets import ANNEX_TABLES
from .data_models import Annex, MonthEntry, SimulationSummary
from .engine import effective_rate

ALERT_MESSAGES = {
    "monthly": "Atenção: Próximo ao limite de média mensal (restam {available})",
    "annual": "Atenção: Próximo ao limite anual (restam {available})",
}


def _format_number(value: Decimal, places: int) -> str:
    """Format with pt-BR separators: ``.`` for thousands, ``,`` for decimals."""
    value = Decimal(value)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the decimals
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        rounded = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
        if rounded == 0:
            rounded = abs(rounded)  # avoid "-0,00"
        text = f"{rounded:,.{places}f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: Decimal) -> str:
    """Return ``value`` as ``R$ 1.234,56`` (negatives as ``R$ -1.234,56``)."""
    return f"R$ {_format_number(value, 2)}"


def format_amount(value: Decimal) -> str:
    """Return ``value`` as a bare pt-BR amount (``1.234,56``), as typed into forms."""
    return _format_number(value, 2)


def format_percent(value: Decimal, places: int = 2) -> str:
    """Return a fraction as a percentage, e.g. ``Decimal("0.0532")`` -> ``5,32%``."""
    return f"{_format_number(Decimal(value) * 100, places)}%"


def alert_messages(summary: SimulationSummary) -> List[str]:
    messages = []
    for code in summary.alerts:
        available = (
            summary.latest_available_monthly if code == "monthly" else summary.latest_available_annual
        )
        messages.append(ALERT_MESSAGES[code].format(available=format_currency(available)))
    return messages


def print_summary(summary: SimulationSummary) -> None:
    """Print the aggregate metrics of a ledger in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Months               : {summary.entry_count}")
    print(f"Total revenue        : {format_currency(summary.total_revenue)}")
    print(f"  without ST         : {format_currency(summary.total_revenue_without_st)}")
    print(f"  with ST            : {format_currency(summary.total_revenue_with_st)}")
    print(f"Average month        : {format_currency(summary.average_monthly_revenue)}")
    print(f"Total tax            : {format_currency(summary.total_tax)}")
    print(f"Blended rate         : {format_percent(summary.blended_rate)}")
    print(f"RBT12 (latest)       : {format_currency(summary.latest_trailing_revenue)}")
    print(f"12M average (latest) : {format_currency(summary.latest_trailing_average)}")
    print(f"Monthly headroom     : {format_currency(summary.latest_available_monthly)}")
    print(f"Annual headroom      : {format_currency(summary.latest_available_annual)}")
    for message in alert_messages(summary):
        print(f"WARNING: {message}")
    print("-" * 72)


def print_ledger(entries: Iterable[MonthEntry]) -> None:
    """Print computed ledger entries as a tab-separated table.

    Negative headroom is printed as-is; it means the limit was exceeded.
    """
    headers = [
        "Id",
        "Month",
        "Annex",
        "WithoutST",
        "WithST",
        "Total",
        "RBT12",
        "Avg12M",
        "DispMonthly",
        "DispAnnual",
        "EffRate",
        "FinalRate",
        "Tax",
    ]
    print("\t".join(headers))
    for entry in entries:
        row = [
            entry.id[:8],
            entry.month_year,
            entry.annex.label,
            format_currency(entry.revenue_without_st),
            format_currency(entry.revenue_with_st),
            format_currency(entry.total_revenue),
            format_currency(entry.trailing_12m_revenue),
            format_currency(entry.trailing_12m_average),
            format_currency(entry.available_monthly),
            format_currency(entry.available_annual),
            format_percent(entry.effective_rate),
            format_percent(entry.final_rate),
            format_currency(entry.total_tax),
        ]
        print("\t".join(row))


def print_brackets(annexes: Optional[Sequence[Annex]] = None) -> None:
    """Print the bracket tables with the effective rate at each threshold."""
    for annex in annexes or list(Annex):
        print(annex.label)
        print(f"{'From':>18s} {'Nominal':>9s} {'Deduction':>16s} {'ICMS':>8s} {'Eff.':>8s}")
        for row in ANNEX_TABLES[annex]:
            print(
                f"{format_currency(row.threshold_from):>18s} "
                f"{format_percent(row.nominal_rate):>9s} "
                f"{format_currency(row.deduction):>16s} "
                f"{format_percent(row.icms_share):>8s} "
                f"{format_percent(effective_rate(row.threshold_from, annex)):>8s}"
            )
        print()
