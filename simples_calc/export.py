"""CSV and JSON export of a computed ledger."""

from __future__ import annotations

import csv
import io
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .data_models import MonthEntry, SimulationSummary
from .formatter import format_currency, format_percent

CSV_HEADERS = [
    "Mês/Ano",
    "Fat. sem ST",
    "Fat. com ST",
    "Anexo",
    "Total",
    "Fat. Acumulado 12M",
    "RBT12",
    "Média 12M",
    "Disponível Média",
    "Disponível Anual",
    "Alíquota Efetiva",
    "% ICMS",
    "Valor Devido sem ST",
    "Valor Devido com ST",
    "Valor Devido Total",
]


def default_export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"simples_nacional_completo_{today.isoformat()}.csv"


def csv_row(entry: MonthEntry) -> List[str]:
    """Return the formatted CSV cells of a computed entry, in column order."""
    return [
        entry.month_year,
        format_currency(entry.revenue_without_st),
        format_currency(entry.revenue_with_st),
        entry.annex.label,
        format_currency(entry.total_revenue),
        format_currency(entry.trailing_12m_revenue),
        format_currency(entry.trailing_12m_revenue),
        format_currency(entry.trailing_12m_average),
        format_currency(entry.available_monthly),
        format_currency(entry.available_annual),
        format_percent(entry.effective_rate),
        format_percent(entry.icms_share),
        format_currency(entry.tax_without_st),
        format_currency(entry.tax_with_st),
        format_currency(entry.total_tax),
    ]


def ledger_to_csv(entries: Sequence[MonthEntry]) -> str:
    """Render computed entries as CSV text.

    Every field is quoted and rows are joined with ``\\n``.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow(csv_row(entry))
    return buffer.getvalue().rstrip("\n")


def export_to_csv(path: Path, entries: Sequence[MonthEntry]) -> None:
    """Export computed entries to a CSV file."""
    with path.open("w", newline="", encoding="utf-8") as f:
        f.write(ledger_to_csv(entries))


def summary_to_dict(summary: SimulationSummary) -> Dict[str, Any]:
    return {
        "entry_count": summary.entry_count,
        "latest_trailing_revenue": float(summary.latest_trailing_revenue),
        "latest_trailing_average": float(summary.latest_trailing_average),
        "total_tax": float(summary.total_tax),
        "total_revenue": float(summary.total_revenue),
        "total_revenue_without_st": float(summary.total_revenue_without_st),
        "total_revenue_with_st": float(summary.total_revenue_with_st),
        "average_monthly_revenue": float(summary.average_monthly_revenue),
        "blended_rate": float(summary.blended_rate),
        "latest_available_monthly": float(summary.latest_available_monthly),
        "latest_available_annual": float(summary.latest_available_annual),
        "alerts": list(summary.alerts),
    }


def export_to_json(path: Path, entries: Sequence[MonthEntry], summary: SimulationSummary) -> None:
    """Export computed entries and their summary to a JSON file."""
    entry_list = []
    for e in entries:
        entry_list.append(
            {
                "id": e.id,
                "month_year": e.month_year,
                "annex": e.annex.value,
                "revenue_without_st": float(e.revenue_without_st),
                "revenue_with_st": float(e.revenue_with_st),
                "total_revenue": float(e.total_revenue),
                "trailing_12m_revenue": float(e.trailing_12m_revenue),
                "trailing_12m_average": float(e.trailing_12m_average),
                "available_monthly": float(e.available_monthly),
                "available_annual": float(e.available_annual),
                "effective_rate": float(e.effective_rate),
                "icms_share": float(e.icms_share),
                "final_rate": float(e.final_rate),
                "tax_without_st": float(e.tax_without_st),
                "tax_with_st": float(e.tax_with_st),
                "total_tax": float(e.total_tax),
            }
        )
    data = {"summary": summary_to_dict(summary), "entries": entry_list}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
