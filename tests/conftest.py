import os

import pytest

os.environ.setdefault("SIMULATION_DATABASE_URL", "sqlite://")

from simples_calc.data_models import AddMonth
from simples_calc.engine import reduce_ledger


def build_ledger(*months):
    """Build a raw ledger from ``(month_year, without_st, with_st, annex)`` tuples."""
    ledger = ()
    for i, (month_year, without_st, with_st, annex) in enumerate(months):
        ledger = reduce_ledger(
            ledger,
            AddMonth(
                month_year=month_year,
                revenue_without_st=without_st,
                revenue_with_st=with_st,
                annex=annex,
                entry_id=f"m{i:02d}",
            ),
        )
    return ledger


@pytest.fixture
def sixteen_months():
    """Sixteen consecutive Annex I months with revenue 10k, 20k, ... 160k."""
    months = []
    for i in range(16):
        month = i % 12 + 1
        year = 2024 + i // 12
        months.append((f"{month:02d}/{year}", str((i + 1) * 10000), "0", "I"))
    return build_ledger(*months)
