"""Ledger persistence.

A ledger is stored as one JSON array of flattened entries, inputs and
derived fields alike, with decimals written as strings. There is no schema
version: a payload that cannot be read is logged and treated as an empty
ledger, and derived fields are recomputed after loading anyway.
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from .data_models import Annex, Ledger, MonthEntry

logger = logging.getLogger(__name__)

_DECIMAL_FIELDS = [f.name for f in fields(MonthEntry) if f.name not in ("id", "month_year", "annex")]


def entry_to_dict(entry: MonthEntry) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": entry.id,
        "month_year": entry.month_year,
        "annex": entry.annex.value,
    }
    for name in _DECIMAL_FIELDS:
        data[name] = str(getattr(entry, name))
    return data


def entry_from_dict(data: Dict[str, Any]) -> MonthEntry:
    values: Dict[str, Any] = {
        "id": str(data["id"]),
        "month_year": str(data["month_year"]),
        "annex": Annex.parse(data["annex"]),
    }
    for name in _DECIMAL_FIELDS:
        if name in data:
            values[name] = Decimal(str(data[name]))
    return MonthEntry(**values)


def ledger_to_json(entries: Sequence[MonthEntry]) -> str:
    return json.dumps([entry_to_dict(e) for e in entries])


def ledger_from_json(payload: Optional[Union[str, bytes]]) -> Ledger:
    """Parse a stored ledger payload, returning an empty ledger on any error."""
    if not payload:
        return ()
    try:
        raw = json.loads(payload)
        if not isinstance(raw, list):
            raise ValueError("stored ledger is not a JSON array")
        return tuple(entry_from_dict(item) for item in raw)
    except (ValueError, TypeError, KeyError, InvalidOperation) as exc:
        logger.warning("Discarding unreadable ledger payload: %s", exc)
        return ()


class LedgerFile:
    """File-backed ledger storage used by the command-line interface."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Ledger:
        if not self.path.exists():
            return ()
        try:
            payload = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read ledger file %s: %s", self.path, exc)
            return ()
        entries = ledger_from_json(payload)
        logger.debug("Loaded %d entries from %s", len(entries), self.path)
        return entries

    def save(self, entries: Sequence[MonthEntry]) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(ledger_to_json(entries), encoding="utf-8")
        logger.debug("Saved %d entries to %s", len(entries), self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
