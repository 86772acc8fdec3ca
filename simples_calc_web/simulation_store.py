"""Persistence layer for the web simulator.

Each visitor (identified by a random token kept in the Flask session) has one
working ledger and any number of named simulations saved from it. Ledgers
are stored as the same JSON payload the command-line interface writes to its
ledger file. The store defaults to SQLite for local development, but accepts
any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from simples_calc.data_models import Ledger, MonthEntry
from simples_calc.storage import ledger_from_json, ledger_to_json

logger = logging.getLogger(__name__)

Base = declarative_base()

LIST_LIMIT = 30
COPY_SUFFIX = " (Cópia)"


class LedgerDraftModel(Base):
    __tablename__ = "ledger_drafts"

    user_token = Column(String(64), primary_key=True)
    entries_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SimulationModel(Base):
    __tablename__ = "simples_simulations"

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    entries_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SimulationStore:
    """Database-backed working ledgers and named simulations."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    # Working ledger

    def load_ledger(self, user_token: str) -> Ledger:
        if not user_token:
            return ()
        with self._session_factory() as session:
            row = session.get(LedgerDraftModel, user_token)
            return ledger_from_json(row.entries_json) if row else ()

    def save_ledger(self, user_token: str, entries: Sequence[MonthEntry]) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            row = session.get(LedgerDraftModel, user_token)
            if row is None:
                row = LedgerDraftModel(user_token=user_token, entries_json=ledger_to_json(entries))
                session.add(row)
            else:
                row.entries_json = ledger_to_json(entries)
                row.updated_at = datetime.utcnow()
            session.commit()
        logger.debug("Saved working ledger (%d months) for %s", len(entries), user_token)

    def clear_ledger(self, user_token: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            row = session.get(LedgerDraftModel, user_token)
            if row:
                session.delete(row)
                session.commit()

    # Named simulations

    def list_simulations(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows = session.execute(
                select(SimulationModel)
                .where(SimulationModel.user_token == user_token)
                .order_by(SimulationModel.updated_at.desc())
                .limit(LIST_LIMIT)
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def save_simulation(self, user_token: str, name: str, entries: Sequence[MonthEntry]) -> Optional[str]:
        if not user_token:
            return None
        simulation_id = uuid4().hex
        now = datetime.utcnow()
        payload = SimulationModel(
            id=simulation_id,
            user_token=user_token,
            name=name,
            entries_json=ledger_to_json(entries),
            created_at=now,
            updated_at=now,
        )
        with self._session_factory() as session:
            session.add(payload)
            session.commit()
        return simulation_id

    def get_simulation(self, user_token: str, simulation_id: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = self._owned(session, user_token, simulation_id)
            return self._to_dict(row) if row else None

    def load_simulation(self, user_token: str, simulation_id: str) -> Optional[Ledger]:
        with self._session_factory() as session:
            row = self._owned(session, user_token, simulation_id)
            return ledger_from_json(row.entries_json) if row else None

    def rename_simulation(self, user_token: str, simulation_id: str, name: str) -> bool:
        with self._session_factory() as session:
            row = self._owned(session, user_token, simulation_id)
            if not row:
                return False
            row.name = name
            row.updated_at = datetime.utcnow()
            session.commit()
            return True

    def duplicate_simulation(self, user_token: str, simulation_id: str) -> Optional[str]:
        with self._session_factory() as session:
            row = self._owned(session, user_token, simulation_id)
            if not row:
                return None
            name, entries_json = row.name, row.entries_json
        return self.save_simulation(user_token, f"{name}{COPY_SUFFIX}", ledger_from_json(entries_json))

    def remove_simulation(self, user_token: str, simulation_id: str) -> None:
        with self._session_factory() as session:
            row = self._owned(session, user_token, simulation_id)
            if row:
                session.delete(row)
                session.commit()

    @staticmethod
    def _owned(session, user_token: str, simulation_id: str) -> Optional[SimulationModel]:
        if not user_token or not simulation_id:
            return None
        row = session.get(SimulationModel, simulation_id)
        if row and row.user_token == user_token:
            return row
        return None

    @staticmethod
    def _to_dict(row: SimulationModel) -> Dict[str, Any]:
        entries = ledger_from_json(row.entries_json)
        return {
            "id": row.id,
            "name": row.name,
            "month_count": len(entries),
            "created_at": row.created_at.isoformat(),
            "updated_at": row.updated_at.isoformat(),
        }


def create_store_from_env(url: str | None) -> SimulationStore:
    return SimulationStore(url or "sqlite:///simulation_data.sqlite3")
