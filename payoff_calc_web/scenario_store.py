"""Persistence layer for saved payoff scenarios.

The engine never stores anything; this module is where the web front end
keeps the plans a user chose to save (payment type, the plan's amounts and the
resulting payoff time and interest). It defaults to SQLite for local
development, but accepts any SQLAlchemy-compatible URL.

A plan that never pays off is stored with ``months_to_payoff`` and
``total_interest`` set to ``None``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from payoff_calc.logging_config import get_logger

logger = get_logger("web.scenarios")

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SavedScenarioModel(Base):
    __tablename__ = "saved_scenarios"

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    payment_type = Column(String(16), nullable=False)
    plan_json = Column(Text, nullable=False)
    starting_balance = Column(String(64), nullable=False)
    total_interest = Column(String(64), nullable=True)
    months_to_payoff = Column(Integer, nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class ScenarioStore:
    """Database-backed scenario store."""

    def __init__(self, url: str, *, max_per_user: int = 10) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_per_user = max_per_user

    def list_scenarios(self, user_token: Optional[str]) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows: Iterable[SavedScenarioModel] = session.execute(
                select(SavedScenarioModel)
                .where(SavedScenarioModel.user_token == user_token)
                .order_by(SavedScenarioModel.created_at.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def add_scenario(
        self,
        user_token: Optional[str],
        scenario_id: str,
        name: str,
        *,
        payment_type: str,
        plan: Dict[str, Any],
        starting_balance: str,
        total_interest: Optional[str],
        months_to_payoff: Optional[int],
        currency: str = "USD",
    ) -> None:
        if not user_token:
            return
        payload = SavedScenarioModel(
            id=scenario_id,
            user_token=user_token,
            name=name,
            currency=currency,
            payment_type=payment_type,
            plan_json=json.dumps(plan),
            starting_balance=starting_balance,
            total_interest=total_interest,
            months_to_payoff=months_to_payoff,
        )
        with self._session_factory() as session:
            session.add(payload)
            session.commit()
        logger.info("Saved scenario %s (%s)", scenario_id, payment_type)
        self._trim_user(user_token)

    def toggle_favorite(self, user_token: Optional[str], scenario_id: str) -> Optional[bool]:
        """Flip the favourite flag and return the new value (``None`` if not found)."""
        if not user_token:
            return None
        with self._session_factory() as session:
            row = session.get(SavedScenarioModel, scenario_id)
            if not row or row.user_token != user_token:
                return None
            row.is_favorite = not row.is_favorite
            session.commit()
            return row.is_favorite

    def remove_scenario(self, user_token: Optional[str], scenario_id: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            row = session.get(SavedScenarioModel, scenario_id)
            if row and row.user_token == user_token:
                session.delete(row)
                session.commit()

    def clear_scenarios(self, user_token: Optional[str]) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            session.execute(
                SavedScenarioModel.__table__.delete().where(
                    SavedScenarioModel.user_token == user_token
                )
            )
            session.commit()

    def _trim_user(self, user_token: str) -> None:
        if not self._max_per_user or self._max_per_user < 0:
            return
        with self._session_factory() as session:
            rows = session.execute(
                select(SavedScenarioModel)
                .where(SavedScenarioModel.user_token == user_token)
                .order_by(SavedScenarioModel.created_at.desc())
            ).scalars().all()
            if len(rows) <= self._max_per_user:
                return
            for row in rows[self._max_per_user :]:
                session.delete(row)
            session.commit()

    @staticmethod
    def _to_dict(row: SavedScenarioModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "currency": row.currency,
            "payment_type": row.payment_type,
            "plan": json.loads(row.plan_json),
            "starting_balance": row.starting_balance,
            "total_interest": row.total_interest,
            "months_to_payoff": row.months_to_payoff,
            "is_favorite": bool(row.is_favorite),
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: Optional[str]) -> ScenarioStore:
    return ScenarioStore(url or "sqlite:///payoff_scenarios.sqlite3")
