"""
Dive store: the pipeline's only access to persistent state.

Four operations, all keyed by the authenticated user id:
- read/write the cached insight JSON on a dive row
- aggregate a baseline row (count, averages, last date) over the user's dives
- consume one AI credit from the user's per-UTC-day allowance

SqlDiveStore opens one session per call so baseline scopes can be queried
from worker threads concurrently.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.exc import IntegrityError

from core.database import SessionLocal
from models import AiCreditUsage, Dive
from services.dive_insight.constants import AVERAGE_DEPTH_ESTIMATE_RATIO

logger = logging.getLogger(__name__)


class DiveStore(ABC):
    @abstractmethod
    def read_insight_payload(self, user_id: str, dive_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def write_insight_payload(self, user_id: str, dive_id: str, payload: str) -> None:
        ...

    @abstractmethod
    def fetch_baseline_row(
        self,
        user_id: str,
        location_key: Optional[str],
        window_days: Optional[int],
        now_date: date,
    ) -> Optional[Dict[str, Any]]:
        """Keys: sample_size, avg_depth, avg_duration, avg_rmv, max_date."""

    @abstractmethod
    def consume_ai_credit(self, user_id: str, limit: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Keys: allowed, remaining, next_reset (ISO-8601)."""


def next_utc_midnight(now: datetime) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(timezone.utc).date()
    return datetime.combine(today + timedelta(days=1), time.min, tzinfo=timezone.utc)


def _rmv_expression():
    """Per-dive surface RMV in SQL, NULL when any input is missing."""
    average_depth = func.coalesce(Dive.average_depth, Dive.depth * AVERAGE_DEPTH_ESTIMATE_RATIO)
    computable = and_(
        Dive.start_pressure.isnot(None),
        Dive.end_pressure.isnot(None),
        Dive.start_pressure > Dive.end_pressure,
        Dive.cylinder_size > 0,
        Dive.duration > 0,
        average_depth.isnot(None),
    )
    rmv = ((Dive.start_pressure - Dive.end_pressure) * Dive.cylinder_size) / (
        (average_depth / 10.0 + 1.0) * Dive.duration
    )
    return case((computable, rmv), else_=None)


class SqlDiveStore(DiveStore):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def read_insight_payload(self, user_id: str, dive_id: str) -> Optional[str]:
        db = self.session_factory()
        try:
            return (
                db.query(Dive.ai_summary)
                .filter(Dive.id == dive_id, Dive.user_id == user_id)
                .scalar()
            )
        finally:
            db.close()

    def write_insight_payload(self, user_id: str, dive_id: str, payload: str) -> None:
        db = self.session_factory()
        try:
            updated = (
                db.query(Dive)
                .filter(Dive.id == dive_id, Dive.user_id == user_id)
                .update({Dive.ai_summary: payload}, synchronize_session=False)
            )
            db.commit()
            if not updated:
                logger.info(f"No dive {dive_id} for user {user_id}; insight not persisted")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def fetch_baseline_row(
        self,
        user_id: str,
        location_key: Optional[str],
        window_days: Optional[int],
        now_date: date,
    ) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            query = db.query(
                func.count(Dive.id).label("sample_size"),
                func.avg(Dive.depth).label("avg_depth"),
                func.avg(Dive.duration).label("avg_duration"),
                func.avg(_rmv_expression()).label("avg_rmv"),
                func.max(Dive.date).label("max_date"),
            ).filter(Dive.user_id == user_id)

            if location_key:
                query = query.filter(or_(Dive.location_id == location_key, Dive.location_key == location_key))
            if window_days:
                query = query.filter(Dive.date >= now_date - timedelta(days=window_days))

            row = query.one()
            return dict(row._mapping)
        finally:
            db.close()

    def consume_ai_credit(self, user_id: str, limit: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        reset_at = next_utc_midnight(now)
        usage_date = reset_at.date() - timedelta(days=1)

        db = self.session_factory()
        try:
            usage = self._locked_usage_row(db, user_id, usage_date)
            if usage.used >= limit:
                db.rollback()
                return {"allowed": False, "remaining": 0, "next_reset": reset_at.isoformat()}

            usage.used += 1
            remaining = max(limit - usage.used, 0)
            db.commit()
            return {"allowed": True, "remaining": remaining, "next_reset": reset_at.isoformat()}
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _locked_usage_row(self, db, user_id: str, usage_date: date) -> AiCreditUsage:
        query = (
            db.query(AiCreditUsage)
            .filter(AiCreditUsage.user_id == user_id, AiCreditUsage.usage_date == usage_date)
            .with_for_update()
        )
        usage = query.first()
        if usage is not None:
            return usage

        try:
            db.add(AiCreditUsage(user_id=user_id, usage_date=usage_date, used=0))
            db.flush()
        except IntegrityError:
            # Another request created today's row first; nothing else is pending
            db.rollback()
        return query.one()


_store: Optional[DiveStore] = None


def get_dive_store() -> DiveStore:
    """FastAPI dependency."""
    global _store
    if _store is None:
        _store = SqlDiveStore(SessionLocal)
    return _store
