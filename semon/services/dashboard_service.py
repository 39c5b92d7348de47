from __future__ import annotations

import os
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, select

from semon.domain.models import (
    Affair,
    Directorate,
    Okr,
    Position,
    PositionAssignment,
    Program,
    WorkUnit,
    now_utc,
)
from semon.domain.state_machine import AssignmentStatus, OkrStatus
from semon.infra import redis_state
from semon.infra.audit import list_audit_logs
from semon.infra.db import get_engine
from semon.services.kpi_service import KpiService
from semon.services.strategic_service import StrategicService

DASHBOARD_CACHE_SECONDS = int(os.getenv("DASHBOARD_CACHE_SECONDS", "300"))
RECENT_ACTIVITY_LIMIT = 10


class DashboardService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return f"dashboard:{user_id}"

    def _count(self, session: Session, model: Any, *criteria: Any) -> int:
        statement = select(func.count()).select_from(model)
        for criterion in criteria:
            statement = statement.where(criterion)
        return int(session.exec(statement).one())

    def build(self, year: int | None = None) -> dict[str, Any]:
        with self._session() as session:
            organization = {
                "directorates": self._count(session, Directorate, Directorate.is_active == True),  # noqa: E712
                "work_units": self._count(session, WorkUnit, WorkUnit.is_active == True),  # noqa: E712
                "affairs": self._count(session, Affair, Affair.is_active == True),  # noqa: E712
                "positions": self._count(session, Position, Position.is_active == True),  # noqa: E712
                "active_assignments": self._count(
                    session,
                    PositionAssignment,
                    PositionAssignment.assignment_status == AssignmentStatus.ACTIVE,
                ),
            }
            pending_reviews = self._count(session, Okr, Okr.status == OkrStatus.SUBMITTED)
            programs = self._count(session, Program) if year is None else self._count(
                session, Program, Program.year == year
            )

        active_period = StrategicService().get_active_period()
        recent = list_audit_logs(limit=RECENT_ACTIVITY_LIMIT)
        return {
            "generated_at": now_utc().isoformat(),
            "organization": organization,
            "active_period": active_period.model_dump(mode="json") if active_period else None,
            "kpi_status": KpiService().status_distribution(year=year),
            "pending_okr_reviews": pending_reviews,
            "programs": programs,
            "recent_activity": [item.model_dump(mode="json") for item in recent],
        }

    def get_data(self, user_id: str, year: int | None = None) -> dict[str, Any]:
        """Dashboard payload for ``user_id``, served from cache while fresh.

        Writes do not invalidate the cache; data may lag by up to
        ``DASHBOARD_CACHE_SECONDS``.
        """
        key = self._cache_key(user_id) if year is None else f"{self._cache_key(user_id)}:{year}"
        cached = redis_state.cache_get_json(key)
        if isinstance(cached, dict):
            return {**cached, "cached": True}
        data = self.build(year=year)
        redis_state.cache_set_json(key, data, DASHBOARD_CACHE_SECONDS)
        return {**data, "cached": False}
