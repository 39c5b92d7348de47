from __future__ import annotations

from typing import Any

from sqlmodel import Session, col, select

from semon.domain.models import (
    GoalCreate,
    MissionCreate,
    OrganizationalGoal,
    StrategicMission,
    StrategicPeriod,
    StrategicPeriodCreate,
    StrategicPeriodUpdate,
    Vision,
    VisionCreate,
    now_utc,
)
from semon.domain.state_machine import VisionStatus, can_transition_vision
from semon.infra.db import get_engine
from semon.services.organization_service import next_code


class StrategicError(Exception):
    pass


class NotFoundError(StrategicError):
    pass


class ConflictError(StrategicError):
    pass


class StrategicService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_period(self, session: Session, period_id: str) -> StrategicPeriod:
        period = session.get(StrategicPeriod, period_id)
        if period is None:
            raise NotFoundError("Strategic period not found")
        return period

    # Periods

    def list_periods(self) -> list[StrategicPeriod]:
        with self._session() as session:
            statement = select(StrategicPeriod).order_by(col(StrategicPeriod.start_year).desc())
            return list(session.exec(statement).all())

    def get_period(self, period_id: str) -> StrategicPeriod:
        with self._session() as session:
            return self._get_period(session, period_id)

    def get_active_period(self) -> StrategicPeriod | None:
        with self._session() as session:
            return session.exec(select(StrategicPeriod).where(StrategicPeriod.is_active == True)).first()  # noqa: E712

    def create_period(self, payload: StrategicPeriodCreate, actor_id: str | None) -> StrategicPeriod:
        with self._session() as session:
            period = StrategicPeriod(
                name=payload.name,
                start_year=payload.start_year,
                end_year=payload.end_year,
                description=payload.description,
                created_by=actor_id,
            )
            session.add(period)
            session.commit()
            session.refresh(period)
            return period

    def update_period(self, period_id: str, payload: StrategicPeriodUpdate) -> StrategicPeriod:
        with self._session() as session:
            period = self._get_period(session, period_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(period, key, value)
            if period.end_year <= period.start_year:
                raise ConflictError("End year must be after start year")
            period.updated_at = now_utc()
            session.add(period)
            session.commit()
            session.refresh(period)
            return period

    def set_active_period(self, period_id: str) -> StrategicPeriod:
        with self._session() as session:
            target = self._get_period(session, period_id)
            for period in session.exec(select(StrategicPeriod)).all():
                period.is_active = period.id == target.id
                session.add(period)
            session.commit()
            session.refresh(target)
            return target

    def period_deletion_impact(self, period_id: str) -> dict[str, Any]:
        with self._session() as session:
            period = self._get_period(session, period_id)
            visions = session.exec(select(Vision).where(Vision.period_id == period_id)).all()
            missions = session.exec(
                select(StrategicMission).where(StrategicMission.period_id == period_id)
            ).all()
            goals = session.exec(
                select(OrganizationalGoal).where(OrganizationalGoal.period_id == period_id)
            ).all()
            total = len(visions) + len(missions) + len(goals)
            return {
                "period_id": period.id,
                "is_active": period.is_active,
                "visions": len(visions),
                "missions": len(missions),
                "goals": len(goals),
                "total": total,
                "has_dependents": total > 0,
            }

    def delete_period(self, period_id: str, cascade: bool = False) -> dict[str, Any]:
        impact = self.period_deletion_impact(period_id)
        if impact["has_dependents"] and not cascade:
            raise ConflictError("Cannot delete period with visions, missions or goals")
        with self._session() as session:
            for model in (Vision, StrategicMission, OrganizationalGoal):
                for row in session.exec(select(model).where(model.period_id == period_id)).all():
                    session.delete(row)
            session.delete(self._get_period(session, period_id))
            session.commit()
        return impact

    # Visions

    def list_visions(self, period_id: str | None = None) -> list[Vision]:
        with self._session() as session:
            statement = select(Vision)
            if period_id is not None:
                statement = statement.where(Vision.period_id == period_id)
            return list(session.exec(statement.order_by(col(Vision.created_at))).all())

    def create_vision(self, payload: VisionCreate, actor_id: str | None) -> Vision:
        with self._session() as session:
            self._get_period(session, payload.period_id)
            vision = Vision(
                period_id=payload.period_id,
                vision_text=payload.vision_text.strip(),
                created_by=actor_id,
            )
            session.add(vision)
            session.commit()
            session.refresh(vision)
            return vision

    def approve_vision(self, vision_id: str, actor_id: str | None) -> Vision:
        with self._session() as session:
            vision = session.get(Vision, vision_id)
            if vision is None:
                raise NotFoundError("Vision not found")
            if not can_transition_vision(vision.status, VisionStatus.APPROVED):
                raise ConflictError(f"Vision cannot be approved from {vision.status}")
            vision.status = VisionStatus.APPROVED
            vision.approved_by = actor_id
            vision.approved_at = now_utc()
            session.add(vision)
            session.commit()
            session.refresh(vision)
            return vision

    # Missions

    def list_missions(self, period_id: str | None = None) -> list[StrategicMission]:
        with self._session() as session:
            statement = select(StrategicMission)
            if period_id is not None:
                statement = statement.where(StrategicMission.period_id == period_id)
            statement = statement.order_by(col(StrategicMission.sort_order), col(StrategicMission.created_at))
            return list(session.exec(statement).all())

    def create_mission(self, payload: MissionCreate, actor_id: str | None) -> StrategicMission:
        with self._session() as session:
            self._get_period(session, payload.period_id)
            if payload.vision_id is not None and session.get(Vision, payload.vision_id) is None:
                raise NotFoundError("Vision not found")
            mission = StrategicMission(
                period_id=payload.period_id,
                vision_id=payload.vision_id,
                mission_text=payload.mission_text.strip(),
                sort_order=payload.sort_order,
                created_by=actor_id,
            )
            session.add(mission)
            session.commit()
            session.refresh(mission)
            return mission

    # Goals

    def list_goals(self, period_id: str | None = None, year: int | None = None) -> list[OrganizationalGoal]:
        with self._session() as session:
            statement = select(OrganizationalGoal)
            if period_id is not None:
                statement = statement.where(OrganizationalGoal.period_id == period_id)
            if year is not None:
                statement = statement.where(OrganizationalGoal.year == year)
            statement = statement.order_by(col(OrganizationalGoal.sort_order), col(OrganizationalGoal.created_at))
            return list(session.exec(statement).all())

    def create_goal(self, payload: GoalCreate, actor_id: str | None) -> OrganizationalGoal:
        with self._session() as session:
            period = self._get_period(session, payload.period_id)
            if not period.start_year <= payload.year <= period.end_year:
                raise ConflictError(
                    f"Goal year must fall within the period ({period.start_year}-{period.end_year})"
                )
            codes = [item.code for item in session.exec(select(OrganizationalGoal)).all()]
            code = payload.code or next_code("GOAL", codes)
            if payload.code and payload.code in codes:
                raise ConflictError(f"Goal code already exists: {payload.code}")
            goal = OrganizationalGoal(
                code=code,
                period_id=payload.period_id,
                name=payload.name,
                description=payload.description,
                year=payload.year,
                sort_order=payload.sort_order,
                created_by=actor_id,
            )
            session.add(goal)
            session.commit()
            session.refresh(goal)
            return goal
