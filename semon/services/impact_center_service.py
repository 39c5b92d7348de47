from __future__ import annotations

from typing import Any

from sqlmodel import Session, col, select

from semon.domain.models import (
    ImpactCenter,
    ImpactCenterCreate,
    ImpactCenterProgress,
    ImpactCenterProgressCreate,
    ImpactCenterUpdate,
    ImpactCenterWorkUnit,
    ImpactCenterWorkUnitCreate,
    OrganizationalGoal,
    WorkUnit,
    now_utc,
)
from semon.infra.db import get_engine
from semon.services.organization_service import next_code


class ImpactCenterError(Exception):
    pass


class NotFoundError(ImpactCenterError):
    pass


class ConflictError(ImpactCenterError):
    pass


def code_prefix(year: int) -> str:
    return f"IC-{year}"


class ImpactCenterService:
    """Yearly impact centers, their monthly progress and contributing work units."""

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_center(self, session: Session, center_id: str) -> ImpactCenter:
        center = session.get(ImpactCenter, center_id)
        if center is None:
            raise NotFoundError("Impact center not found")
        return center

    def _check_goal(self, session: Session, goal_id: str | None) -> None:
        if goal_id is not None and session.get(OrganizationalGoal, goal_id) is None:
            raise NotFoundError("Goal not found")

    def list_centers(self, *, year: int | None = None, goal_id: str | None = None) -> list[ImpactCenter]:
        with self._session() as session:
            statement = select(ImpactCenter)
            if year is not None:
                statement = statement.where(ImpactCenter.year == year)
            if goal_id is not None:
                statement = statement.where(ImpactCenter.goal_id == goal_id)
            return list(session.exec(statement.order_by(col(ImpactCenter.code))).all())

    def get_center(self, center_id: str) -> ImpactCenter:
        with self._session() as session:
            return self._get_center(session, center_id)

    def create_center(self, payload: ImpactCenterCreate, actor_id: str | None) -> ImpactCenter:
        with self._session() as session:
            self._check_goal(session, payload.goal_id)
            codes = [
                item.code
                for item in session.exec(select(ImpactCenter).where(ImpactCenter.year == payload.year)).all()
            ]
            if payload.code and payload.code in codes:
                raise ConflictError(f"Impact center code already exists for {payload.year}: {payload.code}")
            center = ImpactCenter(
                **payload.model_dump(exclude={"code"}),
                code=payload.code or next_code(code_prefix(payload.year), codes),
                created_by=actor_id,
            )
            session.add(center)
            session.commit()
            session.refresh(center)
            return center

    def update_center(self, center_id: str, payload: ImpactCenterUpdate) -> ImpactCenter:
        with self._session() as session:
            center = self._get_center(session, center_id)
            changes = payload.model_dump(exclude_unset=True)
            if "goal_id" in changes:
                self._check_goal(session, changes["goal_id"])
            for key, value in changes.items():
                setattr(center, key, value)
            center.updated_at = now_utc()
            session.add(center)
            session.commit()
            session.refresh(center)
            return center

    def delete_center(self, center_id: str) -> ImpactCenter:
        with self._session() as session:
            center = self._get_center(session, center_id)
            reported = session.exec(
                select(ImpactCenterProgress).where(ImpactCenterProgress.impact_center_id == center_id)
            ).first()
            if reported is not None:
                raise ConflictError("Cannot delete impact center with existing progress records")
            mappings = session.exec(
                select(ImpactCenterWorkUnit).where(ImpactCenterWorkUnit.impact_center_id == center_id)
            ).all()
            for mapping in mappings:
                session.delete(mapping)
            session.delete(center)
            session.commit()
            return center

    # Monthly progress

    def submit_progress(self, payload: ImpactCenterProgressCreate, actor_id: str | None) -> ImpactCenterProgress:
        """Record one month of progress; a second report for the same month replaces the first.

        The center's completion percentage follows the most recent reported month.
        """
        with self._session() as session:
            center = self._get_center(session, payload.impact_center_id)
            progress = session.exec(
                select(ImpactCenterProgress)
                .where(ImpactCenterProgress.impact_center_id == center.id)
                .where(ImpactCenterProgress.year == payload.year)
                .where(ImpactCenterProgress.month == payload.month)
            ).first()
            if progress is None:
                progress = ImpactCenterProgress(impact_center_id=center.id, year=payload.year, month=payload.month)
            progress.completion_percentage = payload.completion_percentage
            progress.achievement_notes = payload.achievement_notes
            progress.issues = payload.issues
            progress.reported_by = actor_id
            progress.reported_at = now_utc()
            session.add(progress)
            session.flush()

            latest = session.exec(
                select(ImpactCenterProgress)
                .where(ImpactCenterProgress.impact_center_id == center.id)
                .order_by(col(ImpactCenterProgress.year).desc(), col(ImpactCenterProgress.month).desc())
            ).first()
            if latest is not None:
                center.completion_percentage = latest.completion_percentage
            center.updated_at = now_utc()
            session.add(center)
            session.commit()
            session.refresh(progress)
            return progress

    def list_progress(self, center_id: str, year: int | None = None) -> list[ImpactCenterProgress]:
        with self._session() as session:
            self._get_center(session, center_id)
            statement = select(ImpactCenterProgress).where(ImpactCenterProgress.impact_center_id == center_id)
            if year is not None:
                statement = statement.where(ImpactCenterProgress.year == year)
            statement = statement.order_by(col(ImpactCenterProgress.year), col(ImpactCenterProgress.month))
            return list(session.exec(statement).all())

    # Work unit assignments

    def assign_work_unit(self, payload: ImpactCenterWorkUnitCreate, actor_id: str | None) -> ImpactCenterWorkUnit:
        with self._session() as session:
            self._get_center(session, payload.impact_center_id)
            if session.get(WorkUnit, payload.work_unit_id) is None:
                raise NotFoundError("Work unit not found")
            duplicate = session.exec(
                select(ImpactCenterWorkUnit)
                .where(ImpactCenterWorkUnit.impact_center_id == payload.impact_center_id)
                .where(ImpactCenterWorkUnit.work_unit_id == payload.work_unit_id)
            ).first()
            if duplicate is not None:
                raise ConflictError("Work unit already assigned to this impact center")
            mapping = ImpactCenterWorkUnit(**payload.model_dump(), created_by=actor_id)
            session.add(mapping)
            session.commit()
            session.refresh(mapping)
            return mapping

    def list_work_units(self, center_id: str) -> list[dict[str, Any]]:
        with self._session() as session:
            self._get_center(session, center_id)
            mappings = session.exec(
                select(ImpactCenterWorkUnit)
                .where(ImpactCenterWorkUnit.impact_center_id == center_id)
                .order_by(col(ImpactCenterWorkUnit.created_at))
            ).all()
            rows: list[dict[str, Any]] = []
            for mapping in mappings:
                unit = session.get(WorkUnit, mapping.work_unit_id)
                rows.append(
                    {
                        **mapping.model_dump(),
                        "work_unit_display": f"{unit.code} - {unit.name}" if unit is not None else "-",
                    }
                )
            return rows

    def remove_work_unit(self, mapping_id: str) -> ImpactCenterWorkUnit:
        with self._session() as session:
            mapping = session.get(ImpactCenterWorkUnit, mapping_id)
            if mapping is None:
                raise NotFoundError("Work unit assignment not found")
            session.delete(mapping)
            session.commit()
            return mapping

    def summary(self, year: int | None = None) -> dict[str, Any]:
        centers = self.list_centers(year=year)
        average = (
            round(sum(center.completion_percentage for center in centers) / len(centers), 2) if centers else 0.0
        )
        return {
            "year": year,
            "total": len(centers),
            "average_completion": average,
            "completed": sum(1 for center in centers if center.completion_percentage >= 100),
            "centers": [
                {
                    "id": center.id,
                    "code": center.code,
                    "name": center.name,
                    "completion_percentage": center.completion_percentage,
                }
                for center in centers
            ],
        }
