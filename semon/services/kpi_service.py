from __future__ import annotations

from sqlmodel import Session, col, select

from semon.domain.models import (
    Kpi,
    KpiCreate,
    KpiProgress,
    KpiProgressCreate,
    KpiStatus,
    KpiTrend,
    KpiUpdate,
    now_utc,
)
from semon.infra.db import get_engine


class KpiError(Exception):
    pass


class NotFoundError(KpiError):
    pass


class ConflictError(KpiError):
    pass


def achievement_percent(current: float, target: float) -> float | None:
    if target == 0:
        return None
    return round(current / target * 100, 2)


def calculate_kpi_status(current: float, target: float, trend: KpiTrend) -> KpiStatus:
    """Classify a KPI value against its target.

    Higher-is-better KPIs are on track from 90% of target and at risk from 75%.
    Lower-is-better KPIs are on track up to 100% of target and at risk up to
    115%. A zero target cannot be classified.
    """
    pct = achievement_percent(current, target)
    if pct is None:
        return KpiStatus.UNKNOWN
    if trend == KpiTrend.LOWER_BETTER:
        if pct <= 100:
            return KpiStatus.ON_TRACK
        if pct <= 115:
            return KpiStatus.AT_RISK
        return KpiStatus.OFF_TRACK
    if pct >= 90:
        return KpiStatus.ON_TRACK
    if pct >= 75:
        return KpiStatus.AT_RISK
    return KpiStatus.OFF_TRACK


class KpiService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_kpi(self, session: Session, kpi_id: str) -> Kpi:
        kpi = session.get(Kpi, kpi_id)
        if kpi is None:
            raise NotFoundError("KPI not found")
        return kpi

    def list_kpis(
        self,
        *,
        work_unit_id: str | None = None,
        year: int | None = None,
        status: KpiStatus | None = None,
    ) -> list[Kpi]:
        with self._session() as session:
            statement = select(Kpi)
            if work_unit_id is not None:
                statement = statement.where(Kpi.work_unit_id == work_unit_id)
            if year is not None:
                statement = statement.where(Kpi.year == year)
            if status is not None:
                statement = statement.where(Kpi.status == status)
            return list(session.exec(statement.order_by(col(Kpi.code))).all())

    def get_kpi(self, kpi_id: str) -> Kpi:
        with self._session() as session:
            return self._get_kpi(session, kpi_id)

    def create_kpi(self, payload: KpiCreate, actor_id: str | None) -> Kpi:
        with self._session() as session:
            duplicate = session.exec(
                select(Kpi).where(Kpi.code == payload.code).where(Kpi.year == payload.year)
            ).first()
            if duplicate is not None:
                raise ConflictError(f"KPI code already exists for {payload.year}: {payload.code}")
            kpi = Kpi(**payload.model_dump(), created_by=actor_id)
            session.add(kpi)
            session.commit()
            session.refresh(kpi)
            return kpi

    def update_kpi(self, kpi_id: str, payload: KpiUpdate) -> Kpi:
        with self._session() as session:
            kpi = self._get_kpi(session, kpi_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(kpi, key, value)
            measured = session.exec(select(KpiProgress).where(KpiProgress.kpi_id == kpi.id)).first()
            if measured is not None:
                kpi.status = calculate_kpi_status(kpi.current_value, kpi.target_value, kpi.trend)
            kpi.updated_at = now_utc()
            session.add(kpi)
            session.commit()
            session.refresh(kpi)
            return kpi

    def record_progress(self, payload: KpiProgressCreate, actor_id: str | None) -> KpiProgress:
        with self._session() as session:
            kpi = self._get_kpi(session, payload.kpi_id)
            status = calculate_kpi_status(payload.value, kpi.target_value, kpi.trend)
            progress = KpiProgress(
                kpi_id=kpi.id,
                period_label=payload.period_label,
                value=payload.value,
                achievement_pct=achievement_percent(payload.value, kpi.target_value),
                status=status,
                notes=payload.notes,
                recorded_by=actor_id,
            )
            kpi.current_value = payload.value
            kpi.status = status
            kpi.updated_at = now_utc()
            session.add(progress)
            session.add(kpi)
            session.commit()
            session.refresh(progress)
            return progress

    def verify_progress(self, progress_id: str, actor_id: str | None) -> KpiProgress:
        with self._session() as session:
            progress = session.get(KpiProgress, progress_id)
            if progress is None:
                raise NotFoundError("KPI progress not found")
            if progress.is_verified:
                raise ConflictError("KPI progress already verified")
            progress.is_verified = True
            progress.verified_by = actor_id
            progress.verified_at = now_utc()
            session.add(progress)
            session.commit()
            session.refresh(progress)
            return progress

    def list_progress(self, kpi_id: str) -> list[KpiProgress]:
        with self._session() as session:
            self._get_kpi(session, kpi_id)
            statement = (
                select(KpiProgress)
                .where(KpiProgress.kpi_id == kpi_id)
                .order_by(col(KpiProgress.created_at))
            )
            return list(session.exec(statement).all())

    def status_distribution(self, year: int | None = None) -> dict[str, int]:
        distribution = {status.value: 0 for status in KpiStatus}
        for kpi in self.list_kpis(year=year):
            distribution[KpiStatus(kpi.status).value] += 1
        return distribution
