from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from sqlmodel import Session, col, select

from semon.domain.models import Okr, OkrCreate, OkrReviewRequest, OkrUpdate, now_utc
from semon.domain.state_machine import OkrStatus, can_transition_okr
from semon.infra.db import get_engine


class OkrError(Exception):
    pass


class NotFoundError(OkrError):
    pass


class ConflictError(OkrError):
    pass


def week_info(day: date) -> dict[str, Any]:
    """Monday-based week containing ``day`` with its ISO number and quarter."""
    week_start = day - timedelta(days=day.weekday())
    iso = week_start.isocalendar()
    return {
        "week_start": week_start,
        "week_end": week_start + timedelta(days=6),
        "week_number": iso.week,
        "year": iso.year,
        "quarter": (day.month - 1) // 3 + 1,
    }


class OkrService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_okr(self, session: Session, okr_id: str) -> Okr:
        okr = session.get(Okr, okr_id)
        if okr is None:
            raise NotFoundError("OKR not found")
        return okr

    def _transition(self, okr: Okr, target: OkrStatus) -> None:
        if not can_transition_okr(OkrStatus(okr.status), target):
            raise ConflictError(f"OKR cannot move from {okr.status} to {target}")
        okr.status = target

    def current_week(self, today: date | None = None) -> dict[str, Any]:
        return week_info(today or now_utc().date())

    def get_okr(self, okr_id: str) -> Okr:
        with self._session() as session:
            return self._get_okr(session, okr_id)

    def list_by_user(
        self,
        user_id: str,
        *,
        year: int | None = None,
        quarter: int | None = None,
    ) -> list[Okr]:
        with self._session() as session:
            statement = select(Okr).where(Okr.user_id == user_id)
            if year is not None:
                statement = statement.where(Okr.year == year)
            if quarter is not None:
                statement = statement.where(Okr.quarter == quarter)
            statement = statement.order_by(col(Okr.week_start).desc())
            return list(session.exec(statement).all())

    def pending_reviews(self) -> list[Okr]:
        with self._session() as session:
            statement = (
                select(Okr)
                .where(Okr.status == OkrStatus.SUBMITTED)
                .order_by(col(Okr.submitted_at))
            )
            return list(session.exec(statement).all())

    def create_okr(self, user_id: str, payload: OkrCreate) -> Okr:
        info = week_info(payload.week_of or now_utc().date())
        with self._session() as session:
            duplicate = session.exec(
                select(Okr)
                .where(Okr.user_id == user_id)
                .where(Okr.week_start == info["week_start"])
            ).first()
            if duplicate is not None:
                raise ConflictError("OKR already exists for this week")
            okr = Okr(
                user_id=user_id,
                objective=payload.objective,
                key_results=payload.key_results,
                progress=payload.progress,
                **info,
            )
            session.add(okr)
            session.commit()
            session.refresh(okr)
            return okr

    def update_okr(self, okr_id: str, user_id: str, payload: OkrUpdate) -> Okr:
        with self._session() as session:
            okr = self._get_okr(session, okr_id)
            if okr.user_id != user_id:
                raise ConflictError("Only the owner can edit this OKR")
            if okr.status != OkrStatus.DRAFT:
                raise ConflictError("Only draft OKRs can be edited")
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(okr, key, value)
            okr.updated_at = now_utc()
            session.add(okr)
            session.commit()
            session.refresh(okr)
            return okr

    def submit_okr(self, okr_id: str, user_id: str) -> Okr:
        with self._session() as session:
            okr = self._get_okr(session, okr_id)
            if okr.user_id != user_id:
                raise ConflictError("Only the owner can submit this OKR")
            self._transition(okr, OkrStatus.SUBMITTED)
            okr.submitted_at = now_utc()
            okr.updated_at = okr.submitted_at
            session.add(okr)
            session.commit()
            session.refresh(okr)
            return okr

    def review_okr(self, okr_id: str, reviewer_id: str | None, payload: OkrReviewRequest) -> Okr:
        with self._session() as session:
            okr = self._get_okr(session, okr_id)
            self._transition(okr, OkrStatus.APPROVED if payload.approved else OkrStatus.REVIEWED)
            okr.reviewed_by = reviewer_id
            okr.reviewed_at = now_utc()
            okr.review_notes = payload.review_notes
            okr.updated_at = okr.reviewed_at
            session.add(okr)
            session.commit()
            session.refresh(okr)
            return okr
