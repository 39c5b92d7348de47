from __future__ import annotations

from sqlmodel import Session, col, select

from semon.domain.models import (
    Activity,
    ActivityCreate,
    ActivityUpdate,
    Program,
    ProgramCreate,
    ProgramUpdate,
    now_utc,
)
from semon.infra.db import get_engine
from semon.services.organization_service import next_code


class ProgramError(Exception):
    pass


class NotFoundError(ProgramError):
    pass


class ConflictError(ProgramError):
    pass


class ProgramService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_program(self, session: Session, program_id: str) -> Program:
        program = session.get(Program, program_id)
        if program is None:
            raise NotFoundError("Program not found")
        return program

    def _refresh_budget_spent(self, session: Session, program_id: str) -> None:
        program = session.get(Program, program_id)
        if program is None:
            return
        activities = session.exec(select(Activity).where(Activity.program_id == program_id)).all()
        program.budget_spent = round(sum(item.total_cost for item in activities), 2)
        program.updated_at = now_utc()
        session.add(program)

    # Programs

    def list_programs(
        self,
        *,
        year: int | None = None,
        work_unit_id: str | None = None,
        goal_id: str | None = None,
    ) -> list[Program]:
        with self._session() as session:
            statement = select(Program)
            if year is not None:
                statement = statement.where(Program.year == year)
            if work_unit_id is not None:
                statement = statement.where(Program.work_unit_id == work_unit_id)
            if goal_id is not None:
                statement = statement.where(Program.goal_id == goal_id)
            return list(session.exec(statement.order_by(col(Program.code))).all())

    def get_program(self, program_id: str) -> Program:
        with self._session() as session:
            return self._get_program(session, program_id)

    def create_program(self, payload: ProgramCreate, actor_id: str | None) -> Program:
        with self._session() as session:
            codes = [item.code for item in session.exec(select(Program)).all()]
            if payload.code and payload.code in codes:
                raise ConflictError(f"Program code already exists: {payload.code}")
            program = Program(
                code=payload.code or next_code("PRG", codes),
                name=payload.name,
                description=payload.description,
                work_unit_id=payload.work_unit_id,
                goal_id=payload.goal_id,
                year=payload.year,
                start_date=payload.start_date,
                end_date=payload.end_date,
                budget_allocated=payload.budget_allocated,
                created_by=actor_id,
            )
            session.add(program)
            session.commit()
            session.refresh(program)
            return program

    def update_program(self, program_id: str, payload: ProgramUpdate) -> Program:
        with self._session() as session:
            program = self._get_program(session, program_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(program, key, value)
            program.updated_at = now_utc()
            session.add(program)
            session.commit()
            session.refresh(program)
            return program

    def delete_program(self, program_id: str) -> Program:
        with self._session() as session:
            program = self._get_program(session, program_id)
            if session.exec(select(Activity).where(Activity.program_id == program_id)).first() is not None:
                raise ConflictError("Cannot delete program with activities")
            session.delete(program)
            session.commit()
            return program

    # Activities

    def list_activities(self, program_id: str | None = None) -> list[Activity]:
        with self._session() as session:
            statement = select(Activity)
            if program_id is not None:
                statement = statement.where(Activity.program_id == program_id)
            return list(session.exec(statement.order_by(col(Activity.code))).all())

    def create_activity(self, payload: ActivityCreate, actor_id: str | None) -> Activity:
        with self._session() as session:
            self._get_program(session, payload.program_id)
            codes = [item.code for item in session.exec(select(Activity)).all()]
            if payload.code and payload.code in codes:
                raise ConflictError(f"Activity code already exists: {payload.code}")
            activity = Activity(
                code=payload.code or next_code("ACT", codes),
                program_id=payload.program_id,
                name=payload.name,
                description=payload.description,
                unit=payload.unit,
                unit_price=payload.unit_price,
                quantity=payload.quantity,
                total_cost=payload.unit_price * payload.quantity,
                start_date=payload.start_date,
                end_date=payload.end_date,
                created_by=actor_id,
            )
            session.add(activity)
            session.flush()
            self._refresh_budget_spent(session, payload.program_id)
            session.commit()
            session.refresh(activity)
            return activity

    def update_activity(self, activity_id: str, payload: ActivityUpdate) -> Activity:
        with self._session() as session:
            activity = session.get(Activity, activity_id)
            if activity is None:
                raise NotFoundError("Activity not found")
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(activity, key, value)
            activity.total_cost = activity.unit_price * activity.quantity
            activity.updated_at = now_utc()
            session.add(activity)
            session.flush()
            self._refresh_budget_spent(session, activity.program_id)
            session.commit()
            session.refresh(activity)
            return activity

    def delete_activity(self, activity_id: str) -> Activity:
        with self._session() as session:
            activity = session.get(Activity, activity_id)
            if activity is None:
                raise NotFoundError("Activity not found")
            session.delete(activity)
            session.flush()
            self._refresh_budget_spent(session, activity.program_id)
            session.commit()
            return activity
