"""Table-oriented record store.

Organization models talk to persistence through ``RecordStore``: named tables
holding rows of plain dicts, with no foreign keys and no indices assumed.
``SqlRecordStore`` backs it with the SQLModel tables of ``semon.domain.models``.

Contract:

* unknown table or unknown key field raises ``StoreError`` immediately;
* a missing record makes ``update``/``delete`` return ``False``;
* row keys that are not columns of the table are ignored;
* ``get_all`` returns rows in insertion order.

``transaction()`` groups every call made inside it into one session that is
committed once at the end and rolled back on any exception.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select

from semon.domain.models import (
    Affair,
    Directorate,
    Position,
    PositionAssignment,
    WorkUnit,
)
from semon.infra.db import get_engine

Row = dict[str, Any]

TABLE_MODELS: dict[str, type[SQLModel]] = {
    "directorates": Directorate,
    "work_units": WorkUnit,
    "affairs": Affair,
    "positions": Position,
    "position_assignments": PositionAssignment,
}


class StoreError(Exception):
    pass


class RecordStore(Protocol):
    def get_all(self, table: str) -> list[Row]: ...

    def insert(self, table: str, row: Row) -> bool: ...

    def update(self, table: str, key_field: str, key_value: Any, partial: Row) -> bool: ...

    def delete(self, table: str, key_field: str, key_value: Any) -> bool: ...

    def transaction(self) -> Any: ...


class SqlRecordStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine
        self._active: Session | None = None

    def _bind(self) -> Engine:
        return self._engine if self._engine is not None else get_engine()

    @staticmethod
    def _model(table: str) -> type[SQLModel]:
        model = TABLE_MODELS.get(table)
        if model is None:
            raise StoreError(f"Table not found: {table}")
        return model

    @staticmethod
    def _columns(model: type[SQLModel]) -> set[str]:
        return set(model.model_fields)

    def _key_column(self, model: type[SQLModel], key_field: str) -> Any:
        if key_field not in self._columns(model):
            raise StoreError(f"Field not found: {model.__tablename__}.{key_field}")
        return getattr(model, key_field)

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._active is not None:
            yield self._active
            return
        with Session(self._bind(), expire_on_commit=False) as session:
            yield session
            session.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._active is not None:
            yield
            return
        with Session(self._bind(), expire_on_commit=False) as session:
            self._active = session
            try:
                yield
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                self._active = None

    def get_all(self, table: str) -> list[Row]:
        model = self._model(table)
        statement = select(model)
        if "created_at" in self._columns(model):
            statement = statement.order_by(getattr(model, "created_at"))
        with self._scope() as session:
            return [item.model_dump() for item in session.exec(statement).all()]

    def insert(self, table: str, row: Row) -> bool:
        model = self._model(table)
        columns = self._columns(model)
        values = {key: value for key, value in row.items() if key in columns}
        record = model.model_validate(values)
        with self._scope() as session:
            session.add(record)
            session.flush()
        return True

    def update(self, table: str, key_field: str, key_value: Any, partial: Row) -> bool:
        model = self._model(table)
        key_column = self._key_column(model, key_field)
        columns = self._columns(model)
        with self._scope() as session:
            record = session.exec(select(model).where(key_column == key_value)).first()
            if record is None:
                return False
            for key, value in partial.items():
                if key in columns:
                    setattr(record, key, value)
            session.add(record)
            session.flush()
        return True

    def delete(self, table: str, key_field: str, key_value: Any) -> bool:
        model = self._model(table)
        key_column = self._key_column(model, key_field)
        with self._scope() as session:
            record = session.exec(select(model).where(key_column == key_value)).first()
            if record is None:
                return False
            session.delete(record)
            session.flush()
        return True
