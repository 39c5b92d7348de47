from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from semon.domain.models import now_utc
from semon.infra.store import SqlRecordStore, StoreError


@pytest.fixture()
def store_engine(tmp_path: Path) -> Engine:
    db_path = tmp_path / "record_store_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    return test_engine


def _directorate(code: str, **extra: object) -> dict[str, object]:
    now = now_utc()
    return {
        "id": f"id-{code}",
        "code": code,
        "name": f"Directorate {code}",
        "created_at": now,
        "updated_at": now,
        **extra,
    }


def test_insert_ignores_unknown_columns(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)

    assert store.insert("directorates", _directorate("DIR-001", display="ignored")) is True

    rows = store.get_all("directorates")
    assert len(rows) == 1
    assert rows[0]["code"] == "DIR-001"
    assert "display" not in rows[0]


def test_get_all_keeps_insertion_order(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)
    for code in ("DIR-003", "DIR-001", "DIR-002"):
        store.insert("directorates", _directorate(code))

    assert [row["code"] for row in store.get_all("directorates")] == ["DIR-003", "DIR-001", "DIR-002"]


def test_update_and_delete_report_missing_records(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)
    store.insert("directorates", _directorate("DIR-001"))

    assert store.update("directorates", "id", "id-DIR-001", {"name": "Renamed", "bogus": 1}) is True
    assert store.get_all("directorates")[0]["name"] == "Renamed"
    assert store.update("directorates", "id", "missing", {"name": "X"}) is False

    assert store.delete("directorates", "code", "DIR-001") is True
    assert store.delete("directorates", "code", "DIR-001") is False
    assert store.get_all("directorates") == []


def test_unknown_table_or_key_field_raises(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)

    with pytest.raises(StoreError, match="Table not found"):
        store.get_all("departments")
    with pytest.raises(StoreError, match="Field not found"):
        store.update("directorates", "slug", "x", {})
    with pytest.raises(StoreError, match="Field not found"):
        store.delete("work_units", "slug", "x")


def test_transaction_rolls_back_every_call(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)
    store.insert("directorates", _directorate("DIR-001"))

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.insert("directorates", _directorate("DIR-002"))
            store.delete("directorates", "id", "id-DIR-001")
            # Reads inside the unit of work see its own writes.
            assert [row["code"] for row in store.get_all("directorates")] == ["DIR-002"]
            raise RuntimeError("abort")

    assert [row["code"] for row in store.get_all("directorates")] == ["DIR-001"]


def test_transaction_commits_once_at_exit(store_engine: Engine) -> None:
    store = SqlRecordStore(store_engine)
    outside = SqlRecordStore(store_engine)

    with store.transaction():
        store.insert("directorates", _directorate("DIR-001"))
        assert outside.get_all("directorates") == []

    assert [row["code"] for row in outside.get_all("directorates")] == ["DIR-001"]
