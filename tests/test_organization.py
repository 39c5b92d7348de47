from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from semon import main as app_main
from semon.domain.models import AuditLog
from semon.infra import audit, db, redis_state
from semon.infra.store import SqlRecordStore
from semon.services.organization_service import (
    AffairModel,
    DirectorateModel,
    HierarchyModel,
    PositionModel,
    WorkUnitModel,
)


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._store[key] = str(value)
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    def incr(self, key: str) -> int:
        value = int(self._store.get(key, "0")) + 1
        self._store[key] = str(value)
        return value

    def expire(self, key: str, seconds: int) -> bool:
        return key in self._store

    def ping(self) -> bool:
        return True


@pytest.fixture()
def org_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "organization_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()

    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)

    client = TestClient(app_main.app)
    yield client
    client.close()


def _dispatch(
    client: TestClient,
    action: str,
    data: dict[str, Any] | None = None,
    token: str | None = None,
) -> dict[str, Any]:
    response = client.post(
        "/api/dispatch",
        json={"action": action, "data": data or {}, "sessionToken": token},
    )
    assert response.status_code == 200
    return response.json()


def _admin_token(client: TestClient) -> str:
    bootstrap = _dispatch(client, "auth.bootstrap-admin", {"username": "admin", "password": "admin-pass-1"})
    assert bootstrap["success"] is True
    login = _dispatch(client, "auth.login", {"username": "admin", "password": "admin-pass-1"})
    assert login["success"] is True
    return login["data"]["session_token"]


def _create(client: TestClient, token: str, resource: str, data: dict[str, Any]) -> dict[str, Any]:
    body = _dispatch(client, f"{resource}.create", data, token)
    assert body["success"] is True, body
    return body["data"]


def _audit_actions(entity_id: str) -> list[str]:
    with Session(db.engine) as session:
        rows = session.exec(select(AuditLog).where(AuditLog.entity_id == entity_id)).all()
    return [row.action for row in rows]


def test_create_applies_defaults_and_audits(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    row = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    assert row["code"] == "DIR-001"
    assert row["is_active"] is True
    assert row["sort_order"] == 0
    assert row["description"] == ""
    assert row["notes"] == ""
    assert row["active_from"] is not None
    assert row["created_by"] == row["updated_by"]
    assert _audit_actions(row["id"]) == ["CREATE"]


def test_create_rejects_missing_name(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    body = _dispatch(org_client, "directorates.create", {"code": "DIR-001"}, token)

    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert "name" in body["errors"]


def test_create_rejects_duplicate_explicit_code(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    body = _dispatch(org_client, "directorates.create", {"code": "DIR-001", "name": "Other"}, token)

    assert body["success"] is False
    assert body["message"] == "Directorate code already exists: DIR-001"


def test_create_work_unit_requires_existing_directorate(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    body = _dispatch(
        org_client,
        "work-units.create",
        {"name": "Orphan", "directorate_id": "missing-directorate"},
        token,
    )

    assert body["success"] is False
    assert body["message"] == "Directorate not found"


def test_generate_code_uses_highest_suffix(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    _create(org_client, token, "directorates", {"code": "DIR-003", "name": "Planning"})

    body = _dispatch(org_client, "directorates.generate-code", token=token)
    assert body["success"] is True
    assert body["data"]["code"] == "DIR-004"

    generated = _create(org_client, token, "directorates", {"name": "Operations"})
    assert generated["code"] == "DIR-004"

    empty = _dispatch(org_client, "affairs.generate-code", token=token)
    assert empty["data"]["code"] == "AFF-001"


def test_generate_code_does_not_reserve_a_code(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    _create(org_client, token, "positions", {"code": "POS-007", "name": "Head"})

    first = _dispatch(org_client, "positions.generate-code", token=token)
    second = _dispatch(org_client, "positions.generate-code", token=token)

    assert first["data"]["code"] == "POS-008"
    assert second["data"]["code"] == first["data"]["code"]


def test_update_never_overwrites_identity_fields(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    row = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    body = _dispatch(
        org_client,
        "directorates.update",
        {
            "id": row["id"],
            "name": "Finance and Budget",
            "created_by": "someone-else",
            "created_at": "2000-01-01T00:00:00Z",
        },
        token,
    )

    assert body["success"] is True
    updated = body["data"]
    assert updated["id"] == row["id"]
    assert updated["name"] == "Finance and Budget"
    assert updated["code"] == "DIR-001"
    assert updated["created_by"] == row["created_by"]
    assert updated["created_at"] == row["created_at"]
    assert _audit_actions(row["id"]) == ["CREATE", "UPDATE"]


def test_update_unknown_entity_fails(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    body = _dispatch(org_client, "work-units.update", {"id": "missing", "name": "X"}, token)

    assert body["success"] is False
    assert body["message"] == "Work unit not found"


def test_update_refreshes_updated_at(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    row = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    body = _dispatch(org_client, "directorates.update", {"id": row["id"], "notes": "Reviewed"}, token)

    assert body["success"] is True
    assert body["data"]["updated_at"] != row["updated_at"]
    assert body["data"]["created_at"] == row["created_at"]
    assert body["data"]["updated_by"] == row["created_by"]


def test_update_rejects_null_for_required_columns(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )

    renamed = _dispatch(org_client, "directorates.update", {"id": directorate["id"], "name": None}, token)
    assert renamed["success"] is False
    assert renamed["message"] == "Validation failed"
    assert renamed["errors"] == {"name": "Field cannot be null"}

    orphaned = _dispatch(org_client, "work-units.update", {"id": unit["id"], "directorate_id": None}, token)
    assert orphaned["message"] == "Validation failed"
    assert orphaned["errors"] == {"directorate_id": "Field cannot be null"}

    flags = _dispatch(
        org_client,
        "directorates.update",
        {"id": directorate["id"], "is_active": None, "sort_order": None},
        token,
    )
    assert set(flags["errors"]) == {"is_active", "sort_order"}

    assert _dispatch(org_client, "directorates.get", {"id": directorate["id"]}, token)["data"]["name"] == "Finance"
    stored = _dispatch(org_client, "work-units.get", {"id": unit["id"]}, token)["data"]
    assert stored["directorate_id"] == directorate["id"]
    assert _audit_actions(directorate["id"]) == ["CREATE"]


def test_update_may_clear_optional_references(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    head = _create(org_client, token, "positions", {"code": "POS-001", "name": "Head"})
    clerk = _create(
        org_client,
        token,
        "positions",
        {"code": "POS-002", "name": "Clerk", "parent_position_id": head["id"]},
    )

    body = _dispatch(org_client, "positions.update", {"id": clerk["id"], "parent_position_id": None}, token)

    assert body["success"] is True
    assert body["data"]["parent_position_id"] is None

    typed = _dispatch(org_client, "positions.update", {"id": clerk["id"], "position_type": None}, token)
    assert typed["errors"] == {"position_type": "Field cannot be null"}


def test_list_is_stably_sorted_by_sort_order_and_filterable(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    _create(org_client, token, "directorates", {"code": "DIR-A", "name": "A", "sort_order": 2})
    _create(org_client, token, "directorates", {"code": "DIR-B", "name": "B", "sort_order": 1})
    _create(org_client, token, "directorates", {"code": "DIR-C", "name": "C", "sort_order": 1})
    _create(
        org_client,
        token,
        "directorates",
        {"code": "DIR-D", "name": "D", "sort_order": 0, "is_active": False},
    )

    body = _dispatch(org_client, "directorates.list", token=token)
    assert [row["code"] for row in body["data"]] == ["DIR-D", "DIR-B", "DIR-C", "DIR-A"]

    active = _dispatch(org_client, "directorates.list", {"is_active": "true"}, token)
    assert [row["code"] for row in active["data"]] == ["DIR-B", "DIR-C", "DIR-A"]


def test_list_denormalizes_parent_display(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    _create(org_client, token, "affairs", {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]})

    units = _dispatch(org_client, "work-units.list", {"directorate_id": directorate["id"]}, token)
    assert units["data"][0]["directorate_display"] == "DIR-001 - Finance"
    assert units["data"][0]["deputy_position_display"] == "-"

    affairs = _dispatch(org_client, "affairs.list", token=token)
    assert affairs["data"][0]["work_unit_display"] == "WU-001 - Budget"
    assert affairs["data"][0]["directorate_display"] == "DIR-001 - Finance"


def test_get_returns_row_or_not_found(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    row = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    found = _dispatch(org_client, "directorates.get", {"id": row["id"]}, token)
    assert found["success"] is True
    assert found["data"]["code"] == "DIR-001"

    missing = _dispatch(org_client, "directorates.get", {"id": "nope"}, token)
    assert missing["success"] is False
    assert missing["message"] == "Directorate not found"

    no_id = _dispatch(org_client, "directorates.get", {}, token)
    assert no_id["message"] == "Validation failed"
    assert no_id["errors"] == {"id": "id is required"}


def test_delete_blocked_by_active_children(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    affair = _create(
        org_client,
        token,
        "affairs",
        {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]},
    )
    _create(org_client, token, "positions", {"code": "POS-001", "name": "Clerk", "affair_id": affair["id"]})

    blocked = _dispatch(org_client, "directorates.delete", {"id": directorate["id"]}, token)
    assert blocked["success"] is False
    assert blocked["message"] == "Cannot delete directorate with active work units"

    blocked_unit = _dispatch(org_client, "work-units.delete", {"id": unit["id"]}, token)
    assert blocked_unit["message"] == "Cannot delete work unit with active affairs"

    blocked_affair = _dispatch(org_client, "affairs.delete", {"id": affair["id"]}, token)
    assert blocked_affair["message"] == "Cannot delete affair with active positions"

    # Nothing was removed by the refused deletes.
    assert _dispatch(org_client, "directorates.get", {"id": directorate["id"]}, token)["success"] is True


def test_delete_allowed_when_children_inactive(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"], "is_active": False},
    )

    body = _dispatch(org_client, "directorates.delete", {"id": directorate["id"]}, token)

    assert body["success"] is True
    assert body["data"] == {"id": directorate["id"]}
    assert _audit_actions(directorate["id"]) == ["CREATE", "DELETE"]


def test_check_children_counts_active_descendants(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-002", "name": "Closed", "directorate_id": directorate["id"], "is_active": False},
    )
    affair = _create(
        org_client,
        token,
        "affairs",
        {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]},
    )
    _create(org_client, token, "positions", {"code": "POS-001", "name": "Head", "directorate_id": directorate["id"]})
    _create(org_client, token, "positions", {"code": "POS-002", "name": "Clerk", "affair_id": affair["id"]})

    body = _dispatch(org_client, "directorates.check-children", {"id": directorate["id"]}, token)
    assert body["data"] == {
        "has_children": True,
        "work_units": 1,
        "affairs": 1,
        "positions": 2,
        "total": 4,
    }

    empty = _create(org_client, token, "directorates", {"code": "DIR-002", "name": "Empty"})
    none = _dispatch(org_client, "directorates.check-children", {"id": empty["id"]}, token)
    assert none["data"]["has_children"] is False
    assert none["data"]["total"] == 0


def test_get_alternatives_excludes_self_and_inactive(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    d1 = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    d2 = _create(org_client, token, "directorates", {"code": "DIR-002", "name": "Planning"})
    _create(org_client, token, "directorates", {"code": "DIR-003", "name": "Closed", "is_active": False})

    body = _dispatch(org_client, "directorates.get-alternatives", {"id": d1["id"]}, token)

    assert body["data"] == [
        {"id": d2["id"], "code": "DIR-002", "name": "Planning", "display": "DIR-002 - Planning"}
    ]


def test_work_unit_alternatives_share_parent(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    d1 = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    d2 = _create(org_client, token, "directorates", {"code": "DIR-002", "name": "Planning"})
    u1 = _create(org_client, token, "work-units", {"code": "WU-001", "name": "A", "directorate_id": d1["id"]})
    u2 = _create(org_client, token, "work-units", {"code": "WU-002", "name": "B", "directorate_id": d1["id"]})
    _create(org_client, token, "work-units", {"code": "WU-003", "name": "C", "directorate_id": d2["id"]})

    body = _dispatch(org_client, "workUnits.getAlternatives", {"id": u1["id"]}, token)

    assert [item["id"] for item in body["data"]] == [u2["id"]]


def test_cascade_delete_removes_whole_subtree(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    affair = _create(
        org_client,
        token,
        "affairs",
        {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]},
    )
    position = _create(
        org_client,
        token,
        "positions",
        {"code": "POS-001", "name": "Clerk", "affair_id": affair["id"], "work_unit_id": unit["id"]},
    )
    other = _create(org_client, token, "directorates", {"code": "DIR-002", "name": "Planning"})

    body = _dispatch(org_client, "directorates.delete-cascade", {"id": directorate["id"]}, token)

    assert body["success"] is True
    assert body["data"] == {"id": directorate["id"], "deleted": 4, "descendants": 3}
    for resource, row in (
        ("directorates", directorate),
        ("work-units", unit),
        ("affairs", affair),
        ("positions", position),
    ):
        assert _dispatch(org_client, f"{resource}.get", {"id": row["id"]}, token)["success"] is False
        assert _audit_actions(row["id"])[-1] == "DELETE"
    assert _dispatch(org_client, "directorates.get", {"id": other["id"]}, token)["success"] is True


def test_cascade_delete_unknown_entity_fails(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    body = _dispatch(org_client, "affairs.delete-cascade", {"id": "missing"}, token)

    assert body["success"] is False
    assert body["message"] == "Affair not found"


def test_reassign_moves_children_then_deletes(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    d1 = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    d2 = _create(org_client, token, "directorates", {"code": "DIR-002", "name": "Planning"})
    u1 = _create(org_client, token, "work-units", {"code": "WU-001", "name": "A", "directorate_id": d1["id"]})
    u2 = _create(org_client, token, "work-units", {"code": "WU-002", "name": "B", "directorate_id": d1["id"]})

    body = _dispatch(
        org_client,
        "directorates/delete-reassign",
        {"id": d1["id"], "new_directorate_id": d2["id"]},
        token,
    )

    assert body["success"] is True
    assert body["data"] == {"id": d1["id"], "new_parent_id": d2["id"], "reassigned": 2}
    units = _dispatch(org_client, "work-units.list", {"directorate_id": d2["id"]}, token)
    assert {row["id"] for row in units["data"]} == {u1["id"], u2["id"]}
    assert all(row["directorate_display"] == "DIR-002 - Planning" for row in units["data"])
    assert _dispatch(org_client, "directorates.get", {"id": d1["id"]}, token)["success"] is False
    assert _audit_actions(u1["id"]) == ["CREATE", "UPDATE"]
    assert _audit_actions(d1["id"]) == ["CREATE", "DELETE"]


def test_affair_reassign_moves_positions(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    a1 = _create(org_client, token, "affairs", {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]})
    a2 = _create(org_client, token, "affairs", {"code": "AFF-002", "name": "Ledger", "work_unit_id": unit["id"]})
    p1 = _create(org_client, token, "positions", {"code": "POS-001", "name": "Clerk", "affair_id": a1["id"]})
    p2 = _create(org_client, token, "positions", {"code": "POS-002", "name": "Officer", "affair_id": a1["id"]})
    _create(org_client, token, "positions", {"code": "POS-003", "name": "Analyst", "affair_id": a2["id"]})

    before = _dispatch(org_client, "affairs.check-children", {"id": a2["id"]}, token)
    assert before["data"]["positions"] == 1

    body = _dispatch(
        org_client,
        "affairs.delete-reassign",
        {"id": a1["id"], "new_affair_id": a2["id"]},
        token,
    )

    assert body["success"] is True
    assert body["data"] == {"id": a1["id"], "new_parent_id": a2["id"], "reassigned": 2}
    after = _dispatch(org_client, "affairs.check-children", {"id": a2["id"]}, token)
    assert after["data"] == {"has_children": True, "positions": 3, "total": 3}
    assert _dispatch(org_client, "affairs.get", {"id": a1["id"]}, token)["message"] == "Affair not found"
    for position in (p1, p2):
        moved = _dispatch(org_client, "positions.get", {"id": position["id"]}, token)["data"]
        assert moved["affair_id"] == a2["id"]


def test_reassign_requires_target_and_rejects_self(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    d1 = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})

    missing = _dispatch(org_client, "directorates.delete-reassign", {"id": d1["id"]}, token)
    assert missing["message"] == "Validation failed"
    assert missing["errors"] == {"new_parent_id": "new_parent_id is required"}

    to_self = _dispatch(
        org_client,
        "directorates.delete-reassign",
        {"id": d1["id"], "new_parent_id": d1["id"]},
        token,
    )
    assert to_self["success"] is False
    assert _dispatch(org_client, "directorates.get", {"id": d1["id"]}, token)["success"] is True


def test_reassign_to_missing_target_is_reported_by_integrity_check(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    d1 = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(org_client, token, "work-units", {"code": "WU-001", "name": "A", "directorate_id": d1["id"]})

    body = _dispatch(
        org_client,
        "directorates.delete-reassign",
        {"id": d1["id"], "new_parent_id": "ghost-directorate"},
        token,
    )
    assert body["success"] is True

    report = _dispatch(org_client, "database.integrity-check", token=token)
    assert report["success"] is True
    assert report["data"]["count"] == 1
    assert report["data"]["dangling"][0] == {
        "entity_type": "WorkUnit",
        "id": unit["id"],
        "code": "WU-001",
        "field": "directorate_id",
        "missing_id": "ghost-directorate",
    }


def test_position_may_reference_every_level(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    directorate = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    unit = _create(
        org_client,
        token,
        "work-units",
        {"code": "WU-001", "name": "Budget", "directorate_id": directorate["id"]},
    )
    affair = _create(org_client, token, "affairs", {"code": "AFF-001", "name": "Payroll", "work_unit_id": unit["id"]})

    position = _create(
        org_client,
        token,
        "positions",
        {
            "name": "Analyst",
            "position_level": "STAFF",
            "directorate_id": directorate["id"],
            "work_unit_id": unit["id"],
            "affair_id": affair["id"],
        },
    )

    assert position["code"] == "POS-001"
    assert position["position_type"] == "STRUCTURAL"
    listed = _dispatch(org_client, "positions.list", {"affair_id": affair["id"]}, token)
    assert listed["data"][0]["directorate_display"] == "DIR-001 - Finance"
    assert listed["data"][0]["work_unit_display"] == "WU-001 - Budget"
    assert listed["data"][0]["affair_display"] == "AFF-001 - Payroll"


def test_position_cannot_report_to_itself(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    position = _create(org_client, token, "positions", {"code": "POS-001", "name": "Head"})

    body = _dispatch(
        org_client,
        "positions.update",
        {"id": position["id"], "parent_position_id": position["id"]},
        token,
    )

    assert body["success"] is False
    assert body["message"] == "A position cannot report to itself"


def test_assignment_lifecycle_controls_position_delete(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    position = _create(org_client, token, "positions", {"code": "POS-001", "name": "Head"})
    subordinate = _create(
        org_client,
        token,
        "positions",
        {"code": "POS-002", "name": "Deputy", "parent_position_id": position["id"]},
    )
    assignment = _create(
        org_client,
        token,
        "position-assignments",
        {"user_id": "user-1", "position_id": position["id"], "is_primary": True},
    )
    assert assignment["assignment_status"] == "ACTIVE"

    children = _dispatch(org_client, "positions.check-children", {"id": position["id"]}, token)
    assert children["data"] == {"has_children": True, "assignments": 1, "positions": 1, "total": 2}

    blocked = _dispatch(org_client, "positions.delete", {"id": position["id"]}, token)
    assert blocked["message"] == "Cannot delete position with active assignments"

    primary = _dispatch(org_client, "position-assignments.get-primary-position", {"user_id": "user-1"}, token)
    assert primary["data"]["id"] == position["id"]

    ended = _dispatch(org_client, "position-assignments.end", {"id": assignment["id"]}, token)
    assert ended["success"] is True
    assert ended["data"]["assignment_status"] == "ENDED"
    assert ended["data"]["end_date"] is not None

    again = _dispatch(org_client, "position-assignments.end", {"id": assignment["id"]}, token)
    assert again["success"] is False
    assert again["message"] == "Assignment already ended"

    by_user = _dispatch(org_client, "position-assignments.get-by-user", {"user_id": "user-1"}, token)
    assert by_user["data"] == []

    deleted = _dispatch(org_client, "positions.delete", {"id": position["id"]}, token)
    assert deleted["success"] is True
    assert _dispatch(org_client, "positions.get", {"id": subordinate["id"]}, token)["success"] is True


def test_assignment_requires_existing_position(org_client: TestClient) -> None:
    token = _admin_token(org_client)

    body = _dispatch(
        org_client,
        "position-assignments.create",
        {"user_id": "user-1", "position_id": "missing"},
        token,
    )

    assert body["success"] is False
    assert body["message"] == "Position not found"


def test_assignment_list_filters_and_update(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    p1 = _create(org_client, token, "positions", {"code": "POS-001", "name": "Head"})
    p2 = _create(org_client, token, "positions", {"code": "POS-002", "name": "Clerk"})
    a1 = _create(org_client, token, "position-assignments", {"user_id": "user-1", "position_id": p1["id"]})
    _create(org_client, token, "position-assignments", {"user_id": "user-2", "position_id": p2["id"]})

    listed = _dispatch(org_client, "position-assignments.list", {"position_id": p1["id"]}, token)
    assert [row["id"] for row in listed["data"]] == [a1["id"]]
    assert listed["data"][0]["position_display"] == "POS-001 - Head"

    updated = _dispatch(
        org_client,
        "position-assignments.update",
        {"id": a1["id"], "assignment_letter_number": "SK-17/2026", "assignment_status": "ENDED"},
        token,
    )
    assert updated["data"]["assignment_letter_number"] == "SK-17/2026"
    assert updated["data"]["assignment_status"] == "ACTIVE"

    removed = _dispatch(org_client, "position-assignments.delete", {"id": a1["id"]}, token)
    assert removed["success"] is True
    remaining = _dispatch(org_client, "position-assignments.list", token=token)
    assert len(remaining["data"]) == 1


def test_revision_history_lists_entity_audit_newest_first(org_client: TestClient) -> None:
    token = _admin_token(org_client)
    row = _create(org_client, token, "directorates", {"code": "DIR-001", "name": "Finance"})
    _dispatch(org_client, "directorates.update", {"id": row["id"], "name": "Finance 2"}, token)

    body = _dispatch(org_client, "revisions.get-history", {"entity_id": row["id"]}, token)

    assert body["success"] is True
    assert [item["action"] for item in body["data"]] == ["UPDATE", "CREATE"]
    assert body["data"][0]["entity_type"] == "Directorate"


def test_every_level_implements_check_children() -> None:
    store = SqlRecordStore()

    with pytest.raises(TypeError):
        HierarchyModel(store)  # type: ignore[abstract]

    for model in (DirectorateModel, WorkUnitModel, AffairModel, PositionModel):
        assert callable(model(store).check_children)
