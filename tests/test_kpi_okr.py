from __future__ import annotations

from collections.abc import Generator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from semon import main as app_main
from semon.domain.models import KpiStatus, KpiTrend
from semon.infra import audit, db, redis_state
from semon.services.kpi_service import achievement_percent, calculate_kpi_status
from semon.services.okr_service import week_info


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
def performance_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "performance_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
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
    assert _dispatch(client, "auth.bootstrap-admin", {"username": "admin", "password": "admin-pass-1"})["success"]
    login = _dispatch(client, "auth.login", {"username": "admin", "password": "admin-pass-1"})
    return login["data"]["session_token"]


def _staff_token(client: TestClient, admin_token: str) -> str:
    roles = _dispatch(client, "roles.list", token=admin_token)["data"]
    staff_role = next(role["id"] for role in roles if role["code"] == "STAFF")
    _dispatch(
        client,
        "users.create",
        {"username": "staff", "password": "staff-pass-1", "role_id": staff_role},
        admin_token,
    )
    return _dispatch(client, "auth.login", {"username": "staff", "password": "staff-pass-1"})["data"]["session_token"]


@pytest.mark.parametrize(
    ("current", "target", "trend", "expected"),
    [
        (95, 100, KpiTrend.HIGHER_BETTER, KpiStatus.ON_TRACK),
        (90, 100, KpiTrend.HIGHER_BETTER, KpiStatus.ON_TRACK),
        (75, 100, KpiTrend.HIGHER_BETTER, KpiStatus.AT_RISK),
        (74.99, 100, KpiTrend.HIGHER_BETTER, KpiStatus.OFF_TRACK),
        (100, 100, KpiTrend.LOWER_BETTER, KpiStatus.ON_TRACK),
        (115, 100, KpiTrend.LOWER_BETTER, KpiStatus.AT_RISK),
        (130, 100, KpiTrend.LOWER_BETTER, KpiStatus.OFF_TRACK),
        (10, 0, KpiTrend.HIGHER_BETTER, KpiStatus.UNKNOWN),
    ],
)
def test_calculate_kpi_status_thresholds(
    current: float,
    target: float,
    trend: KpiTrend,
    expected: KpiStatus,
) -> None:
    assert calculate_kpi_status(current, target, trend) == expected


def test_achievement_percent_rounds_and_skips_zero_target() -> None:
    assert achievement_percent(1, 3) == 33.33
    assert achievement_percent(5, 0) is None


def test_recording_progress_updates_kpi(performance_client: TestClient) -> None:
    token = _admin_token(performance_client)
    kpi = _dispatch(
        performance_client,
        "kpis.create",
        {"code": "KPI-01", "name": "Service coverage", "year": 2026, "target_value": 200},
        token,
    )["data"]
    assert kpi["status"] == "UNKNOWN"

    duplicate = _dispatch(
        performance_client,
        "kpis.create",
        {"code": "KPI-01", "name": "Copy", "year": 2026, "target_value": 1},
        token,
    )
    assert duplicate["message"] == "KPI code already exists for 2026: KPI-01"

    progress = _dispatch(
        performance_client,
        "kpis.progress.record",
        {"kpi_id": kpi["id"], "period_label": "2026-Q1", "value": 160},
        token,
    )["data"]
    assert progress["achievement_pct"] == 80.0
    assert progress["status"] == "AT_RISK"
    assert progress["is_verified"] is False

    listed = _dispatch(performance_client, "kpis.list", {"year": 2026}, token)["data"]
    assert listed[0]["current_value"] == 160.0
    assert listed[0]["status"] == "AT_RISK"

    retargeted = _dispatch(performance_client, "kpis.update", {"id": kpi["id"], "target_value": 170}, token)
    assert retargeted["data"]["status"] == "ON_TRACK"

    by_status = _dispatch(performance_client, "kpis.list", {"status": "ON_TRACK"}, token)["data"]
    assert [item["code"] for item in by_status] == ["KPI-01"]
    unknown_status = _dispatch(performance_client, "kpis.list", {"status": "GREAT"}, token)
    assert unknown_status["errors"] == {"status": "Unknown KPI status"}


def test_update_without_progress_keeps_unknown_status(performance_client: TestClient) -> None:
    token = _admin_token(performance_client)
    kpi = _dispatch(
        performance_client,
        "kpis.create",
        {"code": "KPI-02", "name": "Complaints", "year": 2026, "target_value": 10, "trend": "LOWER_BETTER"},
        token,
    )["data"]

    updated = _dispatch(performance_client, "kpis.update", {"id": kpi["id"], "target_value": 20}, token)

    assert updated["data"]["target_value"] == 20.0
    assert updated["data"]["status"] == "UNKNOWN"


def test_progress_can_be_verified_once(performance_client: TestClient) -> None:
    token = _admin_token(performance_client)
    kpi = _dispatch(
        performance_client,
        "kpis.create",
        {"code": "KPI-01", "name": "Service coverage", "year": 2026, "target_value": 100},
        token,
    )["data"]
    progress = _dispatch(
        performance_client,
        "kpis.progress.record",
        {"kpi_id": kpi["id"], "period_label": "2026-Q1", "value": 92},
        token,
    )["data"]

    verified = _dispatch(performance_client, "kpis.progress.verify", {"id": progress["id"]}, token)
    assert verified["data"]["is_verified"] is True
    assert verified["data"]["verified_by"] is not None

    again = _dispatch(performance_client, "kpis.progress.verify", {"id": progress["id"]}, token)
    assert again["success"] is False
    assert again["message"] == "KPI progress already verified"

    history = _dispatch(performance_client, "kpis.progress.list", {"kpi_id": kpi["id"]}, token)["data"]
    assert [item["period_label"] for item in history] == ["2026-Q1"]

    missing = _dispatch(
        performance_client,
        "kpis.progress.record",
        {"kpi_id": "missing", "period_label": "2026-Q1", "value": 1},
        token,
    )
    assert missing["message"] == "KPI not found"


def test_week_info_is_monday_based() -> None:
    info = week_info(date(2026, 10, 14))

    assert info["week_start"] == date(2026, 10, 12)
    assert info["week_end"] == date(2026, 10, 18)
    assert info["week_number"] == date(2026, 10, 12).isocalendar().week
    assert info["year"] == 2026
    assert info["quarter"] == 4


def test_okr_lifecycle(performance_client: TestClient) -> None:
    admin = _admin_token(performance_client)
    staff = _staff_token(performance_client, admin)

    created = _dispatch(
        performance_client,
        "okrs.create",
        {
            "objective": "Close the audit backlog",
            "key_results": [{"description": "Resolve 10 findings", "done": False}],
            "week_of": "2026-10-14",
        },
        staff,
    )
    assert created["success"] is True, created
    okr = created["data"]
    assert okr["week_start"] == "2026-10-12"
    assert okr["status"] == "DRAFT"

    duplicate = _dispatch(
        performance_client,
        "okrs.create",
        {"objective": "Second try", "week_of": "2026-10-16"},
        staff,
    )
    assert duplicate["message"] == "OKR already exists for this week"

    updated = _dispatch(performance_client, "okrs.update", {"id": okr["id"], "progress": 60}, staff)
    assert updated["data"]["progress"] == 60.0

    not_owner = _dispatch(performance_client, "okrs.update", {"id": okr["id"], "progress": 70}, admin)
    assert not_owner["message"] == "Only the owner can edit this OKR"

    submitted = _dispatch(performance_client, "okrs.submit", {"id": okr["id"]}, staff)
    assert submitted["data"]["status"] == "SUBMITTED"
    assert submitted["data"]["submitted_at"] is not None

    locked = _dispatch(performance_client, "okrs.update", {"id": okr["id"], "progress": 80}, staff)
    assert locked["message"] == "Only draft OKRs can be edited"

    staff_review = _dispatch(performance_client, "okrs.review", {"id": okr["id"], "approved": True}, staff)
    assert staff_review["error"] == "Missing permission: okr.approve"

    pending = _dispatch(performance_client, "okrs.pending-reviews", token=admin)["data"]
    assert [item["id"] for item in pending] == [okr["id"]]

    reviewed = _dispatch(
        performance_client,
        "okrs.review",
        {"id": okr["id"], "approved": False, "review_notes": "Add evidence"},
        admin,
    )
    assert reviewed["data"]["status"] == "REVIEWED"
    assert reviewed["data"]["review_notes"] == "Add evidence"
    assert _dispatch(performance_client, "okrs.pending-reviews", token=admin)["data"] == []

    twice = _dispatch(performance_client, "okrs.review", {"id": okr["id"], "approved": True}, admin)
    assert twice["success"] is False

    mine = _dispatch(performance_client, "okrs.get", {"year": 2026}, staff)["data"]
    assert [item["id"] for item in mine] == [okr["id"]]
    assert _dispatch(performance_client, "okrs.get", token=admin)["data"] == []


def test_okr_approval(performance_client: TestClient) -> None:
    admin = _admin_token(performance_client)
    okr = _dispatch(performance_client, "okrs.create", {"objective": "Ship the report"}, admin)["data"]

    draft_review = _dispatch(performance_client, "okrs.review", {"id": okr["id"], "approved": True}, admin)
    assert draft_review["success"] is False

    _dispatch(performance_client, "okrs.submit", {"id": okr["id"]}, admin)
    approved = _dispatch(performance_client, "okrs.review", {"id": okr["id"], "approved": True}, admin)
    assert approved["data"]["status"] == "APPROVED"

    week = _dispatch(performance_client, "okrs.get-current-week", token=admin)["data"]
    assert set(week) == {"week_start", "week_end", "week_number", "year", "quarter"}
