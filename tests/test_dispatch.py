from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from semon import main as app_main
from semon.api.dispatcher import ROUTES, Action, normalize_action, parse_action
from semon.infra import audit, db, redis_state
from semon.services import organization_service


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
def dispatch_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "dispatch_test.db"
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


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


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


def _role_id(client: TestClient, token: str, code: str) -> str:
    roles = _dispatch(client, "roles.list", token=token)["data"]
    return next(role["id"] for role in roles if role["code"] == code)


def _user_token(client: TestClient, admin_token: str, username: str, role_code: str) -> str:
    created = _dispatch(
        client,
        "users.create",
        {"username": username, "password": "user-pass-1", "role_id": _role_id(client, admin_token, role_code)},
        admin_token,
    )
    assert created["success"] is True, created
    login = _dispatch(client, "auth.login", {"username": username, "password": "user-pass-1"})
    assert login["success"] is True
    return login["data"]["session_token"]


def test_normalize_action_folds_aliases() -> None:
    assert normalize_action("workUnits.getAlternatives") == "work-units.get-alternatives"
    assert normalize_action("work_units/delete_cascade") == "work-units.delete-cascade"
    assert normalize_action(" Directorates.List ") == "directorates.list"
    assert normalize_action("kpis.progress.record") == "kpis.progress.record"
    assert parse_action("positionAssignments/getByUser") is Action.ASSIGNMENTS_BY_USER
    assert parse_action("directorates.explode") is None


def test_every_action_has_a_route() -> None:
    assert set(ROUTES) == set(Action)


def test_unknown_action_fails(dispatch_client: TestClient) -> None:
    body = _dispatch(dispatch_client, "directorates.explode")

    assert body["success"] is False
    assert body["message"] == "Unknown action: directorates.explode"


def test_protected_action_requires_session(dispatch_client: TestClient) -> None:
    missing = _dispatch(dispatch_client, "directorates.list")
    assert missing["success"] is False
    assert missing["message"] == "Unauthorized"
    assert missing["error"] == "Session token is required"

    bogus = _dispatch(dispatch_client, "directorates.list", token="not-a-token")
    assert bogus["message"] == "Unauthorized"
    assert bogus["error"] == "Invalid or expired session"


def test_logout_revokes_session(dispatch_client: TestClient) -> None:
    token = _admin_token(dispatch_client)
    assert _dispatch(dispatch_client, "directorates.list", token=token)["success"] is True

    assert _dispatch(dispatch_client, "auth.logout", token=token)["success"] is True

    after = _dispatch(dispatch_client, "directorates.list", token=token)
    assert after["message"] == "Unauthorized"


def test_permission_matrix_is_enforced(dispatch_client: TestClient) -> None:
    admin = _admin_token(dispatch_client)
    viewer = _user_token(dispatch_client, admin, "viewer", "VIEWER")

    listed = _dispatch(dispatch_client, "directorates.list", token=viewer)
    assert listed["success"] is True

    denied = _dispatch(dispatch_client, "directorates.create", {"name": "Finance"}, viewer)
    assert denied["success"] is False
    assert denied["message"] == "Forbidden"
    assert denied["error"] == "Missing permission: organization.create"

    cascade = _dispatch(dispatch_client, "directorates.delete-cascade", {"id": "x"}, viewer)
    assert cascade["error"] == "Missing permission: organization.delete"

    users = _dispatch(dispatch_client, "users.list", token=viewer)
    assert users["error"] == "Missing permission: users.read"


def test_staff_can_record_but_not_verify_progress(dispatch_client: TestClient) -> None:
    admin = _admin_token(dispatch_client)
    staff = _user_token(dispatch_client, admin, "staff", "STAFF")
    kpi = _dispatch(
        dispatch_client,
        "kpis.create",
        {"code": "KPI-01", "name": "Coverage", "year": 2026, "target_value": 100},
        admin,
    )["data"]

    recorded = _dispatch(
        dispatch_client,
        "kpis.progress.record",
        {"kpi_id": kpi["id"], "period_label": "2026-Q1", "value": 80},
        staff,
    )
    assert recorded["success"] is True

    verify = _dispatch(dispatch_client, "kpis.progress.verify", {"id": recorded["data"]["id"]}, staff)
    assert verify["message"] == "Forbidden"
    assert verify["error"] == "Missing permission: kpi.approve"


def test_rate_limit_applies_per_session_token(
    dispatch_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    token = _admin_token(dispatch_client)
    monkeypatch.setattr(redis_state, "RATE_LIMIT_MAX_REQUESTS", 2)

    assert _dispatch(dispatch_client, "directorates.list", token=token)["success"] is True
    assert _dispatch(dispatch_client, "directorates.list", token=token)["success"] is True
    limited = _dispatch(dispatch_client, "directorates.list", token=token)

    assert limited["success"] is False
    assert limited["message"] == "Rate limit exceeded. Please try again later."
    # Requests without a token are not counted.
    assert _dispatch(dispatch_client, "auth.login", {"username": "admin", "password": "admin-pass-1"})["success"]


def test_resource_route_reads_header_tokens(dispatch_client: TestClient) -> None:
    token = _admin_token(dispatch_client)

    created = dispatch_client.post(
        "/api/directorates/create",
        json={"code": "DIR-001", "name": "Finance"},
        headers=_auth_header(token),
    )
    assert created.status_code == 200
    assert created.json()["success"] is True

    listed = dispatch_client.post(
        "/api/workUnits/list",
        json={},
        headers={"X-Session-Token": token},
    )
    assert listed.status_code == 200
    assert listed.json() == {"success": True, "data": [], "message": None, "errors": None, "error": None}

    anonymous = dispatch_client.post("/api/directorates/list", json={})
    assert anonymous.status_code == 200
    assert anonymous.json()["message"] == "Unauthorized"


def test_unexpected_errors_become_internal_server_error(
    dispatch_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    token = _admin_token(dispatch_client)

    def _boom(self: object, filters: object = None) -> list[dict[str, Any]]:
        raise RuntimeError("store offline")

    monkeypatch.setattr(organization_service.DirectorateModel, "get_all", _boom)

    body = _dispatch(dispatch_client, "directorates.list", token=token)

    assert body["success"] is False
    assert body["message"] == "Internal server error"
    assert body["error"] == "store offline"


def test_current_user_includes_permissions_and_primary_position(dispatch_client: TestClient) -> None:
    token = _admin_token(dispatch_client)

    body = _dispatch(dispatch_client, "auth.getCurrentUser", token=token)

    assert body["success"] is True
    assert body["data"]["user"]["username"] == "admin"
    assert body["data"]["permissions"]["organization"]["delete"] is True
    assert body["data"]["primary_position"] is None
