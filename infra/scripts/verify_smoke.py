from __future__ import annotations

import asyncio
import os
import time
from typing import Any
from uuid import uuid4

import httpx


def _assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


async def _wait_ok(client: httpx.AsyncClient, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    last_status = "n/a"
    last_body = ""
    while time.monotonic() < deadline:
        try:
            response = await client.get(path)
            if response.status_code == 200:
                return
            last_status = str(response.status_code)
            last_body = response.text
        except httpx.HTTPError as exc:
            last_status = "http_error"
            last_body = str(exc)
        await asyncio.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}, last_status={last_status}, detail={last_body}")


async def _dispatch(
    client: httpx.AsyncClient,
    action: str,
    data: dict[str, Any] | None = None,
    token: str | None = None,
) -> dict[str, Any]:
    response = await client.post(
        "/api/dispatch",
        json={"action": action, "data": data or {}, "sessionToken": token},
    )
    _assert_status(response, 200)
    return response.json()


def _expect_success(action: str, body: dict[str, Any]) -> Any:
    if not body.get("success"):
        raise RuntimeError(f"{action} failed: {body}")
    return body.get("data")


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://app:8000").rstrip("/")
    username = os.getenv("SMOKE_USERNAME", "smoke-admin")
    password = os.getenv("SMOKE_PASSWORD", "smoke-admin-pass")
    run_id = uuid4().hex[:6].upper()

    timeout = httpx.Timeout(20.0)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        await _wait_ok(client, "/healthz")
        await _wait_ok(client, "/readyz")

        # Bootstrap is refused once any user exists; the login below covers reruns.
        await _dispatch(client, "auth.bootstrap-admin", {"username": username, "password": password})
        login = _expect_success(
            "auth.login",
            await _dispatch(client, "auth.login", {"username": username, "password": password}),
        )
        token = login["session_token"]

        directorate = _expect_success(
            "directorates.create",
            await _dispatch(
                client,
                "directorates.create",
                {"code": f"SMK-{run_id}", "name": f"Smoke directorate {run_id}"},
                token,
            ),
        )
        work_unit = _expect_success(
            "work-units.create",
            await _dispatch(
                client,
                "workUnits.create",
                {"name": f"Smoke unit {run_id}", "directorate_id": directorate["id"]},
                token,
            ),
        )

        children = _expect_success(
            "directorates.check-children",
            await _dispatch(client, "directorates/check-children", {"id": directorate["id"]}, token),
        )
        if children["work_units"] != 1:
            raise RuntimeError(f"unexpected child counts: {children}")

        blocked = await _dispatch(client, "directorates.delete", {"id": directorate["id"]}, token)
        if blocked.get("success"):
            raise RuntimeError("directorate with active work units was deleted")

        cascade = _expect_success(
            "directorates.delete-cascade",
            await _dispatch(client, "directorates.delete-cascade", {"id": directorate["id"]}, token),
        )
        if cascade["descendants"] != 1:
            raise RuntimeError(f"unexpected cascade result: {cascade}")
        lookup = await _dispatch(client, "work-units.get", {"id": work_unit["id"]}, token)
        if lookup.get("success"):
            raise RuntimeError("cascade did not remove work unit")

        await _dispatch(client, "auth.logout", token=token)

    print("verify_smoke: healthz/readyz + login + hierarchy create/check/cascade ok")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
