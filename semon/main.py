from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from semon.api.routers import dispatch
from semon.infra.db import check_db_ready
from semon.infra.redis_state import check_redis_ready

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title="strategic-execution-monitor",
    description="Organization hierarchy and strategic execution monitoring behind one action dispatcher.",
    version="0.1.0",
)

app.include_router(dispatch.router, prefix="/api", tags=["dispatch"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
    }
    if not (db_ok and redis_ok):
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
