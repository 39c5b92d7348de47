from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
MAX_CACHE_TTL_SECONDS = 21600


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(REDIS_URL, decode_responses=True)


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        return False


def cache_get_json(key: str) -> Any | None:
    raw = get_redis().get(key)
    if raw is None:
        return None
    return json.loads(raw)


def cache_set_json(key: str, value: Any, ttl_seconds: int) -> None:
    ttl = max(1, min(ttl_seconds, MAX_CACHE_TTL_SECONDS))
    get_redis().set(key, json.dumps(value, default=str), ex=ttl)


def check_rate_limit(
    identifier: str,
    *,
    max_requests: int | None = None,
    window_seconds: int | None = None,
) -> bool:
    """Count one request for ``identifier`` in a fixed window.

    Returns ``False`` once the count exceeds the ceiling. The window starts
    with the first request and is not extended by later ones. When Redis is
    unreachable the request is allowed.
    """
    ceiling = max_requests if max_requests is not None else RATE_LIMIT_MAX_REQUESTS
    window = window_seconds if window_seconds is not None else RATE_LIMIT_WINDOW_SECONDS
    key = f"rate_limit:{identifier}"
    try:
        client = get_redis()
        count = int(client.incr(key))
        if count == 1:
            client.expire(key, window)
    except RedisError:
        logger.warning("rate limiter unavailable, allowing request", exc_info=True)
        return True
    return count <= ceiling
