"""Per-client fixed-window request quotas for write endpoints.

Counters live in Redis so every API process shares them. When Redis is
unreachable the process keeps its own counters until it comes back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import HTTPException, Request
import redis.asyncio as redis

from config import settings

logger = logging.getLogger(__name__)

# window key -> requests seen in that window
_local_counters: Dict[str, int] = {}
_local_lock = asyncio.Lock()


@dataclass(frozen=True)
class Quota:
    scope: str
    limit: int
    window_seconds: int

    def window_key(self, client: str, now: float) -> str:
        window = int(now // self.window_seconds)
        return f"collections:rate:{self.scope}:{client}:{window}"


def _caller(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client and request.client.host else "unknown"


async def _count_in_redis(key: str, ttl: int) -> int:
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl, nx=True)
            seen, _ = await pipe.execute()
    finally:
        await client.aclose()
    return int(seen)


async def _count_locally(key: str) -> int:
    async with _local_lock:
        prefix = key.rsplit(":", 1)[0] + ":"
        for stale in [k for k in _local_counters if k.startswith(prefix) and k != key]:
            del _local_counters[stale]
        _local_counters[key] = _local_counters.get(key, 0) + 1
        return _local_counters[key]


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[[Request], None]:
    """Dependency factory: at most ``limit`` calls per ``window_seconds`` per caller."""
    quota = Quota(scope=prefix, limit=limit, window_seconds=window_seconds)

    async def _enforce(request: Request):
        if getattr(request.app.state, "disable_rate_limits", False):
            return
        key = quota.window_key(_caller(request), time.time())
        try:
            seen = await _count_in_redis(key, quota.window_seconds)
        except Exception as exc:
            logger.debug("Rate limit store unavailable, counting in process: %s", exc)
            seen = await _count_locally(key)
        if seen > quota.limit:
            raise HTTPException(
                status_code=429,
                detail=f"Too many {quota.scope} requests; retry in the next window.",
            )

    return _enforce
