import os
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable

import redis
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


_DEFAULT_EXEMPT = ("/health", "/metrics")


def _limit_for(request: Request, limit_per_minute: int, auth_boost: int) -> int:
    try:
        base = int(os.getenv("RL_LIMIT_PER_MINUTE_OVERRIDE", str(limit_per_minute)))
    except ValueError:
        base = limit_per_minute
    if request.url.path.startswith("/auth/"):
        base = min(base, 20)
    if request.headers.get("authorization"):
        try:
            boost = int(os.getenv("RL_AUTH_BOOST_OVERRIDE", str(auth_boost)))
        except ValueError:
            boost = auth_boost
        base *= boost
    return base


def _too_many(retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": {"code": "rate_limited", "message": "Too many requests", "details": {"retry_after": retry_after}}},
        headers={"Retry-After": str(retry_after)},
    )


def _client_key(request: Request) -> str:
    auth = request.headers.get("authorization")
    if auth:
        return f"token:{auth[-24:]}"
    client = request.client.host if request.client else "unknown"
    return f"ip:{client}"


class SlidingWindowLimiter(BaseHTTPMiddleware):
    """Per-client sliding window kept in process memory (single worker only)."""

    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2, exempt_paths: Iterable[str] = _DEFAULT_EXEMPT):
        super().__init__(app)
        self.window_seconds = 60
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.exempt_paths = set(exempt_paths)
        self.store: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths or os.getenv("RL_DISABLED", "false").lower() == "true":
            return await call_next(request)
        now = time.time()
        limit = _limit_for(request, self.limit_per_minute, self.auth_boost)
        dq = self.store[_client_key(request)]
        while dq and now - dq[0] > self.window_seconds:
            dq.popleft()
        if len(dq) >= limit:
            return _too_many(max(1, int(self.window_seconds - (now - dq[0]))))
        dq.append(now)
        return await call_next(request)


class RedisRateLimiter(BaseHTTPMiddleware):
    """Fixed one-minute buckets in redis, shared by all workers. Fails open."""

    def __init__(self, app, redis_url: str, limit_per_minute: int = 60, auth_boost: int = 2, prefix: str = "ratelimit", exempt_paths: Iterable[str] = _DEFAULT_EXEMPT):
        super().__init__(app)
        self.redis = self._connect(redis_url)
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.prefix = prefix
        self.exempt_paths = set(exempt_paths)

    def _connect(self, url: str):
        try:
            return redis.from_url(url, decode_responses=True)
        except Exception:
            return None

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths or self.redis is None or os.getenv("RL_DISABLED", "false").lower() == "true":
            return await call_next(request)
        limit = _limit_for(request, self.limit_per_minute, self.auth_boost)
        now = int(time.time())
        key = f"{self.prefix}:{_client_key(request)}:{now // 60}"
        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, 70)
        except Exception:
            return await call_next(request)
        if count > limit:
            return _too_many(60 - (now % 60))
        return await call_next(request)
