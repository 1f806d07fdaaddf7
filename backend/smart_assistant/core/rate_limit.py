"""
Per-client fixed-window rate limiting for the assistant endpoint.

Clients are identified by a hashed, daily-salted fingerprint of their IP.
Each fingerprint gets `limit` requests per window; the counter resets once
the window has fully elapsed. A burst of up to 2x limit is possible across
a window boundary.

Buckets live in Redis when a client is attached, otherwise in process memory.
Redis errors fail open.
"""
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from smart_assistant.core.errors import RateLimitedError
from smart_assistant.core.logging import get_logger, get_trace_id, set_client_id
from smart_assistant.core.metrics import record_rate_limit_rejection
from smart_assistant.core.privacy import fingerprint_client
from smart_assistant.models.responses import ErrorResponse

logger = get_logger(__name__)

RATE_LIMITED_PATHS = {"/api/smart-assistant"}
CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}

# Prune the in-memory store every N checks
PRUNE_INTERVAL = 100


@dataclass
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract the originating client IP (first X-Forwarded-For hop wins)."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


class FixedWindowRateLimiter:
    """
    Fixed-window counter keyed by client fingerprint.

    The redis_client attribute may be attached after construction (at
    startup, once the connection is up).
    """

    def __init__(
        self,
        limit: int = 10,
        window_seconds: int = 60,
        redis_client=None,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.redis_client = redis_client
        self._clock = clock
        self._buckets: Dict[str, Tuple[int, float]] = {}
        self._checks = 0

    async def check(self, fingerprint: str) -> RateLimitDecision:
        """Count one request for fingerprint and decide whether it may proceed."""
        now = self._clock()

        if self.redis_client is not None:
            try:
                count, window_start = await self._increment_redis(fingerprint, now)
            except Exception as e:
                logger.warning(
                    "rate_limit_check_failed",
                    client_id=fingerprint,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return RateLimitDecision(allowed=True, count=0, limit=self.limit, retry_after=0)
        else:
            count, window_start = self._increment_local(fingerprint, now)

        if count > self.limit:
            retry_after = max(1, math.ceil(window_start + self.window_seconds - now))
            return RateLimitDecision(allowed=False, count=count, limit=self.limit, retry_after=retry_after)

        return RateLimitDecision(allowed=True, count=count, limit=self.limit, retry_after=0)

    def _increment_local(self, fingerprint: str, now: float) -> Tuple[int, float]:
        self._checks += 1
        if self._checks % PRUNE_INTERVAL == 0:
            self._prune(now)

        count, window_start = self._buckets.get(fingerprint, (0, now))
        if now - window_start >= self.window_seconds:
            count, window_start = 0, now
        count += 1
        self._buckets[fingerprint] = (count, window_start)
        return count, window_start

    def _prune(self, now: float) -> None:
        expired = [
            fp for fp, (_, start) in self._buckets.items()
            if now - start >= self.window_seconds * 2
        ]
        for fp in expired:
            del self._buckets[fp]

    async def _increment_redis(self, fingerprint: str, now: float) -> Tuple[int, float]:
        key = f"ratelimit:{fingerprint}"
        data = await self.redis_client.hgetall(key)

        count = int(data.get("count", 0)) if data else 0
        window_start = float(data.get("window_start", now)) if data else now
        if now - window_start >= self.window_seconds:
            count, window_start = 0, now
        count += 1

        await self.redis_client.hset(key, mapping={"count": count, "window_start": window_start})
        await self.redis_client.expire(key, self.window_seconds * 2)
        return count, window_start


def rate_limited_response(error: RateLimitedError, limit: int) -> JSONResponse:
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=ErrorResponse(
            error=error.message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            trace_id=get_trace_id(),
        ).model_dump(),
        headers=CORS_HEADERS,
    )
    response.headers["Retry-After"] = str(error.retry_after)
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = "0"
    return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Apply the container's rate limiter to POST /api/smart-assistant.

    Runs before the body is read; rejected requests do no further work.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in RATE_LIMITED_PATHS:
            return await call_next(request)

        container = getattr(request.app.state, "container", None)
        if container is None:
            return await call_next(request)

        limiter: FixedWindowRateLimiter = container.rate_limiter
        fingerprint = fingerprint_client(
            get_client_ip(request),
            salt_prefix=container.settings.fingerprint_salt_prefix,
        )
        set_client_id(fingerprint)

        decision = await limiter.check(fingerprint)
        if not decision.allowed:
            record_rate_limit_rejection()
            logger.warning(
                "rate_limit_exceeded",
                client_id=fingerprint,
                count=decision.count,
                limit=decision.limit,
                retry_after=decision.retry_after,
            )
            return rate_limited_response(RateLimitedError(decision.retry_after), decision.limit)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
