"""
Rate limiting middleware using token bucket algorithm

Keeps a single public form endpoint from being flooded by one client.
"""
import threading
import time
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable, Dict, Optional, Tuple

from .config import settings
from .errors import submission_response

EXEMPT_PATHS = {"/health", "/"}


class TokenBucket:
    """Token bucket rate limiter with a per-minute and a per-hour bucket per key"""

    def __init__(
        self,
        rate_per_minute: int,
        rate_per_hour: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate_per_minute = rate_per_minute
        self.rate_per_hour = rate_per_hour
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (last_refill, tokens_minute, tokens_hour)
        self.buckets: Dict[str, Tuple[float, float, float]] = {}

    def consume(self, key: str) -> Tuple[bool, int, int]:
        """
        Try to consume a token

        Returns:
            (allowed, remaining_minute, remaining_hour)
        """
        with self._lock:
            now = self._clock()
            last, tokens_minute, tokens_hour = self.buckets.get(
                key, (now, float(self.rate_per_minute), float(self.rate_per_hour))
            )

            elapsed = max(0.0, now - last)
            tokens_minute = min(
                float(self.rate_per_minute),
                tokens_minute + elapsed * self.rate_per_minute / 60,
            )
            tokens_hour = min(
                float(self.rate_per_hour),
                tokens_hour + elapsed * self.rate_per_hour / 3600,
            )

            allowed = tokens_minute >= 1 and tokens_hour >= 1
            if allowed:
                tokens_minute -= 1
                tokens_hour -= 1

            self.buckets[key] = (now, tokens_minute, tokens_hour)
            return allowed, int(tokens_minute), int(tokens_hour)

    def reset_all(self) -> None:
        with self._lock:
            self.buckets.clear()


rate_limiter = TokenBucket(settings.RATE_LIMIT_PER_MINUTE, settings.RATE_LIMIT_PER_HOUR)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware

    Limits default to RATE_LIMIT_PER_MINUTE / RATE_LIMIT_PER_HOUR per client IP.
    """

    def __init__(self, app, limiter: Optional[TokenBucket] = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        # Get client IP (handle proxy headers)
        fallback = request.client.host if request.client else "unknown"
        client_ip = request.headers.get("X-Forwarded-For", fallback).split(",")[0].strip()

        allowed, remaining_minute, remaining_hour = self.limiter.consume(client_ip)

        if not allowed:
            return submission_response(
                status=status.HTTP_429_TOO_MANY_REQUESTS,
                message="Too many requests. Please try again later.",
                headers={
                    "X-RateLimit-Remaining-Minute": str(remaining_minute),
                    "X-RateLimit-Remaining-Hour": str(remaining_hour),
                    "Retry-After": "60",
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Remaining-Minute"] = str(remaining_minute)
        response.headers["X-RateLimit-Remaining-Hour"] = str(remaining_hour)

        return response
