"""
Per-client request limits for the CuraGo API.

Each endpoint gets its own sliding-window limiter keyed by client IP. Routes
that end in a Gemini call get the tighter limits.
"""
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import HTTPException, Request

from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)


class RateLimiter:
    """Sliding-window counter of request timestamps per identifier."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: dict[str, list[float]] = defaultdict(list)
        self._clock = clock

    def is_allowed(self, identifier: str) -> tuple[bool, int, int]:
        """
        Record a request for ``identifier`` if it fits in the window.

        Returns:
            (allowed, requests_remaining, retry_after_seconds); retry_after is
            0 when the request was allowed.
        """
        now = self._clock()
        window_start = now - self.window_seconds
        recent = [ts for ts in self.requests[identifier] if ts > window_start]
        self.requests[identifier] = recent

        if len(recent) >= self.max_requests:
            retry_after = int(min(recent) + self.window_seconds - now) + 1
            return False, 0, max(retry_after, 1)

        recent.append(now)
        return True, self.max_requests - len(recent), 0

    def reset(self, identifier: Optional[str] = None):
        if identifier is None:
            self.requests.clear()
        else:
            self.requests.pop(identifier, None)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 10
    window_seconds: int = 60


ENDPOINT_LIMITS: dict[str, RateLimitConfig] = {
    # Chat turns are cheap when cached or answered by triage rules
    "chat": RateLimitConfig(max_requests=30),
    "symptom-analysis": RateLimitConfig(max_requests=20),
    # One Gemini call per symptom plus the analysis call
    "ai-symptom-analysis": RateLimitConfig(max_requests=10),
    "detect-symptoms": RateLimitConfig(max_requests=30),
    "medical-report": RateLimitConfig(max_requests=10),
}


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitManager:
    """Lazily creates one limiter per endpoint."""

    def __init__(self, limits: Optional[dict[str, RateLimitConfig]] = None):
        self.limits = ENDPOINT_LIMITS if limits is None else limits
        self.limiters: dict[str, RateLimiter] = {}

    def get_limiter(self, endpoint: str) -> RateLimiter:
        if endpoint not in self.limiters:
            config = self.limits.get(endpoint, RateLimitConfig())
            self.limiters[endpoint] = RateLimiter(
                max_requests=config.max_requests,
                window_seconds=config.window_seconds,
            )
        return self.limiters[endpoint]

    def check_rate_limit(self, endpoint: str, request: Request) -> dict[str, str]:
        """
        Count ``request`` against ``endpoint``'s limit.

        Returns the X-RateLimit-* headers for the response.

        Raises:
            HTTPException: 429 with Retry-After when the limit is exceeded.
        """
        limiter = self.get_limiter(endpoint)
        client_ip = client_identifier(request)
        allowed, remaining, retry_after = limiter.is_allowed(client_ip)

        headers = {
            "X-RateLimit-Limit": str(limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Window": str(limiter.window_seconds),
        }
        if not allowed:
            headers["Retry-After"] = str(retry_after)
            logger.warning(
                "Rate limit exceeded",
                endpoint=endpoint,
                limit=limiter.max_requests,
                window_seconds=limiter.window_seconds,
                retry_after=retry_after,
            )
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers=headers,
            )
        return headers

    def reset(self):
        self.limiters.clear()


rate_limit_manager = RateLimitManager()


def check_rate_limit(endpoint: str, request: Request) -> dict[str, str]:
    return rate_limit_manager.check_rate_limit(endpoint, request)
