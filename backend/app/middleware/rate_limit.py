"""
JBin Backend — Rate Limiting
==============================

What:  Per-client sliding window quotas.
How:   SlidingWindowRateLimiter keeps, per client key, the timestamps of the
       requests counted in the current window. RateLimitMiddleware applies the
       general API quota to every /api/* request; the create route applies a
       second, stricter limiter through a dependency.
Who:   Limiters are built by create_app() and stored on app.state.

Algorithm: Sliding Window Log
    1. Drop timestamps older than the window
    2. If remaining count >= limit → reject; retry after the oldest expires
    3. Otherwise record the current timestamp and allow
    Rejected requests are not recorded, so retrying while locked out does
    not extend the lockout.

Concurrency:
    hit() contains no await, so check-and-record is atomic on the event loop.
    State is process-local and resets on restart.

Client identity:
    The socket peer address, or the last X-Forwarded-For hop when the service
    runs behind one trusted reverse proxy (trust_proxy). Any client can forge
    earlier hops, so only the hop appended by the proxy is used.
"""

import logging
import math
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the oldest counted request leaves the window

    @property
    def retry_after(self) -> int:
        return 0 if self.allowed else self.reset_after

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class SlidingWindowRateLimiter:
    """
    In-memory sliding window limiter keyed by an arbitrary string.

    Args:
        max_requests:   Requests allowed per window
        window_seconds: Window length
        clock:          Monotonic time source (tests inject a fake)
    """

    # Drop idle keys every N recorded requests
    CLEANUP_INTERVAL = 1000

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._recorded = 0

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for `key` unless its quota is exhausted."""
        now = self._clock()
        window_start = now - self.window_seconds

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= self.max_requests:
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_after=self._seconds_until_expiry(timestamps[0], now),
            )

        timestamps.append(now)
        self._recorded += 1
        if self._recorded % self.CLEANUP_INTERVAL == 0:
            self._cleanup_inactive(window_start)

        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(timestamps),
            reset_after=self._seconds_until_expiry(timestamps[0], now),
        )

    def reset(self) -> None:
        self._requests.clear()
        self._recorded = 0

    def _seconds_until_expiry(self, oldest: float, now: float) -> int:
        return max(1, math.ceil(oldest + self.window_seconds - now))

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))


def client_address(request: Request, trust_proxy: bool) -> str:
    """Identity used for rate limiting and forwarded to the bot verifier."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-1]
    return request.client.host if request.client else "unknown"


def rate_limited_response(decision: RateLimitDecision, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": message,
            "code": "rate_limit_exceeded",
            "request_id": request_id_var.get("") or None,
        },
        headers=decision.headers(),
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies the general API quota to /api/* requests.

    Excluded paths:
        - /api/health: probes must never be throttled
    """

    PATH_PREFIX = "/api/"
    EXCLUDED_PATHS = {"/api/health"}
    MESSAGE = "Too many requests, please try again later"

    def __init__(self, app, limiter: SlidingWindowRateLimiter, trust_proxy: bool = True):
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy = trust_proxy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not path.startswith(self.PATH_PREFIX) or path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = client_address(request, self.trust_proxy)
        decision = self.limiter.hit(client_ip)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ss window",
                client_ip,
                decision.limit,
                self.limiter.window_seconds,
            )
            return rate_limited_response(decision, self.MESSAGE)

        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers.setdefault(name, value)
        return response
