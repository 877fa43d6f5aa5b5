"""Request throttling for the dispatch API.

HTTP writes go through slowapi, keyed by API key so one integration cannot
starve another behind the same NAT. Accepts have their own, lower limit.
WebSocket handshakes use a small in-process sliding window.
"""

import time
from collections import defaultdict, deque

from opentelemetry import metrics
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

WRITE_LIMIT = "120/minute"
ACCEPT_LIMIT = "30/minute"

_WINDOW_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}

meter = metrics.get_meter("kangga")

rate_limit_hits = meter.create_counter(
    name="api_rate_limit_hits_total",
    description="Total API requests rejected by rate limiting",
    unit="1",
)


def get_api_key_or_ip(request: Request) -> str:
    api_key = request.headers.get("X-API-Key")
    return f"key:{api_key}" if api_key else f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_api_key_or_ip)


def _retry_after(request: Request) -> int:
    window = str(getattr(request.state, "view_rate_limit", ""))
    return next((s for unit, s in _WINDOW_SECONDS.items() if unit in window), 60)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 in the same {"detail", "error", "details"} shape as domain errors."""
    rate_limit_hits.add(1, {"endpoint": request.url.path, "method": request.method})
    retry_after = _retry_after(request)
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "error": "rate_limited",
            "details": {"retry_after_seconds": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )


class WebSocketRateLimiter:
    """Caps WebSocket handshakes per client within a sliding window."""

    def __init__(self, max_connections: int, window_seconds: int) -> None:
        self.max_connections = max_connections
        self.window_seconds = window_seconds
        self._attempts: dict[str, deque[float]] = defaultdict(deque)

    def is_limited(self, key: str) -> bool:
        now = time.monotonic()
        attempts = self._attempts[key]
        while attempts and attempts[0] <= now - self.window_seconds:
            attempts.popleft()
        if len(attempts) >= self.max_connections:
            return True
        attempts.append(now)
        return False

    def reset(self) -> None:
        self._attempts.clear()


ws_limiter = WebSocketRateLimiter(max_connections=20, window_seconds=60)
