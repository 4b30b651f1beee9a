"""In-memory sliding window rate limiter for auth endpoints, keyed by client IP."""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.middleware.error_handler import error_response, get_request_id
from src.utils.errors import RateLimitError

AUTH_PREFIX = "/api/v1/auth/"
RATE_LIMIT_MESSAGE = "Too many authentication attempts, please try again later."


class RateLimiterMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int, window_seconds: int):
        super().__init__(app)
        self.limit = limit
        self.window_seconds = window_seconds
        # client ip -> list of request timestamps
        self._windows: dict[str, list[float]] = {}
        self._last_sweep = 0.0

    def _sweep(self, now: float) -> None:
        """Drop clients with no requests inside the window. Runs at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        for client_ip in [ip for ip, window in self._windows.items() if not window or window[-1] < cutoff]:
            del self._windows[client_ip]

    def _hit(self, client_ip: str, now: float) -> tuple[bool, int]:
        """Record a request. Returns (allowed, retry_after_seconds)."""
        self._sweep(now)
        window = self._windows.setdefault(client_ip, [])

        cutoff = now - self.window_seconds
        while window and window[0] < cutoff:
            window.pop(0)

        if len(window) >= self.limit:
            retry_after = int(window[0] - cutoff) + 1
            return False, retry_after

        window.append(now)
        return True, 0

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.limit <= 0 or request.method != "POST" or not request.url.path.startswith(AUTH_PREFIX):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        allowed, retry_after = self._hit(client_ip, time.time())
        if not allowed:
            return error_response(
                RateLimitError.status_code,
                RateLimitError.error_type,
                RATE_LIMIT_MESSAGE,
                get_request_id(request),
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
