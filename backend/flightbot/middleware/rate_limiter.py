"""
Fixed-window rate limiting per client address.

Each endpoint class gets its own limiter instance, used as a FastAPI
dependency:

    @router.get("/search", dependencies=[Depends(search_limiter)])
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException, Request, status

from ..config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """Allows ``max_requests`` per ``window_seconds`` for each client address."""

    def __init__(self, name: str, max_requests: int, window_seconds: int, message: str):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._windows: Dict[str, _Window] = {}
        self._last_sweep: Optional[float] = None

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        """Drop windows that have expired, at most once per window length."""
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now

        expired = [key for key, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Rate limit '{self.name}': dropped {len(expired)} expired windows")

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Count one request for ``key``.

        Returns:
            (allowed, remaining) for the current window
        """
        now = time.monotonic()
        self._sweep(now)
        window = self._windows.get(key)

        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now, count=0)
            self._windows[key] = window

        window.count += 1
        remaining = max(self.max_requests - window.count, 0)
        return window.count <= self.max_requests, remaining

    def reset(self) -> None:
        self._windows.clear()
        self._last_sweep = None

    async def __call__(self, request: Request) -> None:
        if not settings.rate_limit_enabled:
            return

        client_host = request.client.host if request.client else "unknown"
        allowed, _ = self.hit(client_host)
        if not allowed:
            logger.warning(
                f"Rate limit '{self.name}' exceeded for {client_host}",
                extra={"extra_fields": {
                    "limiter": self.name,
                    "client": client_host,
                    "path": request.url.path,
                }}
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=self.message
            )


api_limiter = RateLimiter(
    "api", 100, 15 * 60, "Too many requests from this IP, please try again later."
)
auth_limiter = RateLimiter(
    "auth", 10, 15 * 60, "Too many authentication attempts, please try again later."
)
search_limiter = RateLimiter(
    "search", 50, 10 * 60, "Too many search requests, please try again later."
)
booking_limiter = RateLimiter(
    "booking", 5, 60 * 60, "Too many booking attempts, please try again later."
)
chat_limiter = RateLimiter(
    "chat", 30, 60, "Too many messages, please slow down."
)

ALL_LIMITERS: List[RateLimiter] = [
    api_limiter, auth_limiter, search_limiter, booking_limiter, chat_limiter
]


def reset_rate_limits() -> None:
    """Forget every recorded request (used by tests and on startup)."""
    for limiter in ALL_LIMITERS:
        limiter.reset()
