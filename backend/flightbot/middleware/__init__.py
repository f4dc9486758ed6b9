"""HTTP middleware and request guards."""

from .logging_middleware import RequestLoggingMiddleware
from .rate_limiter import (
    RateLimiter,
    api_limiter,
    auth_limiter,
    search_limiter,
    booking_limiter,
    chat_limiter,
    reset_rate_limits,
)

__all__ = [
    'RequestLoggingMiddleware',
    'RateLimiter',
    'api_limiter',
    'auth_limiter',
    'search_limiter',
    'booking_limiter',
    'chat_limiter',
    'reset_rate_limits',
]
