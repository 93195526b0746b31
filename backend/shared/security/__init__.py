"""
Security module: Staff authentication and rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
)
from shared.security.rate_limit import (
    KeyedRateLimiter,
    limiter,
    order_rate_limiter,
    rate_limit_exceeded_handler,
)

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    # rate_limit
    "KeyedRateLimiter",
    "limiter",
    "order_rate_limiter",
    "rate_limit_exceeded_handler",
]
