"""
Viral Hub Authentication

- Bearer JWT validation (PyJWT, shared HS256 secret)
- Internal-role gate for agency staff
- Fixed-window rate limiting per caller
"""

from .config import AuthConfig, get_auth_config
from .models import AuthenticatedUser, UserRole, INTERNAL_ROLES
from .jwt import JWTError, verify_token, user_from_claims
from .dependencies import DEV_USER, get_current_user, require_internal_role
from .rate_limit import (
    RateLimitPreset,
    RateLimitResult,
    FixedWindowRateLimiter,
    RedisRateLimiter,
    get_rate_limiter,
    get_client_identifier,
    enforce_rate_limit,
)

__all__ = [
    "AuthConfig",
    "get_auth_config",
    "AuthenticatedUser",
    "UserRole",
    "INTERNAL_ROLES",
    "JWTError",
    "verify_token",
    "user_from_claims",
    "DEV_USER",
    "get_current_user",
    "require_internal_role",
    "RateLimitPreset",
    "RateLimitResult",
    "FixedWindowRateLimiter",
    "RedisRateLimiter",
    "get_rate_limiter",
    "get_client_identifier",
    "enforce_rate_limit",
]
