"""
Bearer token checks.

Tokens are HS256 JWTs signed with the Supabase project secret. A verified
payload is turned into an AuthenticatedUser by `user_from_claims`.
"""

import logging
from typing import Any, Dict

import jwt

from .config import get_auth_config
from .models import AuthenticatedUser, UserRole

logger = logging.getLogger(__name__)

# Checked in order; subclasses before jwt.PyJWTError
_FAILURE_MESSAGES = (
    (jwt.ExpiredSignatureError, "Token has expired"),
    (jwt.InvalidAudienceError, "Invalid token audience"),
    (jwt.InvalidSignatureError, "Invalid token signature"),
    (jwt.DecodeError, "Token could not be decoded"),
)


class JWTError(Exception):
    """A bearer token was rejected."""


def verify_token(token: str) -> Dict[str, Any]:
    """
    Decode a bearer token and check signature, expiry, audience and subject.

    Raises:
        JWTError: with a short reason, safe to return to the caller
    """
    config = get_auth_config()
    if not config.is_configured:
        raise JWTError("SUPABASE_JWT_SECRET not configured")

    try:
        payload = jwt.decode(
            token,
            config.supabase_jwt_secret,
            algorithms=[config.jwt_algorithm],
            audience=config.jwt_audience,
            options={"require": ["exp", "sub"]},
        )
    except jwt.MissingRequiredClaimError as e:
        raise JWTError(f"Token missing '{e.claim}' claim")
    except jwt.PyJWTError as e:
        reason = next((msg for kind, msg in _FAILURE_MESSAGES if isinstance(e, kind)), None)
        raise JWTError(reason or f"Token rejected: {e}")

    if not payload.get("sub"):
        raise JWTError("Token missing 'sub' claim")
    return payload


def user_from_claims(payload: Dict[str, Any]) -> AuthenticatedUser:
    """
    Build the user from verified claims.

    The application role lives in app_metadata.role (set server-side) and
    falls back to user_metadata.role. Anything unknown is treated as client.
    """
    app_metadata = payload.get("app_metadata") or {}
    user_metadata = payload.get("user_metadata") or {}
    raw_role = app_metadata.get("role") or user_metadata.get("role")

    return AuthenticatedUser(
        id=str(payload["sub"]),
        email=payload.get("email"),
        role=UserRole.parse(raw_role),
    )
