"""
FastAPI Authentication Dependencies

Provides dependency injection for authentication and authorization.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from viralhub.exceptions import AuthenticationError, AuthorizationError
from viralhub.utils import get_settings
from .config import get_auth_config
from .jwt import JWTError, user_from_claims, verify_token
from .models import AuthenticatedUser, UserRole

logger = logging.getLogger(__name__)

# HTTP Bearer token extraction
security = HTTPBearer(auto_error=False)

DEV_USER = AuthenticatedUser(id="dev-user", email="dev@viralhub.local", role=UserRole.ADMIN)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Get the current authenticated user.

    Raises:
        AuthenticationError: If not authenticated
    """
    config = get_auth_config()

    # If auth is disabled (local dev), return the dev user
    if not config.auth_enabled:
        return DEV_USER

    if not credentials:
        raise AuthenticationError("Not authenticated")

    try:
        payload = verify_token(credentials.credentials)
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthenticationError(str(e))

    return user_from_claims(payload)


async def require_internal_role(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """
    Restrict to agency staff (admin, marketer) while the hub is internal-only.

    Raises:
        AuthorizationError: "Access denied", without naming the missing role
    """
    if get_settings().internal_only and not current_user.is_internal:
        logger.info(f"Denied {current_user.role.value} user {current_user.id}")
        raise AuthorizationError()
    return current_user
