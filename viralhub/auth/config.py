"""
Authentication Configuration

Bearer tokens are Supabase access tokens: HS256, signed with the project's
JWT secret, audience "authenticated".

Environment:
    SUPABASE_JWT_SECRET  shared signing secret (required when auth is on)
    JWT_ALGORITHM        defaults to HS256
    JWT_AUDIENCE         defaults to "authenticated"
    AUTH_ENABLED         "false" serves every request as the dev user
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthConfig(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", case_sensitive=False)

    supabase_jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    auth_enabled: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_jwt_secret)


@lru_cache()
def get_auth_config() -> AuthConfig:
    return AuthConfig()
