"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database (SQLite fallback handled in database.session)
    DATABASE_URL: Optional[str] = None

    # Claude API (optional - generation endpoints fail cleanly without it)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    LLM_TIMEOUT: float = 60.0

    # Access control
    VIRAL_HUB_INTERNAL_ONLY: str = "true"

    # Signal sources
    REDDIT_USER_AGENT: str = "viralhub/0.1 (content research)"
    SIGNAL_FETCH_LIMIT: int = 200

    # Rate limiting (cache backend: see viralhub.cache.config)
    RATE_LIMIT_BACKEND: str = "memory"  # memory, redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def internal_only(self) -> bool:
        """Anything but an explicit 'false' keeps the role restriction on."""
        return self.VIRAL_HUB_INTERNAL_ONLY.strip().lower() != "false"


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
