"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_title: str = Field(default="Vapeur", validation_alias="APP_TITLE")

    # Database - local SQLite by default, postgresql+asyncpg:// in production
    database_url: str = Field(
        default="sqlite+aiosqlite:///./vapeur.db",
        validation_alias="DATABASE_URL",
    )
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Upper bound (seconds) on waiting for an association lock and its commit
    sync_lock_timeout: float = Field(
        default=10.0, gt=0, validation_alias="SYNC_LOCK_TIMEOUT",
    )

    seed_default_genres: bool = Field(default=True, validation_alias="SEED_DEFAULT_GENRES")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level and reject unknown names."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return urlparse(self.database_url).scheme.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
