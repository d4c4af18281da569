"""Storage settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Database and store settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./homework.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    sql_echo: bool = False

    # Deadline applied to every store call, in seconds
    store_timeout_seconds: float = Field(default=10.0, gt=0)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
