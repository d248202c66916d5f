# leaselock/config/settings.py

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LockSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEASELOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Locking ---
    key_prefix: str = ""
    poll_interval_ms: int = Field(default=100, gt=0)
    default_ttl_ms: int = Field(default=30_000, gt=0)

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value


@lru_cache
def get_settings() -> LockSettings:
    return LockSettings()
