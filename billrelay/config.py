"""Bill relay configuration."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings for the bill relay."""

    # Shared secrets
    webhook_secret: str = Field(default="", description="Gateway webhook signing secret")
    api_key: str = Field(default="", description="Print client API key (empty disables the check)")
    admin_token: str = Field(default="", description="Admin listing token (empty rejects all)")

    # Pipeline
    item_source: Literal["metadata", "token"] = Field(
        default="metadata", description="Where bill items come from"
    )
    bill_retention_seconds: int = Field(default=3600, gt=0)
    token_retention_seconds: int = Field(default=86400, gt=0)
    reaper_interval_seconds: float = Field(default=60.0, ge=0)

    log_level: str = "INFO"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_prefix="BILLRELAY_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
