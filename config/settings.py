"""Pydantic settings for Lending Vault configuration."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Oracle
    max_staleness_seconds: int = Field(
        default=24 * 60 * 60, gt=0, description="Max age of a readable price in seconds"
    )
    refresh_window_seconds: int = Field(
        default=15 * 60, ge=0, description="Min delay before a pending price is promoted"
    )

    # Snapshot storage
    storage_dir: Path = Field(default=Path(".cache/lending_vault"), description="Snapshot directory path")

    # Logging
    log_level: str = Field(default="WARNING", description="Level of the lending_vault loggers")

    @field_validator("storage_dir", mode="before")
    @classmethod
    def parse_storage_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        """Normalize level names to upper case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def ensure_storage_dir(self) -> Path:
        """Ensure storage directory exists and return it."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        return self.storage_dir


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(level=logging.WARNING)
    logging.getLogger("lending_vault").setLevel(settings.log_level)
