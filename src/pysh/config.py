"""Configuration management."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``PYSH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PYSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    capture_dir: Path = Field(
        default_factory=lambda: Path.home() / "pysh" / "Working",
        description="Root directory for audit captures of spawned processes",
    )
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / "pysh" / "Logs",
        description="Directory for rotating log files (created if absent)",
    )
    configure_logging: bool = Field(default=True, description="Install file and console log handlers")
    log_queue_size: int = Field(default=10_000, ge=1, description="Capacity of the asynchronous log queue")
    buffer_size: int = Field(default=8096, ge=1, description="Chunk size used when pumping streams")
    shell: str = Field(default="bash", description="Shell used for the launch indirection")
    poll_rate: float = Field(default=2.0, description="Registry monitor poll rate in seconds")


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings (cached singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
