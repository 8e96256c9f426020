"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_BASE_PATH = Path(os.environ.get(
    "RECON_BASE_PATH",
    Path.home() / "Documents" / "reconciliation",
))
ENV_FILE_PATH = APP_BASE_PATH / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = Field(default="development")
    app_log_level: str = Field(default="INFO")
    app_log_json: bool = Field(default=False)
    default_user: str = Field(default="system")

    # AI matching collaborator (Gemini REST API)
    ai_api_key: Optional[str] = Field(default=None)
    ai_model: str = Field(default="gemini-2.5-flash")
    ai_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta"
    )
    ai_timeout_seconds: float = Field(default=30.0)
    ai_max_retries: int = Field(default=3)
    ai_temperature: float = Field(default=0.1)

    # Matching parameters
    suggestion_confidence_threshold: float = Field(default=0.85)

    # Summary parameters (cents, strict greater-than)
    discrepancy_tolerance_cents: int = Field(default=1)

    # Data validation parameters
    large_amount_factor: int = Field(default=10)
    stale_after_days: int = Field(default=30)

    # Storage
    data_dir: Path = Field(default=APP_BASE_PATH / "data")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def ai_enabled(self) -> bool:
        """Whether a real AI collaborator can be reached."""
        return bool(self.ai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
