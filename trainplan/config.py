"""
Runtime configuration loaded from the environment and an optional .env file.

Only the outer layers (CLI, API, background job) read settings; the core
calculators receive every value they need as arguments.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite:///trainplan.db")
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("TRAINPLAN_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = Field(default="gpt-4o")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_week_attempts: int = Field(default=3, ge=1, le=10)
    generation_deadline_seconds: float = Field(default=600.0, gt=0)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    neutral_compliance: float = Field(default=0.55, ge=0.0, le=1.0)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TRAINPLAN_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings (cached after first load)."""
    return Settings()
