"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class StorageSettings(BaseSettings):
    """Location of the JSON record store."""

    base_path: Path = Field(
        Path("saves"),
        description="Directory holding one sub-directory per record type",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Policy of the simulated provider rate limiter."""

    probability: float = Field(
        0.05,
        description="Chance that a permitted call puts the limiter into the restricted state",
        ge=0.0,
        le=1.0,
    )
    min_seconds: int = Field(
        5,
        description="Shortest restriction in seconds (inclusive)",
        ge=0,
    )
    max_seconds: int = Field(
        20,
        description="Longest restriction in seconds (inclusive)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "RateLimitSettings":
        if self.min_seconds > self.max_seconds:
            raise ValueError("min_seconds must be <= max_seconds")
        return self


class DummySettings(BaseSettings):
    """Behaviour of the simulated (dummy) promptables."""

    min_latency_seconds: float = Field(
        1.0,
        description="Lower bound of the simulated response latency",
        ge=0.0,
    )
    max_latency_seconds: float = Field(
        5.0,
        description="Upper bound of the simulated response latency",
        ge=0.0,
    )
    sql_answer: str = Field(
        "SELECT * FROM Test",
        description="Canned answer returned by the SQL dummy",
    )
    max_number: int = Field(
        99,
        description="Largest value returned by the numerical dummy",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="DUMMY_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _check_latency(self) -> "DummySettings":
        if self.min_latency_seconds > self.max_latency_seconds:
            raise ValueError("min_latency_seconds must be <= max_latency_seconds")
        return self


class LLMSettings(BaseSettings):
    """Real LLM provider configuration.

    Model names and API keys are stored per LLM record; only transport
    settings live here.
    """

    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds",
    )
    deepseek_base_url: str = Field(
        "https://api.deepseek.com",
        description="OpenAI-compatible endpoint of DeepSeek",
    )
    openai_base_url: str | None = Field(
        None,
        description="Custom OpenAI endpoint (SDK default when unset)",
    )
    gemini_base_url: str = Field(
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible endpoint of Gemini",
    )
    default_retry_after_seconds: int = Field(
        15,
        description="Wait time assumed when a 429 response carries no Retry-After header",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Either 'json' or 'plain'")
    output: str = Field("stdout", description="Either 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file when output is 'file'")
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(3, description="Rotated files to keep", ge=0)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class WorkerSettings(BaseSettings):
    """Background generation/evaluation workers."""

    pool_size: int = Field(
        4,
        description="Number of concurrent prompt calls per worker run",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    storage: StorageSettings = Field(default_factory=StorageSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    dummy: DummySettings = Field(default_factory=DummySettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
