"""Configuration management using Pydantic Settings."""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Primary provider (Anthropic)
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key for task generation",
    )
    taskforge_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for decomposition and expansion",
    )
    taskforge_max_tokens: int = Field(
        default=8192,
        ge=256,
        description="Maximum output tokens per generation call",
    )
    taskforge_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for generation calls",
    )

    # Research provider (Perplexity, OpenAI-compatible)
    perplexity_api_key: SecretStr | None = Field(
        default=None,
        description="Perplexity API key for research-backed expansion",
    )
    perplexity_model: str = Field(
        default="sonar-pro",
        description="Research model name",
    )
    perplexity_base_url: str = Field(
        default="https://api.perplexity.ai",
        description="Research provider base URL",
    )

    # Generation behaviour
    taskforge_bilingual: bool = Field(
        default=False,
        description="Ask for Chinese twins of every text field",
    )
    taskforge_default_tasks: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default number of tasks generated from a PRD",
    )
    taskforge_default_subtasks: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Default number of subtasks per expansion",
    )
    taskforge_retry_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Base delay in seconds for linear provider backoff",
    )
    taskforge_project_name: str = Field(
        default="PRD Implementation",
        description="Project name used when the model omits metadata",
    )
    taskforge_tasks_file: str = Field(
        default="tasks/tasks.json",
        description="Task store location",
    )

    # Logging
    taskforge_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    taskforge_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.taskforge_default_subtasks
        3
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()


def configure_logging(settings: Settings | None = None, log_dir: str | Path = "logs") -> None:
    """Configure loguru sinks for command-line use.

    Library code only emits records; this is called once by entry points.

    Args:
        settings: Settings to read the level from. Uses defaults if omitted.
        log_dir: Directory for the rotated log files.
    """
    settings = settings or get_settings()
    logger.remove()  # Remove default handler

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(logs_dir / "taskforge_{time:YYYY-MM-DD}.log"),
        rotation="1 day",
        retention="7 days",
        level=settings.taskforge_log_level,
        format=log_format,
    )

    logger.add(
        sys.stderr,
        level="DEBUG" if settings.taskforge_debug else settings.taskforge_log_level,
        format=log_format,
        colorize=True,
    )
