"""Core module - configuration, errors and the generation pipeline."""

from taskforge.core.config import Settings, clear_settings_cache, configure_logging, get_settings
from taskforge.core.errors import (
    ConfigurationError,
    CountMismatch,
    ExtractionError,
    ProviderError,
    ProviderErrorKind,
    ResponseError,
    TaskForgeError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "CountMismatch",
    "ExtractionError",
    "ProviderError",
    "ProviderErrorKind",
    "ResponseError",
    "Settings",
    "TaskForgeError",
    "ValidationError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]
