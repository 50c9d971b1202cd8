"""Errors raised while reading settings or wiring the pipeline."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when settings or the publish table are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when a required environment variable is absent or blank."""
