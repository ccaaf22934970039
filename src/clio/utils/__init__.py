"""Shared utilities."""

from clio.utils.exceptions import (
    BackendError,
    ClioError,
    ConfigurationError,
    SessionNotFoundError,
    UpstreamGenerationError,
)

__all__ = [
    "ClioError",
    "ConfigurationError",
    "UpstreamGenerationError",
    "SessionNotFoundError",
    "BackendError",
]
