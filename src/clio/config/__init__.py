"""Clio configuration module."""

from clio.config.settings import (
    ChunkingSettings,
    EmbeddingSettings,
    LLMSettings,
    LoggingSettings,
    RetrievalSettings,
    Settings,
    StorageSettings,
)

__all__ = [
    "Settings",
    "StorageSettings",
    "LLMSettings",
    "EmbeddingSettings",
    "ChunkingSettings",
    "RetrievalSettings",
    "LoggingSettings",
]
