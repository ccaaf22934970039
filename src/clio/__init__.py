"""Clio - Session memory for long-running collaborative stories."""

__version__ = "0.1.0"

from clio.core.models import (
    CreateSessionRequest,
    MemoryAnalysis,
    MemoryChunk,
    PendingMessage,
    RetrievalContext,
    SessionInfo,
)

__all__ = [
    "CreateSessionRequest",
    "MemoryAnalysis",
    "MemoryChunk",
    "PendingMessage",
    "RetrievalContext",
    "SessionInfo",
]
