"""Abstract vector store interface."""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, TypeVar

from clio.core.models import MemoryChunk, VectorSearchQuery
from clio.utils.exceptions import BackendError

T = TypeVar("T")


class VectorStore(ABC):
    """
    Persists memory chunks and runs similarity search scoped to a session.

    Backends must match the reference semantics of InMemoryVectorStore:
    search returns only chunks of the requested session, ranked by
    descending cosine similarity, filtered to ``min_similarity`` and
    truncated to ``top_k``.

    Failures are raised as BackendError tagged with ``backend_name``.
    Nothing is retried at this layer.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def upsert(self, chunk: MemoryChunk) -> None:
        """Insert or replace a chunk by id."""
        pass

    @abstractmethod
    async def search(
        self, query: VectorSearchQuery, embedding: List[float]
    ) -> List[MemoryChunk]:
        """Return the session's chunks most similar to ``embedding``."""
        pass

    @abstractmethod
    async def recent(self, session_id: str, count: int) -> List[MemoryChunk]:
        """Return up to ``count`` chunks with the highest chunk index, newest first."""
        pass

    @abstractmethod
    async def delete(self, chunk_id: str) -> None:
        """Remove one chunk."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Remove every chunk of a session."""
        pass

    @abstractmethod
    async def count(self, session_id: Optional[str] = None) -> int:
        """Count chunks, optionally for one session."""
        pass

    async def _run(self, operation: str, fn: Callable[..., T], *args) -> T:
        """Run a blocking client call in a thread, tagging failures with the backend."""
        try:
            return await asyncio.to_thread(fn, *args)
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(self.backend_name, operation, str(e)) from e
