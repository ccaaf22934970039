"""Transient in-process vector store.

Computes cosine similarity over every chunk of the session. This is the
reference behavior the durable backends are expected to match.
"""

from typing import Dict, List, Optional

import numpy as np
from loguru import logger

from clio.core.models import MemoryChunk, VectorSearchQuery
from clio.storage.base import VectorStore


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Cosine similarity in range [-1, 1], or 0.0 if either vector has zero
        norm or the lengths differ
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    if vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    # Rounding absorbs float error so identical vectors score exactly 1.0
    similarity = round(float(np.dot(vec_a, vec_b) / (norm_a * norm_b)), 12)
    return float(np.clip(similarity, -1.0, 1.0))


class InMemoryVectorStore(VectorStore):
    """Keeps chunks in a dict for the lifetime of the process."""

    backend_name = "memory"

    def __init__(self):
        self._chunks: Dict[str, MemoryChunk] = {}

    async def upsert(self, chunk: MemoryChunk) -> None:
        self._chunks[chunk.id] = chunk
        logger.debug(f"Stored chunk {chunk.id} (session {chunk.session_id}, index {chunk.chunk_index})")

    async def search(
        self, query: VectorSearchQuery, embedding: List[float]
    ) -> List[MemoryChunk]:
        scored = [
            (chunk, cosine_similarity(embedding, chunk.embedding))
            for chunk in self._chunks.values()
            if chunk.session_id == query.session_id
        ]
        scored = [item for item in scored if item[1] >= query.min_similarity]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [chunk for chunk, _ in scored[: query.top_k]]

    async def recent(self, session_id: str, count: int) -> List[MemoryChunk]:
        if count <= 0:
            return []
        chunks = [c for c in self._chunks.values() if c.session_id == session_id]
        chunks.sort(key=lambda c: c.chunk_index, reverse=True)
        return chunks[:count]

    async def delete(self, chunk_id: str) -> None:
        self._chunks.pop(chunk_id, None)

    async def delete_session(self, session_id: str) -> None:
        doomed = [cid for cid, c in self._chunks.items() if c.session_id == session_id]
        for chunk_id in doomed:
            del self._chunks[chunk_id]
        logger.debug(f"Deleted {len(doomed)} chunks for session {session_id}")

    async def count(self, session_id: Optional[str] = None) -> int:
        if session_id is None:
            return len(self._chunks)
        return sum(1 for c in self._chunks.values() if c.session_id == session_id)
