"""Assembles recent and relevant memory for a query."""

from typing import List, Optional

from loguru import logger

from clio.core.constants import (
    DEFAULT_MIN_SIMILARITY,
    DEFAULT_TOP_K,
    MAX_ACTIVE_CHARACTERS,
    PLOT_SUMMARY_MAX_CHARS,
    PLOT_SUMMARY_PLACEHOLDER,
    RECENT_CHUNK_COUNT,
    STORY_START_PLACEHOLDER,
)
from clio.core.models import MemoryChunk, RetrievalContext, VectorSearchQuery, merge_unique
from clio.core.prompts import build_plot_summary_messages, truncate
from clio.core.registry import SessionRegistry
from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.storage.base import VectorStore
from clio.utils.exceptions import UpstreamGenerationError


class RetrievalAssembler:
    """
    Builds a RetrievalContext from the newest chunks plus similarity hits.

    Recent chunks always come first and are never repeated among the
    relevant ones; together they never exceed ``top_k``.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        llm: CompletionProvider,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        recent_count: int = RECENT_CHUNK_COUNT,
        max_characters: int = MAX_ACTIVE_CHARACTERS,
        temperature: float = 0.3,
        plot_summary_max_tokens: int = 150,
    ):
        self.registry = registry
        self.vector_store = vector_store
        self.embedder = embedder
        self.llm = llm
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.recent_count = recent_count
        self.max_characters = max_characters
        self.temperature = temperature
        self.plot_summary_max_tokens = plot_summary_max_tokens

    async def retrieve(
        self,
        session_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> Optional[RetrievalContext]:
        """
        Assemble memory for a query.

        Args:
            session_id: Session to search
            query: Text the relevant chunks should be similar to
            top_k: Total chunk budget, recent and relevant combined

        Returns:
            RetrievalContext, or None if the session is unknown

        Raises:
            BackendError: If the vector store fails
        """
        session = self.registry.get(session_id)
        if session is None:
            return None

        top_k = top_k if top_k is not None else self.top_k

        relevant: List[MemoryChunk] = []
        try:
            embedding = await self.embedder.embed(query)
        except UpstreamGenerationError as e:
            logger.warning(f"Query embedding failed for session {session_id}, skipping search: {e}")
            embedding = None

        if embedding is not None and top_k > 0:
            relevant = await self.vector_store.search(
                VectorSearchQuery(
                    session_id=session_id,
                    top_k=top_k,
                    min_similarity=self.min_similarity,
                    query=query,
                ),
                embedding,
            )

        recent_count = min(self.recent_count, top_k)
        recent = await self.vector_store.recent(session_id, recent_count) if recent_count > 0 else []

        recent_ids = {c.id for c in recent}
        relevant = [c for c in relevant if c.id not in recent_ids][: max(0, top_k - len(recent))]

        characters: List[str] = []
        for chunk in recent + relevant:
            characters = merge_unique(characters, chunk.characters)

        context = RetrievalContext(
            recent_chunks=recent,
            relevant_chunks=relevant,
            plot_summary=await self.plot_summary(recent + relevant),
            characters=characters[: self.max_characters],
            world_state=session.last_summary or "",
        )
        logger.debug(
            f"Retrieved {len(recent)} recent and {len(relevant)} relevant chunks "
            f"for session {session_id}"
        )
        return context

    async def plot_summary(self, chunks: List[MemoryChunk]) -> str:
        """Condense chunk synopses into one "current story state" line."""
        summaries = [c.summary for c in chunks if c.summary]
        if not summaries:
            return STORY_START_PLACEHOLDER

        fragments = "\n".join(f"{i + 1}. {s}" for i, s in enumerate(summaries))
        try:
            reply = await self.llm.chat_completion(
                build_plot_summary_messages(fragments),
                max_tokens=self.plot_summary_max_tokens,
                temperature=self.temperature,
            )
        except UpstreamGenerationError as e:
            logger.warning(f"Plot summary failed: {e}")
            return PLOT_SUMMARY_PLACEHOLDER

        return truncate(reply, PLOT_SUMMARY_MAX_CHARS) or PLOT_SUMMARY_PLACEHOLDER
