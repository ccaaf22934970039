"""Condenses drained conversation into persisted memory chunks."""

from datetime import datetime
from typing import List, Optional

from loguru import logger

from clio.core.buffer import PendingBuffer
from clio.core.constants import CHUNK_SUMMARY_MAX_CHARS, ORIGIN_CHUNK_IMPORTANCE, ORIGIN_PLOT_POINT
from clio.core.models import (
    ChunkMetadata,
    MemoryAnalysis,
    MemoryChunk,
    PendingMessage,
    SessionInfo,
    merge_unique,
    render_transcript,
)
from clio.core.prompts import build_chunk_summary_messages, truncate
from clio.core.registry import SessionRegistry
from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.storage.base import VectorStore
from clio.utils.exceptions import BackendError, UpstreamGenerationError


def fallback_summary(title: str, when: Optional[datetime] = None) -> str:
    """Synopsis used when the LLM cannot summarize a chunk."""
    when = when or datetime.now()
    return truncate(
        f"{title} - conversation record {when.strftime('%Y-%m-%d %H:%M')}",
        CHUNK_SUMMARY_MAX_CHARS,
    )


class ChunkBuilder:
    """
    Runs the summarize -> embed -> persist -> record sequence for one cut.

    The sequence is a unit: if the synopsis cannot be embedded or the chunk
    cannot be persisted, the drained messages go back to the front of the
    buffer and the session counters are left untouched.
    """

    def __init__(
        self,
        llm: CompletionProvider,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        registry: SessionRegistry,
        buffer: PendingBuffer,
        temperature: float = 0.3,
        summary_max_tokens: int = 100,
    ):
        self.llm = llm
        self.embedder = embedder
        self.vector_store = vector_store
        self.registry = registry
        self.buffer = buffer
        self.temperature = temperature
        self.summary_max_tokens = summary_max_tokens

    async def summarize(self, messages: List[PendingMessage], session: SessionInfo) -> str:
        """Produce a short synopsis, falling back to a dated record title."""
        prompt = build_chunk_summary_messages(
            render_transcript(messages),
            session.genre,
            session.description,
            session.characters,
        )
        try:
            summary = await self.llm.chat_completion(
                prompt, max_tokens=self.summary_max_tokens, temperature=self.temperature
            )
        except UpstreamGenerationError as e:
            logger.warning(f"Chunk summary failed for session {session.id}: {e}")
            return fallback_summary(session.title)

        summary = truncate(summary, CHUNK_SUMMARY_MAX_CHARS)
        return summary or fallback_summary(session.title)

    async def build(
        self, session: SessionInfo, analysis: MemoryAnalysis
    ) -> Optional[MemoryChunk]:
        """
        Drain the session buffer into a new chunk.

        Args:
            session: Session being cut
            analysis: Analysis of the buffer that triggered the cut

        Returns:
            The persisted chunk, or None if the synopsis could not be embedded
            (the messages are kept for a later attempt)

        Raises:
            BackendError: If the vector store rejects the chunk
        """
        drained = self.buffer.drain(session.id)
        if not drained:
            return None

        summary = await self.summarize(drained, session)

        try:
            embedding = await self.embedder.embed(summary)
        except UpstreamGenerationError as e:
            self.buffer.restore(session.id, drained)
            logger.warning(
                f"Could not embed chunk for session {session.id}, "
                f"keeping {len(drained)} messages pending: {e}"
            )
            return None

        chunk = MemoryChunk(
            session_id=session.id,
            chunk_index=session.total_chunks,
            content=render_transcript(drained),
            summary=summary,
            embedding=embedding,
            message_count=len(drained),
            characters=merge_unique(session.characters, analysis.new_characters),
            keywords=list(analysis.keywords),
            importance=analysis.importance,
            metadata=ChunkMetadata(
                genre=session.genre,
                emotion=analysis.emotion,
                plot_point=analysis.plot_point,
            ),
        )

        try:
            await self.vector_store.upsert(chunk)
        except BackendError:
            self.buffer.restore(session.id, drained)
            logger.error(f"Failed to persist chunk {chunk.chunk_index} for session {session.id}")
            raise

        self.registry.record_chunk(session, chunk, analysis.new_characters)
        logger.info(
            f"Formed chunk {chunk.chunk_index} for session {session.id} "
            f"({chunk.message_count} messages, importance={chunk.importance:.2f})"
        )
        return chunk

    async def build_origin(self, session: SessionInfo, system_message: str) -> MemoryChunk:
        """
        Create chunk 0 from a session's initial system message.

        Unlike ``build`` nothing is recovered here: embedding or persistence
        failures propagate so the caller can discard the session.

        Raises:
            UpstreamGenerationError: If the setting cannot be embedded
            BackendError: If the vector store rejects the chunk
        """
        summary = truncate(f"Story setting: {system_message}", CHUNK_SUMMARY_MAX_CHARS)
        embedding = await self.embedder.embed(summary)

        chunk = MemoryChunk(
            session_id=session.id,
            chunk_index=0,
            content=system_message,
            summary=summary,
            embedding=embedding,
            message_count=1,
            characters=list(session.characters),
            keywords=["setting", "background"],
            importance=ORIGIN_CHUNK_IMPORTANCE,
            metadata=ChunkMetadata(genre=session.genre, plot_point=ORIGIN_PLOT_POINT),
        )

        await self.vector_store.upsert(chunk)
        self.registry.record_chunk(session, chunk, [])
        logger.info(f"Created origin chunk for session {session.id}")
        return chunk
