"""Session memory engine: the public entry point of Clio."""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from loguru import logger

from clio.core.analyzer import MemoryAnalyzer
from clio.core.buffer import PendingBuffer
from clio.core.chunk_builder import ChunkBuilder
from clio.core.models import (
    CreateSessionRequest,
    MemoryAnalysis,
    PendingMessage,
    RetrievalContext,
    SessionInfo,
)
from clio.core.registry import (
    InMemorySessionStore,
    JsonSessionStore,
    SessionRegistry,
    SessionStore,
)
from clio.core.retrieval import RetrievalAssembler
from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.storage.base import VectorStore
from clio.utils.exceptions import BackendError, SessionNotFoundError, UpstreamGenerationError

if TYPE_CHECKING:
    from clio.config.settings import Settings


class SessionMemoryEngine:
    """
    Turns a stream of chat messages into searchable long-term memory.

    Messages accumulate in a per-session buffer; when the analyzer finds a
    natural break, or the buffer reaches the message threshold, the buffer is
    condensed into a MemoryChunk. ``retrieve`` returns the newest chunks plus
    the ones most similar to a query.

    Mutations of one session are serialized by a per-session lock; different
    sessions never contend.
    """

    def __init__(
        self,
        llm: CompletionProvider,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        session_store: Optional[SessionStore] = None,
        settings: Optional["Settings"] = None,
    ):
        """
        Initialize the engine.

        Args:
            llm: Completion provider for analysis and summaries
            embedder: Embedding provider for chunk synopses and queries
            vector_store: Where chunks are persisted
            session_store: Where session records live (in memory by default)
            settings: Settings instance (provides thresholds and retrieval limits)
        """
        if settings is None:
            from clio.config.settings import Settings
            settings = Settings()

        self.settings = settings
        self.vector_store = vector_store
        self.buffer = PendingBuffer()
        self.registry = SessionRegistry(vector_store, self.buffer, session_store)
        self.chunk_threshold = settings.chunking.message_threshold

        self.analyzer = MemoryAnalyzer(
            llm,
            threshold=self.chunk_threshold,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.analysis_max_tokens,
        )
        self.builder = ChunkBuilder(
            llm,
            embedder,
            vector_store,
            self.registry,
            self.buffer,
            temperature=settings.llm.temperature,
            summary_max_tokens=settings.llm.summary_max_tokens,
        )
        self.assembler = RetrievalAssembler(
            self.registry,
            vector_store,
            embedder,
            llm,
            top_k=settings.retrieval.top_k,
            min_similarity=settings.retrieval.min_similarity,
            recent_count=settings.retrieval.recent_count,
            max_characters=settings.retrieval.max_characters,
            temperature=settings.llm.temperature,
            plot_summary_max_tokens=settings.llm.plot_summary_max_tokens,
        )
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    async def create_session(self, request: CreateSessionRequest) -> SessionInfo:
        """
        Create a session, seeding chunk 0 from the system message if given.

        Raises:
            UpstreamGenerationError: If the origin chunk cannot be embedded
            BackendError: If the origin chunk cannot be persisted
        """
        session = self.registry.create(request)
        if not request.system_message:
            return session

        async with self._lock(session.id):
            try:
                await self.builder.build_origin(session, request.system_message)
            except (UpstreamGenerationError, BackendError) as e:
                logger.error(f"Origin chunk failed, discarding session {session.id}: {e}")
                self.registry.discard(session.id)
                self._locks.pop(session.id, None)
                raise

        return session

    async def add_message(
        self,
        session_id: str,
        message: PendingMessage,
        chunk_threshold: Optional[int] = None,
    ) -> MemoryAnalysis:
        """
        Ingest one message and form a chunk when the buffer is ready.

        Args:
            session_id: Target session
            message: Message to append to the pending buffer
            chunk_threshold: Overrides the configured message threshold

        Returns:
            The analysis of the pending buffer, whether or not a chunk formed

        Raises:
            SessionNotFoundError: If the session does not exist
            BackendError: If a formed chunk cannot be persisted (the message
                stays pending)
        """
        threshold = chunk_threshold or self.chunk_threshold

        # Locks are only created for registered sessions
        if self.registry.get(session_id) is None:
            raise SessionNotFoundError(session_id)

        async with self._lock(session_id):
            # The session may have been deleted while we waited
            session = self.registry.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            pending = self.buffer.append(session_id, message)
            self.registry.record_message(session, message)
            logger.debug(
                f"Session {session_id}: {len(pending)} pending messages "
                f"(threshold {threshold})"
            )

            analysis = await self.analyzer.analyze(pending, session, threshold=threshold)

            if len(pending) >= threshold or analysis.should_create_chunk:
                await self.builder.build(session, analysis)

            return analysis

    async def retrieve(
        self,
        session_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> Optional[RetrievalContext]:
        """Assemble memory for a query; None if the session is unknown."""
        return await self.assembler.retrieve(session_id, query, top_k)

    async def get_session(self, session_id: str) -> Optional[SessionInfo]:
        return self.registry.get(session_id)

    async def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and all of its chunks.

        Returns:
            True if deleted, False if the session was unknown
        """
        if self.registry.get(session_id) is None:
            return False

        async with self._lock(session_id):
            deleted = await self.registry.delete(session_id)
        self._locks.pop(session_id, None)
        return deleted

    def pending_count(self, session_id: str) -> int:
        """Number of messages waiting to be condensed."""
        return self.buffer.size(session_id)

    @staticmethod
    def format_context(context: RetrievalContext) -> str:
        """
        Render a retrieval result as a system-prompt block.

        Args:
            context: Result of ``retrieve``

        Returns:
            Multi-line text ready to prepend to a chat prompt
        """
        lines = [f"[Story so far]\n{context.plot_summary}"]

        if context.characters:
            lines.append(f"[Characters]\n{', '.join(context.characters)}")

        if context.world_state:
            lines.append(f"[Latest scene]\n{context.world_state}")

        if context.recent_chunks:
            recent = "\n".join(
                f"{i}. {c.summary}" for i, c in enumerate(context.recent_chunks, 1)
            )
            lines.append(f"[Recent memories]\n{recent}")

        if context.relevant_chunks:
            relevant = "\n".join(
                f"{i}. {c.summary}" for i, c in enumerate(context.relevant_chunks, 1)
            )
            lines.append(f"[Relevant memories]\n{relevant}")

        return "\n\n".join(lines)


def create_session_store(settings: "Settings") -> SessionStore:
    """Create the session store selected by ``storage.session_store``."""
    if settings.storage.session_store == "json":
        return JsonSessionStore(Path(settings.storage.session_directory))
    return InMemorySessionStore()


def build_engine(settings: "Settings") -> SessionMemoryEngine:
    """
    Wire an engine from configuration.

    Raises:
        ConfigurationError: If a provider or backend cannot be configured
    """
    from clio.llm import create_completion_provider, create_embedding_provider
    from clio.storage import create_vector_store

    llm = create_completion_provider(settings.llm)
    embedder = create_embedding_provider(settings.embedding, settings.llm)
    vector_store = create_vector_store(settings.storage)

    engine = SessionMemoryEngine(
        llm=llm,
        embedder=embedder,
        vector_store=vector_store,
        session_store=create_session_store(settings),
        settings=settings,
    )
    logger.info(
        f"Memory engine ready (store={vector_store.backend_name}, "
        f"threshold={settings.chunking.message_threshold})"
    )
    return engine
