"""Tests for SessionMemoryEngine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from clio.core.engine import SessionMemoryEngine, build_engine, create_session_store
from clio.core.models import CreateSessionRequest, PendingMessage
from clio.core.registry import InMemorySessionStore, JsonSessionStore
from clio.storage.memory_store import InMemoryVectorStore
from clio.utils.exceptions import BackendError, SessionNotFoundError, UpstreamGenerationError


def user(text: str) -> PendingMessage:
    return PendingMessage(role="user", content=text)


class TestCreateSession:
    """Tests for session creation."""

    @pytest.mark.asyncio
    async def test_without_system_message(self, engine, vector_store):
        """A plain session starts with no chunks."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))

        assert session.total_chunks == 0
        assert await vector_store.count(session.id) == 0

    @pytest.mark.asyncio
    async def test_origin_chunk(self, engine, vector_store):
        """A system message becomes chunk 0 before create returns."""
        session = await engine.create_session(
            CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
        )

        [chunk] = await vector_store.recent(session.id, 5)
        assert chunk.chunk_index == 0
        assert chunk.importance == 0.9
        assert chunk.summary == "Story setting: Setting: cyberpunk city"
        assert session.total_chunks == 1

    @pytest.mark.asyncio
    async def test_origin_failure_discards_session(self, engine, fake_embedder):
        """If the origin chunk fails the session does not survive."""
        fake_embedder.fail = True

        with pytest.raises(UpstreamGenerationError):
            await engine.create_session(
                CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
            )

        assert engine.registry.list_ids() == []


class TestAddMessage:
    """Tests for message ingestion and chunk formation."""

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine):
        """Adding to an unknown session raises SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError) as exc_info:
            await engine.add_message("missing", user("hello"))
        assert exc_info.value.session_id == "missing"

    @pytest.mark.asyncio
    async def test_unknown_ids_leave_no_locks(self, engine):
        """Calls with unknown session ids do not accumulate lock entries."""
        for i in range(20):
            with pytest.raises(SessionNotFoundError):
                await engine.add_message(f"missing-{i}", user("hello"))
            assert await engine.delete_session(f"gone-{i}") is False

        assert engine._locks == {}

    @pytest.mark.asyncio
    async def test_delete_releases_lock(self, engine):
        """Deleting a session forgets its lock."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))
        await engine.add_message(session.id, user("hello"))
        assert session.id in engine._locks

        await engine.delete_session(session.id)

        assert session.id not in engine._locks

    @pytest.mark.asyncio
    async def test_threshold_forms_chunk(self, engine):
        """With threshold 8 the eighth message forms chunk 1 after the origin."""
        session = await engine.create_session(
            CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
        )

        for i in range(7):
            analysis = await engine.add_message(session.id, user(f"message {i}"))
            assert analysis.should_create_chunk is False
        assert session.total_chunks == 1
        assert engine.pending_count(session.id) == 7

        await engine.add_message(session.id, user("message 7"))

        assert session.total_chunks == 2
        assert session.current_chunk == 1
        assert session.total_messages == 8
        assert engine.pending_count(session.id) == 0
        [newest] = await engine.vector_store.recent(session.id, 1)
        assert newest.chunk_index == 1
        assert newest.message_count == 8

    @pytest.mark.asyncio
    async def test_analyzer_requested_cut(self, engine, fake_llm):
        """A natural break found by the analyzer forms a chunk early."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))
        fake_llm.analysis = (
            '{"importance": 0.8, "shouldCreateChunk": true, "newCharacters": ["Ada"]}'
        )

        analysis = await engine.add_message(session.id, user("Ada cracks the safe"))

        assert analysis.should_create_chunk is True
        assert session.total_chunks == 1
        assert session.characters == ["Ada"]
        assert engine.pending_count(session.id) == 0

    @pytest.mark.asyncio
    async def test_threshold_override(self, engine):
        """A per-call threshold overrides the configured one."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))

        await engine.add_message(session.id, user("one"), chunk_threshold=2)
        assert session.total_chunks == 0
        await engine.add_message(session.id, user("two"), chunk_threshold=2)

        assert session.total_chunks == 1

    @pytest.mark.asyncio
    async def test_analysis_returned_even_without_llm(self, engine, fake_llm):
        """Analyzer failures still return an analysis and keep the message."""
        fake_llm.analysis = UpstreamGenerationError("service down")
        session = await engine.create_session(CreateSessionRequest(title="Heist"))

        analysis = await engine.add_message(session.id, user("hello"))

        assert analysis.source == "fallback"
        assert engine.pending_count(session.id) == 1

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self, engine, vector_store):
        """A persistence failure reaches the caller and nothing is lost."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))
        for i in range(7):
            await engine.add_message(session.id, user(f"message {i}"))
        vector_store.upsert = AsyncMock(side_effect=BackendError("memory", "upsert", "down"))

        with pytest.raises(BackendError):
            await engine.add_message(session.id, user("message 7"))

        assert session.total_chunks == 0
        assert session.total_messages == 8
        assert engine.pending_count(session.id) == 8

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_messages(self, engine, fake_embedder):
        """If the synopsis cannot be embedded the chunk forms on a later call."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))
        fake_embedder.fail = True
        for i in range(8):
            await engine.add_message(session.id, user(f"message {i}"))
        assert session.total_chunks == 0
        assert engine.pending_count(session.id) == 8

        fake_embedder.fail = False
        await engine.add_message(session.id, user("message 8"))

        assert session.total_chunks == 1
        assert engine.pending_count(session.id) == 0

    @pytest.mark.asyncio
    async def test_concurrent_messages_form_one_chunk(self, engine):
        """Concurrent calls on one session are serialized."""
        session = await engine.create_session(CreateSessionRequest(title="Heist"))

        await asyncio.gather(
            *(engine.add_message(session.id, user(f"message {i}")) for i in range(8))
        )

        assert session.total_messages == 8
        assert session.total_chunks == 1
        assert engine.pending_count(session.id) == 0


class TestRetrieveAndDelete:
    """Tests for retrieval and deletion through the engine."""

    @pytest.mark.asyncio
    async def test_retrieve_unknown(self, engine):
        """Unknown sessions yield None."""
        assert await engine.retrieve("missing", "anything") is None
        assert await engine.get_session("missing") is None

    @pytest.mark.asyncio
    async def test_retrieve_after_origin(self, engine):
        """The origin chunk is retrievable as recent memory."""
        session = await engine.create_session(
            CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
        )

        context = await engine.retrieve(session.id, "Where are we?")

        assert [c.chunk_index for c in context.recent_chunks] == [0]
        assert context.world_state == "Story setting: Setting: cyberpunk city"

    @pytest.mark.asyncio
    async def test_delete_cascades(self, engine, vector_store):
        """Deleting a session removes its chunks and its record."""
        session = await engine.create_session(
            CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
        )

        assert await engine.delete_session(session.id) is True
        assert await vector_store.count(session.id) == 0
        assert await engine.get_session(session.id) is None
        assert await engine.retrieve(session.id, "anything") is None
        assert await engine.delete_session(session.id) is False


class TestFormatContext:
    """Tests for format_context."""

    @pytest.mark.asyncio
    async def test_format_context(self, engine):
        """The rendered block carries the story state and memories."""
        session = await engine.create_session(
            CreateSessionRequest(title="Neon", system_message="Setting: cyberpunk city")
        )
        context = await engine.retrieve(session.id, "Where are we?")

        text = SessionMemoryEngine.format_context(context)

        assert text.startswith("[Story so far]\nThe crew is closing in on the vault")
        assert "[Latest scene]\nStory setting: Setting: cyberpunk city" in text
        assert "[Recent memories]\n1. Story setting: Setting: cyberpunk city" in text
        assert "[Relevant memories]" not in text


class TestBuildEngine:
    """Tests for wiring an engine from settings."""

    def test_build_engine(self, test_settings):
        """An engine is built from settings with the configured store."""
        engine = build_engine(test_settings)

        assert isinstance(engine.vector_store, InMemoryVectorStore)
        assert isinstance(engine.registry.store, InMemorySessionStore)
        assert engine.chunk_threshold == 8

    def test_json_session_store(self, test_settings):
        """storage.session_store=json selects the JSON store."""
        test_settings.storage.session_store = "json"
        assert isinstance(create_session_store(test_settings), JsonSessionStore)
